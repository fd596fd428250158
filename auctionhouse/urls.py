from django.contrib import admin
from django.urls import path, include
from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

# API URL patterns included in the Swagger docs
api_urlpatterns = [
    path('api/v1/', include('bidding.urls')),
]

schema_view = get_schema_view(
    openapi.Info(
        title="Auction Bidding API",
        default_version='v1',
        description="Timed auctions with anti-sniping extensions and standing auto-bids",
        contact=openapi.Contact(email="contact@auction.local"),
        license=openapi.License(name="BSD License"),
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
    patterns=api_urlpatterns,
)

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('api/docs/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('api/docs/redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]

urlpatterns += api_urlpatterns
