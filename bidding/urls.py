from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from .views import AuctionViewSet, AutoBidViewSet, BidViewSet, CouponViewSet

# Create a router and register our viewsets with it
router = DefaultRouter()
router.register(r'auctions', AuctionViewSet)
router.register(r'bids', BidViewSet, basename='bid')
router.register(r'autobids', AutoBidViewSet, basename='autobid')
router.register(r'coupons', CouponViewSet, basename='coupon')

urlpatterns = [
    # API routes with router
    path('', include(router.urls)),

    # Authentication endpoints
    path('auth/login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]
