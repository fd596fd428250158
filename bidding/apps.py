from django.apps import AppConfig


class BiddingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bidding'
    verbose_name = 'Auctions & Bidding'

    def ready(self):
        # Connect signal receivers
        from . import signals  # noqa: F401
