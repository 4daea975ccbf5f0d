"""Django app configuration for marketplace app."""

from django.apps import AppConfig


class MarketplaceConfig(AppConfig):
    """Configuration for marketplace app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.marketplace'
    verbose_name = 'Marketplace'
