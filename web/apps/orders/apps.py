from django.apps import AppConfig
from django.conf import settings

from .split import load_split_config


class OrdersConfig(AppConfig):
    name = "apps.orders"
    label = "orders"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Fails fast on a bad PAYMENTS_SPLIT before any request is served.
        self.split_config = load_split_config(getattr(settings, "PAYMENTS_SPLIT", None))
