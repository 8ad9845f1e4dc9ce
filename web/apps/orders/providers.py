"""Service provider helpers for wiring OrderService with ports.

This module exposes a small factory function `get_order_service` that
returns a configured `OrderService` instance. The database-backed catalog,
ledger, customer directory and order repository are always used; the
payment gateway is the HTTP client when ``settings.USE_HTTP_ADAPTERS`` is
truthy, and the in-process stub otherwise (tests and local development).
"""

from django.apps import apps as django_apps
from django.conf import settings

from apps.catalog.repository import OrmInventoryLedger, ProductRepository
from .adapters import PaymentsStub
from .domain import OrderService
from .http_adapters import HttpPaymentsClient
from .repository import DjangoCustomerDirectory, OrderRepository


def get_payments():
    """Return the payments port selected by settings."""
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpPaymentsClient()
    return PaymentsStub()


def get_order_service() -> OrderService:
    """Return a configured OrderService instance.

    Returns:
        OrderService: A service instance with appropriate ports.
    """
    return OrderService(
        catalog=ProductRepository(),
        inventory=OrmInventoryLedger(),
        payments=get_payments(),
        orders=OrderRepository(),
        customers=DjangoCustomerDirectory(),
        split=django_apps.get_app_config("orders").split_config,
        currency=getattr(settings, "ORDERS_CURRENCY", "BRL"),
        hide_foreign_orders=getattr(settings, "ORDERS_HIDE_FOREIGN_ORDERS", False),
    )
