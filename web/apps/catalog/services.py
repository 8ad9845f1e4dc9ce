"""Staff stock adjustments on top of the inventory ledger."""

import logging
import uuid

from apps.orders.domain import ProductStatus
from apps.orders.errors import ValidationError
from .models import Product
from .repository import OrmInventoryLedger, ProductRepository

logger = logging.getLogger(__name__)


def sync_stock_status(product_id: uuid.UUID) -> None:
    """Flip ``active`` <-> ``out_of_stock`` to match the current quantity.

    Inactive products keep their status.
    """
    Product.objects.filter(
        id=product_id, quantity=0, status=ProductStatus.ACTIVE.value
    ).update(status=ProductStatus.OUT_OF_STOCK.value)
    Product.objects.filter(
        id=product_id, quantity__gt=0, status=ProductStatus.OUT_OF_STOCK.value
    ).update(status=ProductStatus.ACTIVE.value)


def adjust_stock(product_id: uuid.UUID, operation: str, quantity: int) -> Product:
    """Add or subtract units of a live product.

    Raises:
        NotFoundError: Unknown or deleted product.
        ValidationError: The product is sold through an external link or has
            unlimited stock.
        InsufficientStockError: Subtracting more than is available.
    """
    products = ProductRepository()
    product = products.get(product_id)
    if product.external_url:
        raise ValidationError("EXTERNAL_PRODUCT", "Cannot update stock for products with external URL")
    if product.quantity is None:
        raise ValidationError("STOCK_NOT_MANAGED", "Product has unlimited stock")

    ledger = OrmInventoryLedger()
    if operation == "add":
        ledger.release(product_id, quantity)
    else:
        ledger.reserve(product_id, quantity)
    sync_stock_status(product_id)

    logger.info(
        "stock adjusted",
        extra={"product_id": str(product_id), "operation": operation, "quantity": quantity},
    )
    return products.get(product_id)
