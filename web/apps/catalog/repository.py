"""Repository layer for products and stock.

``ProductRepository`` turns product rows into the read-only snapshots the
orders domain consumes. ``OrmInventoryLedger`` owns every write to
``Product.quantity``: each reservation or release is one conditional
``UPDATE`` evaluated by the database, so concurrent requests for the last
unit cannot both succeed and no read-modify-write happens in Python.
"""

import uuid
from typing import Dict, List

from django.db.models import F

from apps.orders.domain import ProductSnapshot
from apps.orders.errors import InsufficientStockError, NotFoundError
from .models import Product


def to_snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        name=product.name,
        price=product.price,
        quantity=product.quantity,
        status=product.status,
        external_url=product.external_url or None,
    )


class ProductRepository:
    """Read access to live products."""

    def get(self, product_id: uuid.UUID) -> Product:
        try:
            return Product.objects.get(id=product_id)
        except Product.DoesNotExist:
            raise NotFoundError("PRODUCT_NOT_FOUND", f"Product {product_id} not found")

    def get_snapshots(self, product_ids: List[uuid.UUID]) -> Dict[uuid.UUID, ProductSnapshot]:
        """Return snapshots of the live products among ``product_ids``.

        Missing and soft-deleted products are left out of the mapping.
        """
        rows = Product.objects.filter(id__in=set(product_ids))
        return {row.id: to_snapshot(row) for row in rows}


class OrmInventoryLedger:
    """Inventory ledger backed by ``Product.quantity``.

    Products with an external URL or a null quantity are exempt: they are
    never decremented nor incremented.
    """

    def _stock_managed(self):
        return Product.objects.filter(quantity__isnull=False, external_url__isnull=True)

    def reserve(self, product_id: uuid.UUID, quantity: int) -> bool:
        """Atomically take ``quantity`` units from a product's stock.

        Args:
            product_id: Product to reserve.
            quantity: Units to take (> 0).

        Returns:
            bool: True when stock was decremented, False when the product is
            exempt from stock management.

        Raises:
            NotFoundError: If no live product has this id.
            InsufficientStockError: If fewer than ``quantity`` units are left.
        """
        updated = (
            self._stock_managed()
            .filter(id=product_id, quantity__gte=quantity)
            .update(quantity=F("quantity") - quantity)
        )
        if updated:
            return True

        # Nothing updated: find out why.
        product = Product.objects.filter(id=product_id).first()
        if product is None:
            raise NotFoundError("PRODUCT_NOT_FOUND", f"Product {product_id} not found")
        if product.quantity is None or product.external_url:
            return False
        raise InsufficientStockError(
            product_id=product_id,
            requested=quantity,
            available=product.quantity,
            message=f"Insufficient stock for product {product.name}",
        )

    def release(self, product_id: uuid.UUID, quantity: int) -> None:
        """Atomically give ``quantity`` units back to a product's stock.

        Soft-deleted products still get their units back so a later restore
        of the product finds consistent stock.
        """
        Product.all_objects.filter(
            id=product_id, quantity__isnull=False, external_url__isnull=True
        ).update(quantity=F("quantity") + quantity)
