"""Repository layer for persisting orders.

This module contains the repository used by the domain service to persist
orders. It keeps a thin interface returning domain ``Order`` objects so the
domain layer is not coupled to Django ORM details. Soft-deleted orders are
filtered by the model's default ``objects`` manager, never per query.
"""

from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model
from django.core.paginator import Paginator
from django.db import transaction
from django.utils import timezone

from .domain import (
    Active,
    Customer,
    Deleted,
    Order,
    OrderFilters,
    OrderLine,
    OrderPage,
    OrderStatus,
    PaymentStatus,
)
from .errors import NotFoundError
from .models import OrderItemModel, OrderModel

UPDATABLE_FIELDS = {"status", "payment_status", "shipping_address", "tracking_number", "notes"}


def to_domain(obj: OrderModel) -> Order:
    """Map an ``OrderModel`` (with prefetched items) to a domain ``Order``."""
    return Order(
        id=obj.id,
        user_id=obj.user_id,
        items=[
            OrderLine(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                total=item.total,
            )
            for item in obj.items.all()
        ],
        subtotal=obj.subtotal,
        shipping_cost=obj.shipping_cost,
        tax=obj.tax,
        total=obj.total,
        status=OrderStatus(obj.status),
        currency=obj.currency,
        payment_method=obj.payment_method,
        payment_status=PaymentStatus(obj.payment_status),
        payment_transaction_id=obj.payment_transaction_id,
        tracking_number=obj.tracking_number,
        shipping_address=obj.shipping_address,
        billing_address=obj.billing_address,
        notes=obj.notes,
        number=obj.internal_id,
        created_at=obj.created_at,
        lifecycle=Deleted(at=obj.deleted_at) if obj.deleted_at else Active(),
    )


class OrderRepository:
    """Repository that persists Order domain objects using Django ORM."""

    def _load(self, order_id) -> Optional[OrderModel]:
        return OrderModel.objects.prefetch_related("items").filter(id=order_id).first()

    def create(self, order: Order) -> Order:
        """Persist a new order and its items in one transaction.

        Args:
            order: Domain ``Order`` to persist; its id is kept.

        Returns:
            The persisted order, re-read from the database.
        """
        with transaction.atomic():
            obj = OrderModel.objects.create(
                id=order.id,
                user_id=order.user_id,
                status=order.status.value,
                subtotal=order.subtotal,
                shipping_cost=order.shipping_cost,
                tax=order.tax,
                total=order.total,
                currency=order.currency,
                payment_method=order.payment_method,
                payment_status=order.payment_status.value,
                payment_transaction_id=order.payment_transaction_id,
                tracking_number=order.tracking_number,
                shipping_address=order.shipping_address,
                billing_address=order.billing_address,
                notes=order.notes,
            )
            OrderItemModel.objects.bulk_create(
                [
                    OrderItemModel(
                        order=obj,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        discount=line.discount,
                        total=line.total,
                        position=position,
                    )
                    for position, line in enumerate(order.items)
                ]
            )
        return to_domain(self._load(obj.id))

    def get(self, order_id) -> Optional[Order]:
        obj = self._load(order_id)
        return to_domain(obj) if obj else None

    def list(self, filters: OrderFilters, page: int, limit: int) -> OrderPage:
        qs = OrderModel.objects.prefetch_related("items").order_by("-created_at", "-internal_id")
        if filters.user_id is not None:
            qs = qs.filter(user_id=filters.user_id)
        if filters.status:
            qs = qs.filter(status=filters.status)
        if filters.payment_status:
            qs = qs.filter(payment_status=filters.payment_status)

        p = Paginator(qs, limit)
        page_obj = p.get_page(page)
        return OrderPage(
            items=[to_domain(o) for o in page_obj.object_list],
            total=p.count,
            page=page_obj.number,
            limit=limit,
        )

    def update(self, order_id, fields: Dict[str, Any]) -> Order:
        values = {
            key: (value.value if isinstance(value, (OrderStatus, PaymentStatus)) else value)
            for key, value in fields.items()
            if key in UPDATABLE_FIELDS
        }
        updated = OrderModel.objects.filter(id=order_id).update(updated_at=timezone.now(), **values)
        if not updated:
            raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
        return to_domain(self._load(order_id))

    def claim_cancellation(self, order_id) -> bool:
        updated = (
            OrderModel.objects.filter(id=order_id)
            .exclude(status=OrderModel.Status.CANCELLED)
            .update(status=OrderModel.Status.CANCELLED, updated_at=timezone.now())
        )
        return bool(updated)

    def soft_delete(self, order_id) -> bool:
        now = timezone.now()
        return bool(OrderModel.objects.filter(id=order_id).update(deleted_at=now, updated_at=now))


class DjangoCustomerDirectory:
    """Customer lookups backed by the Django auth user model."""

    def get(self, user_id) -> Optional[Customer]:
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            return None
        return Customer(
            id=user.pk,
            name=user.get_full_name() or user.get_username(),
            email=user.email,
            is_active=user.is_active,
        )
