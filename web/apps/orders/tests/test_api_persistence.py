"""Persistence tests for the order repository and models."""
import uuid
from decimal import Decimal

import pytest

from apps.orders.domain import Deleted, Order, OrderFilters, OrderLine, OrderStatus, PaymentStatus
from apps.orders.models import OrderModel
from apps.orders.repository import DjangoCustomerDirectory, OrderRepository, to_domain


def make_order(user, product, quantity=2):
    line = OrderLine(
        product_id=product.id, quantity=quantity, unit_price=product.price, discount=Decimal("0"),
        total=product.price * quantity,
    )
    return Order(
        id=uuid.uuid4(),
        user_id=user.pk,
        items=[line],
        subtotal=line.total,
        shipping_cost=Decimal("0"),
        tax=Decimal("0"),
        total=line.total,
        billing_address={"city": "Sao Paulo"},
    )


@pytest.mark.django_db
def test_create_assigns_incremental_numbers(user, make_product):
    repo = OrderRepository()
    product = make_product()
    a = repo.create(make_order(user, product))
    b = repo.create(make_order(user, product))
    assert (a.number, b.number) == (1, 2)
    assert a.items[0].unit_price == Decimal("50.00")
    assert a.billing_address == {"city": "Sao Paulo"}


@pytest.mark.django_db
def test_soft_deleted_orders_are_hidden(user, make_product):
    repo = OrderRepository()
    order = repo.create(make_order(user, make_product()))

    assert repo.soft_delete(order.id) is True
    assert repo.get(order.id) is None
    assert repo.list(OrderFilters(), 1, 10).total == 0
    assert repo.soft_delete(order.id) is False

    row = OrderModel.all_objects.get(id=order.id)
    assert isinstance(to_domain(row).lifecycle, Deleted)


@pytest.mark.django_db
def test_claim_cancellation_only_once(user, make_product):
    repo = OrderRepository()
    order = repo.create(make_order(user, make_product()))
    assert repo.claim_cancellation(order.id) is True
    assert repo.claim_cancellation(order.id) is False
    assert repo.get(order.id).status is OrderStatus.CANCELLED


@pytest.mark.django_db
def test_update_converts_enums_and_ignores_unknown_fields(user, make_product):
    repo = OrderRepository()
    order = repo.create(make_order(user, make_product()))
    updated = repo.update(order.id, {"payment_status": PaymentStatus.REFUNDED, "total": Decimal("0")})
    assert updated.payment_status is PaymentStatus.REFUNDED
    assert updated.total == order.total


@pytest.mark.django_db
def test_customer_directory(user):
    customer = DjangoCustomerDirectory().get(user.pk)
    assert customer.name == "Alice Silva"
    assert customer.email == "alice@example.com"
    assert DjangoCustomerDirectory().get(12345) is None
