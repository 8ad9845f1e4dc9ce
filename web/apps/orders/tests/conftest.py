"""In-memory ports for OrderService unit tests.

``World`` bundles a fake catalog, the in-process inventory and payments
adapters, an in-memory order store and a customer directory, so each test
can build a service and inspect every side effect.
"""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from apps.orders.adapters import InMemoryInventory, PaymentsStub
from apps.orders.domain import (
    Active,
    CardData,
    CartLine,
    Customer,
    Deleted,
    NewOrder,
    OrderPage,
    OrderService,
    OrderStatus,
    ProductSnapshot,
)
from apps.orders.errors import NotFoundError


class InMemoryOrderStore:
    def __init__(self):
        self.rows = {}
        self.fail_on_create = False

    def create(self, order):
        if self.fail_on_create:
            raise RuntimeError("database down")
        stored = replace(order, number=len(self.rows) + 1, created_at=datetime.now(timezone.utc))
        self.rows[order.id] = stored
        return stored

    def get(self, order_id):
        order = self.rows.get(order_id)
        if order is None or isinstance(order.lifecycle, Deleted):
            return None
        return order

    def list(self, filters, page, limit):
        live = [o for o in self.rows.values() if isinstance(o.lifecycle, Active)]
        if filters.user_id is not None:
            live = [o for o in live if o.user_id == filters.user_id]
        if filters.status:
            live = [o for o in live if o.status.value == filters.status]
        if filters.payment_status:
            live = [o for o in live if o.payment_status.value == filters.payment_status]
        live.sort(key=lambda o: o.number, reverse=True)
        start = (page - 1) * limit
        return OrderPage(items=live[start:start + limit], total=len(live), page=page, limit=limit)

    def update(self, order_id, fields):
        if self.get(order_id) is None:
            raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
        self.rows[order_id] = replace(self.rows[order_id], **fields)
        return self.rows[order_id]

    def claim_cancellation(self, order_id):
        order = self.get(order_id)
        if order is None or order.status is OrderStatus.CANCELLED:
            return False
        self.rows[order_id] = replace(order, status=OrderStatus.CANCELLED)
        return True

    def soft_delete(self, order_id):
        if self.get(order_id) is None:
            return False
        self.rows[order_id] = replace(self.rows[order_id], lifecycle=Deleted(at=datetime.now(timezone.utc)))
        return True


class FakeCustomers:
    def __init__(self, customers):
        self.customers = {c.id: c for c in customers}

    def get(self, user_id):
        return self.customers.get(user_id)


class World:
    OWNER = 1
    STRANGER = 2

    def __init__(self):
        self.products = {}
        self.inventory = InMemoryInventory()
        self.payments = PaymentsStub()
        self.orders = InMemoryOrderStore()
        self.customers = FakeCustomers(
            [
                Customer(id=self.OWNER, name="Alice", email="alice@example.com", document="12345678909",
                         phone="11999990000"),
                Customer(id=self.STRANGER, name="Bob", email="bob@example.com"),
                Customer(id=3, name="Carol", email="carol@example.com", is_active=False),
            ]
        )

    def add_product(self, price="10.00", quantity=5, status="active", external_url=None):
        pid = uuid.uuid4()
        self.products[pid] = ProductSnapshot(
            id=pid,
            name=f"product-{len(self.products) + 1}",
            price=Decimal(price) if price is not None else None,
            quantity=quantity,
            status=status,
            external_url=external_url,
        )
        self.inventory.stock[pid] = None if external_url else quantity
        return pid

    # ProductCatalogPort; quantities come from the ledger's current stock.
    def get_snapshots(self, product_ids):
        out = {}
        for pid in product_ids:
            if pid in self.products:
                snap = self.products[pid]
                if snap.external_url is None:
                    snap = replace(snap, quantity=self.inventory.stock.get(pid))
                out[pid] = snap
        return out

    def stock(self, pid):
        return self.inventory.stock[pid]

    def service(self, **kwargs):
        return OrderService(
            catalog=self,
            inventory=self.inventory,
            payments=self.payments,
            orders=self.orders,
            customers=self.customers,
            **kwargs,
        )


CARD = CardData(number="4111111111111111", holder_name="Alice Silva", expiration_date="1230", cvv="123")
BILLING = {"country": "br", "state": "SP", "city": "Sao Paulo", "neighborhood": "Centro",
           "street": "Rua A", "street_number": "100", "zipcode": "01001000"}


def card_order(user_id, *lines, card=CARD, **kwargs):
    """A credit card ``NewOrder`` for ``(product_id, quantity)`` pairs."""
    data = dict(payment_method="credit_card", card_data=card, billing_address=BILLING)
    data.update(kwargs)
    return NewOrder(user_id=user_id, items=[CartLine(pid, qty) for pid, qty in lines], **data)


@pytest.fixture
def world():
    return World()


@pytest.fixture
def new_card_order():
    return card_order
