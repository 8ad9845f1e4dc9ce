"""Tests for order pricing and gateway status helpers."""

import uuid
from decimal import Decimal

import pytest

from apps.orders.domain import (
    PaymentStatus,
    build_aggregate,
    payment_status_from_gateway,
    price_line,
    to_cents,
)
from apps.orders.errors import PaymentError


def test_line_total_applies_discount():
    line = price_line(uuid.uuid4(), 3, Decimal("19.90"), Decimal("5.00"))
    assert line.total == Decimal("54.70")


def test_line_total_never_negative():
    line = price_line(uuid.uuid4(), 1, Decimal("10.00"), Decimal("25.00"))
    assert line.total == Decimal("0")


def test_aggregate_total_is_subtotal_plus_shipping_and_tax():
    lines = [
        price_line(uuid.uuid4(), 2, Decimal("10.00")),
        price_line(uuid.uuid4(), 1, Decimal("0.10"), Decimal("0.05")),
    ]
    agg = build_aggregate(lines, shipping_cost=Decimal("7.30"), tax=Decimal("1.11"))
    assert agg.subtotal == Decimal("20.05")
    assert agg.total == agg.subtotal + agg.shipping_cost + agg.tax == Decimal("28.46")


@pytest.mark.parametrize(
    "amount, cents",
    [(Decimal("10.00"), 1000), (Decimal("0.005"), 1), (Decimal("19.994"), 1999), (Decimal("0.1"), 10)],
)
def test_to_cents_rounds_half_up(amount, cents):
    assert to_cents(amount) == cents


@pytest.mark.parametrize(
    "status, expected",
    [
        ("paid", PaymentStatus.PAID),
        ("SUCCESS", PaymentStatus.PAID),
        ("authorized", PaymentStatus.AUTHORIZED),
        ("processing", PaymentStatus.PENDING),
        ("waiting_payment", PaymentStatus.PENDING),
    ],
)
def test_gateway_status_mapping(status, expected):
    assert payment_status_from_gateway(status) is expected


@pytest.mark.parametrize("status, code", [("refused", "PAYMENT_REFUSED"), ("chargedback", "PAYMENT_STATUS_UNKNOWN")])
def test_gateway_status_errors(status, code):
    with pytest.raises(PaymentError) as e:
        payment_status_from_gateway(status)
    assert e.value.code == code
