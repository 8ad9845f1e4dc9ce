"""Pydantic schemas for orders.

This module exposes the request/validation schemas used by the orders API
and the read DTOs used to shape responses. Request schemas convert to the
domain dataclasses via ``to_domain`` helpers so views stay thin.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import (
    CardData,
    CartLine,
    CartValidationResult,
    NewOrder,
    Order,
)

EXPIRATION_RE = re.compile(r"^(0[1-9]|1[0-2])\d{2}$")
CVV_RE = re.compile(r"^\d{3,4}$")
PAYMENT_METHODS = ("credit_card", "debit_card", "pix", "boleto")

Money = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class OrderItemIn(BaseModel):
    """Input schema for a single order line item.

    Attributes:
        product_id: Product UUID.
        quantity: Positive integer indicating units requested.
        discount: Absolute discount for the line (>= 0, 2 decimals).
    """

    product_id: UUID
    quantity: int = Field(gt=0)
    discount: Decimal = Money

    def to_domain(self) -> CartLine:
        return CartLine(product_id=self.product_id, quantity=self.quantity, discount=self.discount)


class CardDataIn(BaseModel):
    number: str
    holder_name: str = Field(min_length=2, max_length=100)
    expiration_date: str
    cvv: str
    document: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: str) -> str:
        """Strip spaces and check the card number has 13 to 19 digits.

        Raises:
            ValueError: When the number is not 13-19 digits.
        """
        v2 = v.replace(" ", "")
        if not (v2.isdigit() and 13 <= len(v2) <= 19):
            raise ValueError("Invalid card number")
        return v2

    @field_validator("expiration_date")
    @classmethod
    def validate_expiration(cls, v: str) -> str:
        if not EXPIRATION_RE.match(v):
            raise ValueError("Expiration date must be MMYY")
        return v

    @field_validator("cvv")
    @classmethod
    def validate_cvv(cls, v: str) -> str:
        if not CVV_RE.match(v):
            raise ValueError("Invalid CVV")
        return v

    def to_domain(self) -> CardData:
        return CardData(**self.model_dump())


class BillingAddressIn(BaseModel):
    country: str = Field(default="br", min_length=2, max_length=2)
    state: str = Field(min_length=2, max_length=2)
    city: str = Field(min_length=2, max_length=100)
    neighborhood: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=2, max_length=200)
    street_number: str = Field(min_length=1, max_length=20)
    zipcode: str
    complement: Optional[str] = Field(default=None, max_length=200)

    @field_validator("zipcode")
    @classmethod
    def validate_zipcode(cls, v: str) -> str:
        """Normalize a CEP to its 8 digits."""
        digits = re.sub(r"\D", "", v)
        if len(digits) != 8:
            raise ValueError("Invalid zipcode")
        return digits

    @field_validator("country", "state")
    @classmethod
    def lower_or_upper(cls, v: str, info) -> str:
        return v.lower() if info.field_name == "country" else v.upper()


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    Attributes:
        items: At least one `OrderItemIn`.
        payment_method: One of ``PAYMENT_METHODS``; card methods also need
            ``card_data`` and a structured ``billing_address``.
        billing_address: Structured address, or free text for non-card
            payments.
        shipping_cost, tax: Non-negative amounts added to the subtotal.
    """

    items: List[OrderItemIn] = Field(min_length=1)
    payment_method: Optional[Literal[PAYMENT_METHODS]] = None
    card_data: Optional[CardDataIn] = None
    billing_address: Union[BillingAddressIn, str, None] = None
    shipping_address: Optional[str] = Field(default=None, max_length=500)
    shipping_cost: Decimal = Money
    tax: Decimal = Money
    notes: Optional[str] = Field(default=None, max_length=1000)
    tracking_number: Optional[str] = Field(default=None, max_length=100)

    def to_domain(self, user_id) -> NewOrder:
        billing = self.billing_address
        return NewOrder(
            user_id=user_id,
            items=[item.to_domain() for item in self.items],
            payment_method=self.payment_method,
            card_data=self.card_data.to_domain() if self.card_data else None,
            billing_address=billing.model_dump() if isinstance(billing, BillingAddressIn) else billing,
            shipping_cost=self.shipping_cost,
            tax=self.tax,
            shipping_address=self.shipping_address,
            notes=self.notes,
            tracking_number=self.tracking_number,
        )


class CartItemIn(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)


class ValidateCartDTO(BaseModel):
    items: List[CartItemIn] = Field(min_length=1)

    def to_domain(self) -> List[CartLine]:
        return [CartLine(product_id=i.product_id, quantity=i.quantity) for i in self.items]


class UpdateOrderDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[Literal["pending", "completed", "cancelled"]] = None
    shipping_address: Optional[str] = Field(default=None, max_length=500)
    tracking_number: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class DeleteOrderDTO(BaseModel):
    restore_stock: bool = False


class ListOrdersQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: Optional[Literal["pending", "completed", "cancelled"]] = None
    payment_status: Optional[Literal["pending", "authorized", "paid", "refunded"]] = None
    user_id: Optional[int] = None


# ---- Read DTOs ----
class OrderItemOut(BaseModel):
    product_id: UUID
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


class OrderReadDTO(BaseModel):
    id: UUID
    number: Optional[int] = None
    user_id: Any
    status: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    payment_method: Optional[str] = None
    payment_status: str
    payment_transaction_id: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Union[dict, str, None] = None
    notes: Optional[str] = None
    items: List[OrderItemOut]
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            number=order.number,
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
            items=[
                OrderItemOut(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount=line.discount,
                    total=line.total,
                )
                for line in order.items
            ],
            created_at=order.created_at,
        )


class CartItemValidationOut(BaseModel):
    product_id: UUID
    valid: bool
    requested_quantity: int
    reason: Optional[str] = None
    available_quantity: Optional[int] = None


class CartValidationOut(BaseModel):
    valid_items: List[CartItemIn]
    invalid_items: List[CartItemValidationOut]

    @classmethod
    def from_domain(cls, result: CartValidationResult) -> "CartValidationOut":
        return cls(
            valid_items=[CartItemIn(product_id=i.product_id, quantity=i.quantity) for i in result.valid_items],
            invalid_items=[CartItemValidationOut(**i.as_dict()) for i in result.invalid_items],
        )
