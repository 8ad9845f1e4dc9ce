"""Domain models, ports and service for orders.

This module contains simple dataclasses used as DTOs for orders and cart
lines, protocol definitions (ports) for external dependencies such as the
product catalog, the inventory ledger and the payment gateway, the pure
cart validation and pricing functions, and the domain service that drives
the order lifecycle (create, read, update, cancel, delete).
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from .errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    OrderAlreadyCancelled,
    PaymentError,
    ValidationError,
)
from .split import SplitConfig

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CARD_METHODS = frozenset({"credit_card", "debit_card"})


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle status of an order.

    ``pending`` is the only non-terminal state; ``completed`` and
    ``cancelled`` are final.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    REFUNDED = "refunded"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


class InvalidReason(str, Enum):
    """Why a cart line cannot be ordered, listed in precedence order."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXTERNAL_URL = "external_url"
    NO_PRICE = "no_price"
    OUT_OF_STOCK = "out_of_stock"
    INSUFFICIENT_STOCK = "insufficient_stock"


# Transitions allowed through ``OrderService.update``; cancellation has its
# own operation because it restores stock.
STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

GATEWAY_STATUS_MAP = {
    "paid": PaymentStatus.PAID,
    "success": PaymentStatus.PAID,
    "authorized": PaymentStatus.AUTHORIZED,
    "processing": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "waiting_payment": PaymentStatus.PENDING,
}
GATEWAY_REFUSED = frozenset({"refused", "failed", "canceled"})


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class CartLine:
    """A requested product and quantity, as sent by the client.

    Attributes:
        product_id: Identifier of the product being ordered.
        quantity: Number of units requested (> 0).
        discount: Absolute discount applied to the whole line.
    """

    product_id: uuid.UUID
    quantity: int
    discount: Decimal = ZERO


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of the product fields the order flow depends on."""

    id: uuid.UUID
    name: str
    price: Optional[Decimal]
    quantity: Optional[int]
    status: str
    external_url: Optional[str] = None

    @property
    def manages_stock(self) -> bool:
        """Whether reservations apply to this product.

        Products sold through an external link or with an unlimited (null)
        quantity are never reserved.
        """
        return self.external_url is None and self.quantity is not None


@dataclass
class CartItemValidation:
    product_id: uuid.UUID
    valid: bool
    requested_quantity: int
    reason: Optional[InvalidReason] = None
    available_quantity: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "product_id": str(self.product_id),
            "valid": self.valid,
            "requested_quantity": self.requested_quantity,
            "reason": self.reason.value if self.reason else None,
        }
        if self.available_quantity is not None:
            data["available_quantity"] = self.available_quantity
        return data


@dataclass
class CartValidationResult:
    valid_items: List[CartLine] = field(default_factory=list)
    invalid_items: List[CartItemValidation] = field(default_factory=list)


@dataclass(frozen=True)
class OrderLine:
    """A priced order item.

    ``unit_price`` is a copy of the product price taken when the order was
    built; later price changes do not touch it.
    """

    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class OrderAggregate:
    lines: List[OrderLine]
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class Active:
    """Marker for a record that has not been soft-deleted."""


@dataclass(frozen=True)
class Deleted:
    at: datetime


Lifecycle = Union[Active, Deleted]


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Persistent identifier (UUID). Assigned before payment so the
            gateway can reference it in its metadata.
        user_id: Owner of the order.
        items: Priced order lines.
        status: Current OrderStatus.
        subtotal, shipping_cost, tax, total: Decimal amounts, where
            ``total == subtotal + shipping_cost + tax``.
        currency: ISO currency code (e.g. 'BRL').
        payment_method: Method requested by the client, if any.
        payment_status: Current PaymentStatus.
        payment_transaction_id: Gateway transaction id once charged.
        number: Sequential human-facing order number, set on persistence.
        lifecycle: ``Active()`` or ``Deleted(at)``.
    """

    id: uuid.UUID
    user_id: Any
    items: List[OrderLine]
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    currency: str = "BRL"
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_transaction_id: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Union[Dict[str, Any], str, None] = None
    notes: Optional[str] = None
    number: Optional[int] = None
    created_at: Optional[datetime] = None
    lifecycle: Lifecycle = Active()


@dataclass(frozen=True)
class Customer:
    id: Any
    name: str
    email: str
    is_active: bool = True
    document: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class Caller:
    """Authenticated identity performing an operation.

    ``is_privileged`` callers (staff) bypass ownership checks.
    """

    user_id: Any
    is_privileged: bool = False


@dataclass(frozen=True)
class CardData:
    number: str
    holder_name: str
    expiration_date: str
    cvv: str
    document: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class PaymentInstrument:
    """Everything the gateway needs to charge a card for an order."""

    method: str
    card: CardData
    billing_address: Dict[str, Any]
    customer: Dict[str, Any]


@dataclass(frozen=True)
class ChargeResult:
    transaction_id: str
    status: str


@dataclass
class NewOrder:
    """Input of ``OrderService.create``."""

    user_id: Any
    items: List[CartLine]
    payment_method: Optional[str] = None
    card_data: Optional[CardData] = None
    billing_address: Union[Dict[str, Any], str, None] = None
    shipping_cost: Decimal = ZERO
    tax: Decimal = ZERO
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None


@dataclass(frozen=True)
class OrderFilters:
    status: Optional[str] = None
    payment_status: Optional[str] = None
    user_id: Any = None


@dataclass
class OrderPage:
    items: List[Order]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


# ---- Ports (DIP) ----
class ProductCatalogPort(Protocol):
    def get_snapshots(self, product_ids: List[uuid.UUID]) -> Dict[uuid.UUID, ProductSnapshot]:
        """Return snapshots of the live products among ``product_ids``.

        Missing or soft-deleted products are simply absent from the result.
        """
        raise NotImplementedError()


class InventoryPort(Protocol):
    """Port describing the inventory ledger.

    Both operations must be atomic per product: two concurrent reservations
    for the last unit must not both succeed.
    """

    def reserve(self, product_id: uuid.UUID, quantity: int) -> bool:
        """Decrement available stock if at least ``quantity`` is available.

        Returns:
            True when stock was decremented, False when the product is exempt
            from stock management (external link or unlimited quantity).

        Raises:
            NotFoundError: If the product does not exist.
            InsufficientStockError: If not enough stock is available.
        """
        raise NotImplementedError()

    def release(self, product_id: uuid.UUID, quantity: int) -> None:
        """Give ``quantity`` units back to the product's stock."""
        raise NotImplementedError()


class PaymentsPort(Protocol):
    """Port describing the payment gateway.

    Implementations raise ``PaymentError`` for every gateway failure,
    including transport errors and timeouts.
    """

    def charge(
        self,
        amount_cents: int,
        currency: str,
        instrument: PaymentInstrument,
        split: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        items: Optional[List[Dict[str, Any]]] = None,
    ) -> ChargeResult:
        raise NotImplementedError()

    def capture(self, transaction_id: str) -> ChargeResult:
        raise NotImplementedError()

    def refund(self, transaction_id: str, amount_cents: Optional[int] = None) -> ChargeResult:
        raise NotImplementedError()


class CustomerDirectoryPort(Protocol):
    def get(self, user_id: Any) -> Optional[Customer]:
        raise NotImplementedError()


class OrderStorePort(Protocol):
    """Persistence port for orders. Reads only ever return live orders."""

    def create(self, order: Order) -> Order:
        """Persist the order and its items as one atomic unit."""
        raise NotImplementedError()

    def get(self, order_id: uuid.UUID) -> Optional[Order]:
        raise NotImplementedError()

    def list(self, filters: OrderFilters, page: int, limit: int) -> OrderPage:
        raise NotImplementedError()

    def update(self, order_id: uuid.UUID, fields: Dict[str, Any]) -> Order:
        raise NotImplementedError()

    def claim_cancellation(self, order_id: uuid.UUID) -> bool:
        """Atomically flip a non-cancelled order to cancelled.

        Returns False when the order was already cancelled.
        """
        raise NotImplementedError()

    def soft_delete(self, order_id: uuid.UUID) -> bool:
        raise NotImplementedError()


# ---- Pure functions ----
def validate_cart(
    lines: List[CartLine], snapshots: Dict[uuid.UUID, ProductSnapshot]
) -> CartValidationResult:
    """Classify each cart line as valid or invalid, without side effects.

    Each line is checked on its own against the product snapshot. An invalid
    line gets exactly one reason, picked in ``InvalidReason`` order.

    Args:
        lines: Requested cart lines.
        snapshots: Live products keyed by id.

    Returns:
        CartValidationResult with the valid lines and the invalid ones
        annotated with their reason.
    """
    result = CartValidationResult()
    for line in lines:
        check = CartItemValidation(
            product_id=line.product_id, valid=False, requested_quantity=line.quantity
        )
        product = snapshots.get(line.product_id)

        if product is None:
            check.reason = InvalidReason.NOT_FOUND
        elif product.status != ProductStatus.ACTIVE.value:
            check.reason = InvalidReason.INACTIVE
        elif product.external_url:
            check.reason = InvalidReason.EXTERNAL_URL
        elif product.price is None:
            check.reason = InvalidReason.NO_PRICE
        elif product.quantity == 0:
            check.reason = InvalidReason.OUT_OF_STOCK
            check.available_quantity = 0
        elif product.quantity is not None and product.quantity < line.quantity:
            check.reason = InvalidReason.INSUFFICIENT_STOCK
            check.available_quantity = product.quantity

        if check.reason is None:
            check.valid = True
            result.valid_items.append(line)
        else:
            result.invalid_items.append(check)
    return result


def price_line(product_id: uuid.UUID, quantity: int, unit_price: Decimal, discount: Decimal = ZERO) -> OrderLine:
    """Price a single line; the total never goes below zero."""
    total = unit_price * quantity - discount
    return OrderLine(
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        total=max(total, ZERO),
    )


def build_aggregate(lines: List[OrderLine], shipping_cost: Decimal = ZERO, tax: Decimal = ZERO) -> OrderAggregate:
    """Compute subtotal and total for already priced lines."""
    subtotal = sum((line.total for line in lines), ZERO)
    return OrderAggregate(
        lines=list(lines),
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax=tax,
        total=subtotal + shipping_cost + tax,
    )


def to_cents(amount: Decimal) -> int:
    """Convert a decimal amount to integer cents, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payment_status_from_gateway(status: str) -> PaymentStatus:
    """Map a gateway transaction status to our PaymentStatus.

    Raises:
        PaymentError: 'PAYMENT_REFUSED' for refused/failed/canceled charges,
            'PAYMENT_STATUS_UNKNOWN' for anything unrecognized.
    """
    normalized = (status or "").lower()
    if normalized in GATEWAY_STATUS_MAP:
        return GATEWAY_STATUS_MAP[normalized]
    if normalized in GATEWAY_REFUSED:
        raise PaymentError("PAYMENT_REFUSED", f"Payment refused by the gateway (status: {normalized})")
    raise PaymentError("PAYMENT_STATUS_UNKNOWN", f"Unknown transaction status: {status}")


def _digits(value: Optional[str]) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def _cart_rejection(invalid: List[CartItemValidation]):
    details = [item.as_dict() for item in invalid]
    first = invalid[0]
    if first.reason is InvalidReason.NOT_FOUND:
        return NotFoundError("PRODUCT_NOT_FOUND", f"Product {first.product_id} not found", details)
    if first.reason in (InvalidReason.OUT_OF_STOCK, InvalidReason.INSUFFICIENT_STOCK):
        return InsufficientStockError(
            product_id=first.product_id,
            requested=first.requested_quantity,
            available=first.available_quantity or 0,
            message=f"Insufficient stock for product {first.product_id}",
            details=details,
        )
    return ValidationError(
        "PRODUCT_NOT_ORDERABLE", f"Product {first.product_id} cannot be ordered ({first.reason.value})", details
    )


# ---- Domain service ----
class OrderService:
    """Domain service driving the order lifecycle.

    Creation runs validate → reserve → price → charge → persist. Every step
    after the first reservation is guarded: on failure all reservations made
    for the attempt are released (and a completed charge refunded) before the
    error propagates, so callers never see a half-reserved order.
    """

    def __init__(
        self,
        catalog: ProductCatalogPort,
        inventory: InventoryPort,
        payments: PaymentsPort,
        orders: OrderStorePort,
        customers: CustomerDirectoryPort,
        split: Optional[SplitConfig] = None,
        currency: str = "BRL",
        hide_foreign_orders: bool = False,
    ):
        """Initialize the service with required dependencies.

        Args:
            catalog: Product lookups for validation and pricing.
            inventory: Ledger used to reserve and release stock.
            payments: Gateway used to charge, capture and refund.
            orders: Order persistence.
            customers: Customer lookups for ownership and payment data.
            split: Revenue split applied to every charge, or None.
            currency: Currency of all orders.
            hide_foreign_orders: Answer "not found" instead of "forbidden"
                when a caller asks for someone else's order.
        """
        self.catalog = catalog
        self.inventory = inventory
        self.payments = payments
        self.orders = orders
        self.customers = customers
        self.split = split
        self.currency = currency
        self.hide_foreign_orders = hide_foreign_orders

    # -- queries --
    def validate_cart(self, lines: List[CartLine]) -> CartValidationResult:
        snapshots = self.catalog.get_snapshots([line.product_id for line in lines])
        return validate_cart(lines, snapshots)

    def get(self, order_id: uuid.UUID, caller: Caller) -> Order:
        """Return a live order the caller is allowed to see.

        Raises:
            NotFoundError: If the order does not exist or was deleted.
            AuthorizationError: If the caller neither owns the order nor is
                privileged (NotFoundError instead when foreign orders are
                hidden).
        """
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
        if not caller.is_privileged and order.user_id != caller.user_id:
            if self.hide_foreign_orders:
                raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
            raise AuthorizationError("ORDER_FORBIDDEN", "Not authorized to access this order")
        return order

    def list(self, caller: Caller, filters: OrderFilters, page: int = 1, limit: int = 10) -> OrderPage:
        if not caller.is_privileged:
            filters = replace(filters, user_id=caller.user_id)
        return self.orders.list(filters, page, limit)

    # -- commands --
    def create(self, new: NewOrder) -> Order:
        """Create an order, reserving stock and charging card payments.

        Raises:
            NotFoundError: Unknown/inactive user or unknown product.
            ValidationError: Empty order, missing card data or billing
                address, or a product that cannot be ordered.
            InsufficientStockError: A product lacks stock.
            PaymentError: The gateway refused or failed the charge.
        """
        customer = self.customers.get(new.user_id)
        if customer is None or not customer.is_active:
            raise NotFoundError("USER_NOT_FOUND", "User not found")
        if not new.items:
            raise ValidationError("EMPTY_ORDER", "Order must contain at least one item")
        instrument = self._instrument_for(new, customer)

        snapshots = self.catalog.get_snapshots([line.product_id for line in new.items])
        checked = validate_cart(new.items, snapshots)
        if checked.invalid_items:
            logger.warning(
                "order rejected: invalid cart",
                extra={"user_id": str(new.user_id), "invalid_items": [i.as_dict() for i in checked.invalid_items]},
            )
            raise _cart_rejection(checked.invalid_items)

        order_id = uuid.uuid4()
        reserved = self._reserve_all(new.items)
        try:
            aggregate = build_aggregate(
                [
                    price_line(line.product_id, line.quantity, snapshots[line.product_id].price, line.discount)
                    for line in new.items
                ],
                new.shipping_cost,
                new.tax,
            )
            charge, payment_status = self._charge(order_id, aggregate, instrument, new.user_id)
        except Exception:
            self._release_all(reserved)
            raise

        order = Order(
            id=order_id,
            user_id=new.user_id,
            items=aggregate.lines,
            subtotal=aggregate.subtotal,
            shipping_cost=aggregate.shipping_cost,
            tax=aggregate.tax,
            total=aggregate.total,
            currency=self.currency,
            payment_method=new.payment_method,
            payment_status=payment_status,
            payment_transaction_id=charge.transaction_id if charge else None,
            tracking_number=new.tracking_number,
            shipping_address=new.shipping_address,
            billing_address=new.billing_address,
            notes=new.notes,
        )
        try:
            created = self.orders.create(order)
        except Exception:
            self._release_all(reserved)
            if charge is not None:
                self._refund_after_failure(charge.transaction_id)
            raise

        logger.info(
            "order created",
            extra={"order_id": str(created.id), "user_id": str(created.user_id), "total": str(created.total)},
        )
        return created

    def update(self, order_id: uuid.UUID, caller: Caller, changes: Dict[str, Any]) -> Order:
        """Apply status / shipping / tracking / notes changes to an order.

        Stock is not re-validated. Completing an order whose payment is only
        authorized captures it first.
        """
        order = self.get(order_id, caller)
        fields = dict(changes)
        if "status" in fields:
            try:
                target = OrderStatus(fields["status"])
            except ValueError:
                raise ValidationError("INVALID_STATUS", f"Unknown order status: {fields['status']}")
            if target is not order.status:
                if target is OrderStatus.CANCELLED:
                    raise ValidationError("USE_CANCEL", "Use the cancel operation to cancel an order")
                if target not in STATUS_TRANSITIONS[order.status]:
                    raise ValidationError(
                        "INVALID_STATUS_TRANSITION",
                        f"Cannot change order status from {order.status.value} to {target.value}",
                    )
                if target is OrderStatus.COMPLETED and order.payment_status is PaymentStatus.AUTHORIZED:
                    self.payments.capture(order.payment_transaction_id)
                    fields["payment_status"] = PaymentStatus.PAID
            fields["status"] = target
        if not fields:
            return order
        return self.orders.update(order.id, fields)

    def cancel(self, order_id: uuid.UUID, caller: Caller) -> Order:
        """Cancel an order, refunding its payment and restoring its stock.

        Raises:
            OrderAlreadyCancelled: If the order is (or concurrently became)
                cancelled.
            PaymentError: If the refund fails; the order keeps its previous
                status in that case.
        """
        order = self.get(order_id, caller)
        if order.status is OrderStatus.CANCELLED:
            raise OrderAlreadyCancelled()
        if not self.orders.claim_cancellation(order.id):
            raise OrderAlreadyCancelled()

        try:
            payment_status = self._refund_for_cancellation(order)
        except Exception:
            self.orders.update(order.id, {"status": order.status})
            raise

        self._release_all(order.items)
        cancelled = self.orders.update(order.id, {"payment_status": payment_status})
        logger.info("order cancelled", extra={"order_id": str(order.id)})
        return cancelled

    def delete(self, order_id: uuid.UUID, caller: Caller, restore_stock: bool = False) -> None:
        """Soft-delete an order, optionally giving its stock back.

        A cancelled order already had its stock restored, so ``restore_stock``
        is ignored for it.
        """
        order = self.get(order_id, caller)
        if not self.orders.soft_delete(order.id):
            raise NotFoundError("ORDER_NOT_FOUND", "Order not found")
        if restore_stock and order.status is not OrderStatus.CANCELLED:
            self._release_all(order.items)
        logger.info("order deleted", extra={"order_id": str(order.id), "restore_stock": restore_stock})

    # -- helpers --
    def _instrument_for(self, new: NewOrder, customer: Customer) -> Optional[PaymentInstrument]:
        if new.payment_method not in CARD_METHODS:
            return None
        if new.card_data is None:
            raise ValidationError("CARD_DATA_REQUIRED", "Card data is required for card payments")
        if not isinstance(new.billing_address, dict):
            raise ValidationError(
                "BILLING_ADDRESS_REQUIRED", "A structured billing address is required for card payments"
            )
        if not customer.email:
            raise ValidationError("CUSTOMER_EMAIL_REQUIRED", "Customer email is required for card payments")

        document = _digits(new.card_data.document)
        if len(document) < 11:
            document = _digits(customer.document)
        if len(document) < 11:
            raise ValidationError(
                "CUSTOMER_DOCUMENT_REQUIRED", "Customer document (CPF) is required for card payments"
            )

        info = {
            "external_id": str(customer.id),
            "name": customer.name,
            "email": customer.email,
            "type": "individual",
            "country": "br",
            "documents": [{"type": "cpf", "number": document}],
        }
        phone = _digits(new.card_data.phone)
        if len(phone) < 10:
            phone = _digits(customer.phone)
        if len(phone) >= 10:
            info["phone_numbers"] = [phone]

        return PaymentInstrument(
            method=new.payment_method,
            card=new.card_data,
            billing_address=new.billing_address,
            customer=info,
        )

    def _reserve_all(self, lines: List[CartLine]) -> List[CartLine]:
        reserved: List[CartLine] = []
        try:
            for line in lines:
                if self.inventory.reserve(line.product_id, line.quantity):
                    reserved.append(line)
        except Exception:
            self._release_all(reserved)
            raise
        return reserved

    def _release_all(self, lines) -> None:
        # Every line is attempted; a failed release is logged, never raised.
        failed = 0
        for line in reversed(list(lines)):
            try:
                self.inventory.release(line.product_id, line.quantity)
            except Exception:
                failed += 1
                logger.exception(
                    "stock release failed",
                    extra={"product_id": str(line.product_id), "quantity": line.quantity},
                )
        if lines:
            logger.info("stock released", extra={"items": len(lines) - failed, "failed": failed})

    def _charge(self, order_id, aggregate: OrderAggregate, instrument: Optional[PaymentInstrument], user_id):
        if instrument is None:
            return None, PaymentStatus.PENDING

        amount_cents = to_cents(aggregate.total)
        if amount_cents <= 0:
            raise PaymentError("INVALID_AMOUNT", "Order total must be positive to be charged")

        result = self.payments.charge(
            amount_cents,
            self.currency,
            instrument,
            split=self.split.rules() if self.split else None,
            metadata={"order_id": str(order_id), "user_id": str(user_id)},
            items=[
                {
                    "code": str(line.product_id),
                    "quantity": line.quantity,
                    "unit_price_cents": to_cents(line.unit_price),
                }
                for line in aggregate.lines
            ],
        )
        try:
            status = payment_status_from_gateway(result.status)
        except PaymentError:
            logger.warning(
                "payment refused",
                extra={"order_id": str(order_id), "transaction_id": result.transaction_id, "status": result.status},
            )
            raise
        return result, status

    def _refund_for_cancellation(self, order: Order) -> PaymentStatus:
        if order.payment_status in (PaymentStatus.PAID, PaymentStatus.AUTHORIZED) and order.payment_transaction_id:
            self.payments.refund(order.payment_transaction_id)
            return PaymentStatus.REFUNDED
        return order.payment_status

    def _refund_after_failure(self, transaction_id: str) -> None:
        try:
            self.payments.refund(transaction_id)
        except PaymentError:
            logger.exception("refund after failed order persistence did not succeed", extra={"transaction_id": transaction_id})
