"""In-process stub adapters for the orders domain ports.

These stubs implement ``InventoryPort`` and ``PaymentsPort`` without any
network or database calls. They are intended for unit tests and local
development where deterministic behavior is useful and the payment gateway
is not available.
"""

import threading
import uuid
from typing import Dict, List, Optional

from .domain import ChargeResult, InventoryPort, PaymentInstrument, PaymentsPort
from .errors import InsufficientStockError, NotFoundError, PaymentError

DECLINED_CARD_SUFFIX = "0002"


class InMemoryInventory(InventoryPort):
    """Dict-backed ledger with the same contract as ``OrmInventoryLedger``.

    Args:
        stock: Initial quantity per product id. ``None`` marks a product as
            exempt from stock management (unlimited or external).
    """

    def __init__(self, stock: Optional[Dict[uuid.UUID, Optional[int]]] = None):
        self.stock: Dict[uuid.UUID, Optional[int]] = dict(stock or {})
        self._lock = threading.Lock()

    def reserve(self, product_id: uuid.UUID, quantity: int) -> bool:
        with self._lock:
            if product_id not in self.stock:
                raise NotFoundError("PRODUCT_NOT_FOUND", f"Product {product_id} not found")
            available = self.stock[product_id]
            if available is None:
                return False
            if available < quantity:
                raise InsufficientStockError(product_id=product_id, requested=quantity, available=available)
            self.stock[product_id] = available - quantity
            return True

    def release(self, product_id: uuid.UUID, quantity: int) -> None:
        with self._lock:
            if self.stock.get(product_id) is not None:
                self.stock[product_id] += quantity


class PaymentsStub(PaymentsPort):
    """Stub implementation of ``PaymentsPort``.

    Approves charges with a positive amount and returns a generated UUID
    as the transaction id. Cards whose number ends in ``0002`` are refused,
    mirroring the gateway's test cards. Every call is recorded in
    ``charges`` / ``captures`` / ``refunds`` so tests can assert on them.
    """

    def __init__(self):
        self.charges: List[dict] = []
        self.captures: List[str] = []
        self.refunds: List[str] = []

    def charge(
        self,
        amount_cents: int,
        currency: str,
        instrument: PaymentInstrument,
        split=None,
        metadata=None,
        items=None,
    ) -> ChargeResult:
        """Charge a mock payment.

        Returns:
            ChargeResult with status ``paid``, or ``refused`` for declined
            test cards.

        Raises:
            PaymentError: When ``amount_cents`` is not positive.
        """
        if amount_cents <= 0:
            raise PaymentError("PAYMENT_REJECTED", "Amount must be positive")
        tx = str(uuid.uuid4())
        number = instrument.card.number.replace(" ", "")
        status = "refused" if number.endswith(DECLINED_CARD_SUFFIX) else "paid"
        self.charges.append(
            {
                "transaction_id": tx,
                "amount_cents": amount_cents,
                "currency": currency,
                "split": split,
                "metadata": metadata,
                "items": items,
                "status": status,
            }
        )
        return ChargeResult(transaction_id=tx, status=status)

    def capture(self, transaction_id: str) -> ChargeResult:
        self.captures.append(transaction_id)
        return ChargeResult(transaction_id=transaction_id, status="paid")

    def refund(self, transaction_id: str, amount_cents: Optional[int] = None) -> ChargeResult:
        self.refunds.append(transaction_id)
        return ChargeResult(transaction_id=transaction_id, status="refunded")
