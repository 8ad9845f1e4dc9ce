"""Payment gateway sandbox built with FastAPI.

A local stand-in for the card gateway used by the orders web service in
development and integration environments. It accepts the same payloads the
``HttpPaymentsClient`` sends and answers with a transaction id and a gateway
status. Test cards drive the outcome:

- numbers ending in ``0002`` are refused;
- numbers ending in ``0003`` are authorized only and need a capture;
- every other number is paid right away.

Validation is performed with Pydantic models, while persistence is delegated
to the SQLAlchemy-backed repository in ``repo.PaymentsRepo``.
"""

import contextvars
import logging
import os
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, constr, field_validator
from pythonjsonlogger import jsonlogger
from sqlalchemy import text

from repo import PaymentsRepo, Transaction, TransactionStateError, TxStatus, engine, init_db

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
REFUSED_CARD_SUFFIX = "0002"
AUTHORIZE_ONLY_CARD_SUFFIX = "0003"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True


logger = logging.getLogger("payments")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    h.addFilter(RequestIdFilter())
    logger.addHandler(h)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(title="Payments Sandbox")

Currency = constr(pattern=r"^[A-Z]{3}$")


@app.on_event("startup")
def _startup_db():
    # brief active wait until the DB accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


class CardIn(BaseModel):
    number: str = Field(min_length=13, max_length=19, pattern=r"^\d+$")
    holder_name: str = Field(min_length=1)
    expiration_date: str = Field(pattern=r"^(0[1-9]|1[0-2])\d{2}$")
    cvv: str = Field(pattern=r"^\d{3,4}$")


class SplitRuleIn(BaseModel):
    type: Literal["percentage"]
    amount: Decimal = Field(gt=0, le=100)
    recipient_id: str = Field(min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class ChargeRequest(BaseModel):
    """Request body for the charge endpoint.

    Attributes:
        amount_cents: Positive amount in minor currency units (cents).
        currency: Three-letter ISO currency code (e.g., BRL).
        card: Card to charge; only its last digits are stored.
        customer: Customer payload; ``email`` is required.
        split: Optional percentage split rules, at most 100% in total.
    """

    amount_cents: int = Field(gt=0)
    currency: Currency
    payment_method: Literal["credit_card", "debit_card"]
    card: CardIn
    customer: Dict[str, Any]
    billing: Optional[Dict[str, Any]] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    split: Optional[List[SplitRuleIn]] = None

    @field_validator("customer")
    @classmethod
    def customer_has_email(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v.get("email"):
            raise ValueError("customer email is required")
        return v


class RefundRequest(BaseModel):
    amount_cents: Optional[int] = Field(default=None, gt=0)


class TransactionOut(BaseModel):
    transaction_id: uuid.UUID
    status: str
    amount_cents: int
    refunded_cents: int
    currency: str

    @classmethod
    def from_tx(cls, tx: Transaction) -> "TransactionOut":
        return cls(
            transaction_id=tx.id,
            status=tx.status,
            amount_cents=tx.amount_cents,
            refunded_cents=tx.refunded_cents,
            currency=tx.currency,
        )


def outcome_for_card(number: str) -> str:
    if number.endswith(REFUSED_CARD_SUFFIX):
        return TxStatus.REFUSED
    if number.endswith(AUTHORIZE_ONLY_CARD_SUFFIX):
        return TxStatus.AUTHORIZED
    return TxStatus.PAID


@app.get("/health")
def health():
    """Liveness/health probe endpoint, checking the database."""
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except Exception:
        logger.exception("health check: database unavailable")
        raise HTTPException(status_code=503, detail="DB_UNAVAILABLE")
    return {"ok": True}


@app.post("/charges", response_model=TransactionOut)
def create_charge(req: ChargeRequest):
    """Charge a card.

    A refused card still answers 200 with ``status == "refused"``; callers
    decide what a refusal means for them.

    Raises:
        HTTPException: 400 when the split rules add up to more than 100%.
    """
    splits = req.split or []
    if sum((rule.amount for rule in splits), Decimal("0")) > 100:
        raise HTTPException(status_code=400, detail="SPLIT_OVER_100_PERCENT")

    status = outcome_for_card(req.card.number)
    tx = PaymentsRepo().create_tx(
        amount_cents=req.amount_cents,
        currency=req.currency,
        status=status,
        payment_method=req.payment_method,
        card_last4=req.card.number[-4:],
        customer_email=req.customer.get("email"),
        order_id=str(req.metadata["order_id"]) if req.metadata.get("order_id") else None,
        splits=[rule.model_dump() for rule in splits],
    )
    logger.info(
        "charge processed",
        extra={"transaction_id": str(tx.id), "status": status, "amount_cents": req.amount_cents},
    )
    return TransactionOut.from_tx(tx)


@app.post("/charges/{tx_id}/capture", response_model=TransactionOut)
def capture_charge(tx_id: uuid.UUID):
    try:
        tx = PaymentsRepo().capture(tx_id)
    except TransactionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if tx is None:
        raise HTTPException(status_code=404, detail="TRANSACTION_NOT_FOUND")
    logger.info("charge captured", extra={"transaction_id": str(tx.id)})
    return TransactionOut.from_tx(tx)


@app.post("/charges/{tx_id}/refund", response_model=TransactionOut)
def refund_charge(tx_id: uuid.UUID, req: Optional[RefundRequest] = None):
    amount = req.amount_cents if req else None
    try:
        tx = PaymentsRepo().refund(tx_id, amount)
    except TransactionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if tx is None:
        raise HTTPException(status_code=404, detail="TRANSACTION_NOT_FOUND")
    logger.info("charge refunded", extra={"transaction_id": str(tx.id), "refunded_cents": tx.refunded_cents})
    return TransactionOut.from_tx(tx)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    token = REQUEST_ID_CTX.set(rid)
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"path": request.url.path, "method": request.method})
        REQUEST_ID_CTX.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8002")))
