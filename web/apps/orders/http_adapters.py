"""HTTP adapter client for the payment gateway, with a circuit breaker.

This module implements the concrete ``PaymentsPort`` using ``httpx``. It
adds:

- Request correlation: propagates ``X-Request-ID`` from a ContextVar set by
    the gateway middleware.
- A circuit breaker in front of the gateway to avoid hammering an unhealthy
    dependency, with HALF_OPEN probing after a timeout.
- Error mapping: every failure (transport, timeout, 4xx, 5xx, open circuit)
    surfaces as ``PaymentError`` so the domain can compensate.

Calls are made exactly once. A charge is not safe to resend, so retrying is
left to the client of the API.
"""

import time
import threading
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings
from django.utils.module_loading import import_string

from .domain import ChargeResult, PaymentInstrument, PaymentsPort
from .errors import PaymentError

REQUEST_ID_CTX = import_string("gateway.middleware.REQUEST_ID_CTX")


# ---------------- Circuit Breaker ---------------- #

class CircuitOpenError(RuntimeError):
    pass


class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; stays HALF_OPEN while a
      single probe is in flight; transitions back to OPEN on failure.

    This implementation is thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        """Current breaker state with time-based transition handling."""
        with self._lock:
            # auto-transition OPEN -> HALF_OPEN after timeout elapses
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check and update state before a protected call.

        Returns:
            str: The state at call time.

        Raises:
            CircuitOpenError: If the circuit is OPEN or a HALF_OPEN probe is
                already in flight.
        """
        with self._lock:
            st = self.state  # force evaluation of time-based transition
            if st == "OPEN":
                raise CircuitOpenError("CIRCUIT_OPEN")
            if st == "HALF_OPEN":
                # allow only one concurrent probe
                if self._half_open_probe_in_flight:
                    raise CircuitOpenError("CIRCUIT_HALF_OPEN_BUSY")
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        """Record a successful call and close/reset the breaker."""
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        """Record a failed call and open the breaker if threshold exceeded."""
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (self._failures >= self.fail_threshold and self._state != "OPEN"):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        """Release any HALF_OPEN probe flag after a call finishes."""
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


payments_cb = CircuitBreaker(
    "payments",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras.

    Args:
        extra: Optional dict of additional headers to include.

    Returns:
        dict: Final headers dictionary for the outgoing request.
    """
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _card_payload(instrument: PaymentInstrument) -> Dict[str, Any]:
    card = instrument.card
    return {
        "number": card.number.replace(" ", ""),
        "holder_name": card.holder_name,
        "expiration_date": card.expiration_date,
        "cvv": card.cvv,
    }


# ---------------- Payments Adapter ---------------- #

class HttpPaymentsClient(PaymentsPort):
    """HTTP client for the payment gateway with a circuit breaker.

    Business mappings for every endpoint:
    - 200 → ``ChargeResult`` built from ``transaction_id`` and ``status``.
      A body that is not JSON or lacks ``transaction_id`` is treated like a
      5xx.
    - 4xx → ``PaymentError('PAYMENT_REJECTED')``; a business outcome, it
      does not count as a circuit failure.
    - 5xx, transport errors, timeouts → ``PaymentError
      ('PAYMENT_GATEWAY_UNAVAILABLE')`` and a circuit failure.
    - Open circuit → ``PaymentError('PAYMENT_GATEWAY_UNAVAILABLE')`` without
      calling the gateway.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.PAYMENTS_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def charge(
        self,
        amount_cents: int,
        currency: str,
        instrument: PaymentInstrument,
        split: Optional[List[Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        items: Optional[List[Dict[str, Any]]] = None,
    ) -> ChargeResult:
        """Charge a card.

        Args:
            amount_cents: Payment amount in minor units (cents), positive integer.
            currency: Three-letter ISO currency code (e.g., BRL).
            instrument: Card, billing address and customer data.
            split: Optional split rules routing part of the charge.
            metadata: Free-form metadata stored with the transaction.
            items: Line items shown on the gateway's transaction.

        Returns:
            ChargeResult: transaction id and raw gateway status.

        Raises:
            PaymentError: For any gateway failure.
        """
        payload: Dict[str, Any] = {
            "amount_cents": amount_cents,
            "currency": currency,
            "payment_method": instrument.method,
            "card": _card_payload(instrument),
            "customer": instrument.customer,
            "billing": {"name": instrument.customer.get("name"), "address": instrument.billing_address},
            "items": items or [],
            "metadata": metadata or {},
        }
        if split:
            payload["split"] = split
        return self._post("/charges", payload)

    def capture(self, transaction_id: str) -> ChargeResult:
        return self._post(f"/charges/{transaction_id}/capture", {})

    def refund(self, transaction_id: str, amount_cents: Optional[int] = None) -> ChargeResult:
        payload = {} if amount_cents is None else {"amount_cents": amount_cents}
        return self._post(f"/charges/{transaction_id}/refund", payload)

    def _post(self, path: str, payload: Dict[str, Any]) -> ChargeResult:
        try:
            state = payments_cb.before_call()
        except CircuitOpenError as e:
            raise PaymentError("PAYMENT_GATEWAY_UNAVAILABLE", f"Payment gateway unavailable ({e})")
        headers = _request_headers({"X-Circuit-State": state})

        try:
            with httpx.Client(timeout=self.timeout) as client:
                try:
                    resp = client.post(f"{self.base_url}{path}", json=payload, headers=headers)
                except httpx.RequestError as e:
                    payments_cb.on_failure()
                    raise PaymentError("PAYMENT_GATEWAY_UNAVAILABLE", f"Payment gateway unreachable: {e}") from e

                if resp.status_code == 200:
                    try:
                        data = resp.json()
                    except ValueError as e:
                        payments_cb.on_failure()
                        raise PaymentError(
                            "PAYMENT_GATEWAY_UNAVAILABLE", "Payment gateway returned an unreadable response"
                        ) from e
                    if not isinstance(data, dict) or not data.get("transaction_id"):
                        payments_cb.on_failure()
                        raise PaymentError(
                            "PAYMENT_GATEWAY_UNAVAILABLE", "Payment gateway response has no transaction id"
                        )
                    payments_cb.on_success()
                    return ChargeResult(
                        transaction_id=str(data["transaction_id"]),
                        status=str(data.get("status") or ""),
                    )
                if 400 <= resp.status_code < 500:
                    payments_cb.on_success()  # business outcome, not a circuit failure
                    raise PaymentError("PAYMENT_REJECTED", f"Payment gateway rejected the request ({resp.status_code})")

                payments_cb.on_failure()
                raise PaymentError(
                    "PAYMENT_GATEWAY_UNAVAILABLE", f"Payment gateway error ({resp.status_code})"
                )
        finally:
            payments_cb.on_finish()
