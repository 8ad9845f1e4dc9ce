"""Unit tests for the HTTP payment gateway client.

These tests verify that the client builds the gateway payload, propagates
the request id and maps every response class to the right outcome by
monkeypatching ``httpx.Client.post``.
"""
import httpx
import pytest

from apps.orders.domain import CardData, PaymentInstrument
from apps.orders.errors import PaymentError
from apps.orders.http_adapters import HttpPaymentsClient, payments_cb
from gateway.middleware import REQUEST_ID_CTX


class DummyResp:
    """Minimal httpx-like response stub for adapter tests."""

    def __init__(self, status_code=200, json_data=None):
        self.status_code = status_code
        self._json = json_data or {}

    def json(self):
        return self._json


INSTRUMENT = PaymentInstrument(
    method="credit_card",
    card=CardData(number="4111 1111 1111 1111", holder_name="Alice", expiration_date="1230", cvv="123"),
    billing_address={"city": "Sao Paulo", "zipcode": "01001000"},
    customer={"name": "Alice", "email": "alice@example.com"},
)


@pytest.fixture(autouse=True)
def closed_circuit():
    payments_cb.on_success()
    yield
    payments_cb.on_success()


def capture_post(monkeypatch, resp):
    calls = []

    def fake_post(self, url, json=None, headers=None, **kw):
        calls.append({"url": url, "json": json, "headers": headers or {}})
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    return calls


def test_charge_ok_builds_payload(monkeypatch):
    calls = capture_post(monkeypatch, DummyResp(200, {"transaction_id": "tx_1", "status": "paid"}))
    token = REQUEST_ID_CTX.set("rid-123")
    try:
        result = HttpPaymentsClient(base_url="http://payments:8002").charge(
            1500, "BRL", INSTRUMENT, split=[{"recipient_id": "re_1"}], metadata={"order_id": "o1"}
        )
    finally:
        REQUEST_ID_CTX.reset(token)

    assert result.transaction_id == "tx_1"
    assert result.status == "paid"
    (call,) = calls
    assert call["url"] == "http://payments:8002/charges"
    assert call["headers"]["X-Request-ID"] == "rid-123"
    body = call["json"]
    assert body["amount_cents"] == 1500
    assert body["card"]["number"] == "4111111111111111"
    assert body["split"] == [{"recipient_id": "re_1"}]
    assert body["metadata"] == {"order_id": "o1"}
    assert body["billing"]["address"]["city"] == "Sao Paulo"


def test_charge_without_split_omits_it(monkeypatch):
    calls = capture_post(monkeypatch, DummyResp(200, {"transaction_id": "tx_1", "status": "paid"}))
    HttpPaymentsClient(base_url="http://x").charge(100, "BRL", INSTRUMENT)
    assert "split" not in calls[0]["json"]


def test_capture_and_refund_paths(monkeypatch):
    calls = capture_post(monkeypatch, DummyResp(200, {"transaction_id": "tx_9", "status": "refunded"}))
    client = HttpPaymentsClient(base_url="http://x")
    client.capture("tx_9")
    client.refund("tx_9", amount_cents=500)
    assert [c["url"] for c in calls] == ["http://x/charges/tx_9/capture", "http://x/charges/tx_9/refund"]
    assert calls[1]["json"] == {"amount_cents": 500}


def test_4xx_is_rejected(monkeypatch):
    capture_post(monkeypatch, DummyResp(422, {"detail": "bad card"}))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(100, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_REJECTED"


def test_5xx_is_gateway_unavailable(monkeypatch):
    capture_post(monkeypatch, DummyResp(503))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(100, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_GATEWAY_UNAVAILABLE"


def test_network_error_is_gateway_unavailable(monkeypatch):
    capture_post(monkeypatch, httpx.ConnectError("boom"))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(100, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_GATEWAY_UNAVAILABLE"


def test_timeout_is_gateway_unavailable(monkeypatch):
    capture_post(monkeypatch, httpx.ReadTimeout("slow"))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(100, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_GATEWAY_UNAVAILABLE"


def test_non_json_200_is_gateway_unavailable(monkeypatch):
    capture_post(monkeypatch, httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(1500, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_GATEWAY_UNAVAILABLE"
    assert payments_cb._failures == 1


def test_200_without_transaction_id_is_gateway_unavailable(monkeypatch):
    capture_post(monkeypatch, DummyResp(200, {"status": "paid"}))
    with pytest.raises(PaymentError) as e:
        HttpPaymentsClient(base_url="http://x").charge(1500, "BRL", INSTRUMENT)
    assert e.value.code == "PAYMENT_GATEWAY_UNAVAILABLE"
    assert payments_cb._failures == 1
