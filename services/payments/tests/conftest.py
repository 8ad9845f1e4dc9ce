import os
import sys
from pathlib import Path

import pytest

SERVICE_DIR = Path(__file__).resolve().parent.parent
# repo.py builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite://"
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))


@pytest.fixture
def sandbox():
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def charge_body():
    def _body(number="4111111111111111", amount_cents=1500, **extra):
        body = {
            "amount_cents": amount_cents,
            "currency": "BRL",
            "payment_method": "credit_card",
            "card": {"number": number, "holder_name": "Alice", "expiration_date": "1230", "cvv": "123"},
            "customer": {"name": "Alice", "email": "alice@example.com"},
            "metadata": {"order_id": "order-1"},
        }
        body.update(extra)
        return body

    return _body
