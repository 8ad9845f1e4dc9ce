import json
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache

from apps.catalog.models import Product


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False


@pytest.fixture(autouse=True)
def reset_throttles():
    # Throttle history lives in the cache; keep tests independent.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="alice", email="alice@example.com", password="x", first_name="Alice", last_name="Silva"
    )


@pytest.fixture
def other_user(db):
    return get_user_model().objects.create_user(username="bob", email="bob@example.com", password="x")


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="staff", email="staff@example.com", password="x", is_staff=True
    )


@pytest.fixture
def make_product(db):
    def _make(**kwargs):
        data = {"name": "Yoga mat", "price": Decimal("50.00"), "quantity": 10}
        data.update(kwargs)
        return Product.objects.create(**data)

    return _make


@pytest.fixture
def api(client):
    """Django test client speaking JSON as a given user.

    Usage: ``api.as_user(user).post(url, {...})``.
    """

    class Api:
        def __init__(self):
            self.headers = {}

        def as_user(self, u):
            self.headers = {"HTTP_X_USER_ID": str(u.pk)} if u is not None else {}
            return self

        def get(self, url, params=None):
            return client.get(url, params or {}, **self.headers)

        def post(self, url, body=None):
            return client.post(url, json.dumps(body or {}), content_type="application/json", **self.headers)

        def put(self, url, body=None):
            return client.put(url, json.dumps(body or {}), content_type="application/json", **self.headers)

        def delete(self, url, body=None):
            return client.delete(url, json.dumps(body or {}), content_type="application/json", **self.headers)

    return Api()


@pytest.fixture
def card_payload():
    return {
        "payment_method": "credit_card",
        "card_data": {
            "number": "4111111111111111",
            "holder_name": "Alice Silva",
            "expiration_date": "1230",
            "cvv": "123",
            "document": "123.456.789-09",
            "phone": "11 99999-0000",
        },
        "billing_address": {
            "country": "br",
            "state": "SP",
            "city": "Sao Paulo",
            "neighborhood": "Centro",
            "street": "Rua A",
            "street_number": "100",
            "zipcode": "01001-000",
        },
    }
