"""API tests for reading, listing, updating, cancelling and deleting orders."""
import pytest

from apps.catalog.models import Product
from apps.orders.models import OrderModel

ORDERS_URL = "/api/orders/"


@pytest.fixture
def place(api, make_product):
    """Create a non-card order through the API and return its payload."""

    def _place(u, product=None, quantity=1):
        product = product or make_product(quantity=10)
        r = api.as_user(u).post(
            ORDERS_URL, {"items": [{"product_id": str(product.id), "quantity": quantity}], "payment_method": "pix"}
        )
        assert r.status_code == 201, r.json()
        return r.json()["data"]

    return _place


@pytest.mark.django_db
def test_read_own_order(api, user, place):
    order = place(user)
    r = api.as_user(user).get(f"{ORDERS_URL}{order['id']}/")
    assert r.status_code == 200
    assert r.json()["data"]["id"] == order["id"]
    assert r.json()["message"] == "Order retrieved successfully"


@pytest.mark.django_db
def test_read_other_users_order_is_forbidden(api, user, other_user, staff_user, place):
    order = place(user)
    r = api.as_user(other_user).get(f"{ORDERS_URL}{order['id']}/")
    assert r.status_code == 403
    assert r.json()["error"] == "ORDER_FORBIDDEN"

    assert api.as_user(staff_user).get(f"{ORDERS_URL}{order['id']}/").status_code == 200


@pytest.mark.django_db
def test_hidden_foreign_orders_answer_404(api, settings, user, other_user, place):
    settings.ORDERS_HIDE_FOREIGN_ORDERS = True
    order = place(user)
    assert api.as_user(other_user).get(f"{ORDERS_URL}{order['id']}/").status_code == 404


@pytest.mark.django_db
def test_read_missing_order_is_404(api, user):
    import uuid

    r = api.as_user(user).get(f"{ORDERS_URL}{uuid.uuid4()}/")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Order not found", "error": "ORDER_NOT_FOUND"}


@pytest.mark.django_db
def test_list_orders_paginates_own_orders(api, user, other_user, staff_user, place):
    first = place(user)
    second = place(user)
    place(other_user)

    r = api.as_user(user).get(ORDERS_URL, {"limit": 1})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "total_pages": 2}
    assert data["orders"][0]["id"] == second["id"]

    page2 = api.as_user(user).get(ORDERS_URL, {"limit": 1, "page": 2}).json()["data"]
    assert page2["orders"][0]["id"] == first["id"]

    everyone = api.as_user(staff_user).get(ORDERS_URL).json()["data"]
    assert everyone["pagination"]["total"] == 3
    only_other = api.as_user(staff_user).get(ORDERS_URL, {"user_id": other_user.pk}).json()["data"]
    assert only_other["pagination"]["total"] == 1


@pytest.mark.django_db
def test_list_rejects_bad_query(api, user):
    r = api.as_user(user).get(ORDERS_URL, {"limit": 0})
    assert r.status_code == 400


@pytest.mark.django_db
def test_update_order(api, user, place):
    order = place(user)
    url = f"{ORDERS_URL}{order['id']}/"

    r = api.as_user(user).put(url, {"status": "completed", "tracking_number": "BR123", "notes": "ok"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "completed"
    assert data["tracking_number"] == "BR123"

    r = api.as_user(user).put(url, {"status": "pending"})
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_STATUS_TRANSITION"


@pytest.mark.django_db
def test_update_rejects_unknown_fields(api, user, place):
    order = place(user)
    r = api.as_user(user).put(f"{ORDERS_URL}{order['id']}/", {"total": "0.01"})
    assert r.status_code == 400
    assert OrderModel.objects.get(id=order["id"]).total != 0


@pytest.mark.django_db
def test_cancel_restores_stock_once(api, user, make_product, place):
    mat = make_product(quantity=5)
    order = place(user, mat, 3)
    url = f"{ORDERS_URL}{order['id']}/cancel/"

    r = api.as_user(user).post(url)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "cancelled"
    assert Product.objects.get(id=mat.id).quantity == 5

    again = api.as_user(user).post(url)
    assert again.status_code == 400
    assert again.json()["error"] == "ORDER_ALREADY_CANCELLED"
    assert Product.objects.get(id=mat.id).quantity == 5


@pytest.mark.django_db
def test_cancel_other_users_order_is_forbidden(api, user, other_user, make_product, place):
    mat = make_product(quantity=5)
    order = place(user, mat, 2)
    r = api.as_user(other_user).post(f"{ORDERS_URL}{order['id']}/cancel/")
    assert r.status_code == 403
    assert Product.objects.get(id=mat.id).quantity == 3


@pytest.mark.django_db
@pytest.mark.parametrize("restore, expected", [(True, 5), (False, 3)])
def test_delete_order(api, user, make_product, place, restore, expected):
    mat = make_product(quantity=5)
    order = place(user, mat, 2)
    url = f"{ORDERS_URL}{order['id']}/"

    r = api.as_user(user).delete(url, {"restore_stock": restore})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert Product.objects.get(id=mat.id).quantity == expected

    assert api.as_user(user).get(url).status_code == 404
    assert OrderModel.all_objects.get(id=order["id"]).deleted_at is not None


@pytest.mark.django_db
def test_validate_cart(api, user, make_product):
    ok = make_product(quantity=5)
    empty = make_product(name="Empty", quantity=0)
    short = make_product(name="Short", quantity=2)

    r = api.as_user(user).post(
        f"{ORDERS_URL}validate-cart/",
        {
            "items": [
                {"product_id": str(ok.id), "quantity": 5},
                {"product_id": str(empty.id), "quantity": 2},
                {"product_id": str(short.id), "quantity": 5},
            ]
        },
    )

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["valid"] is False
    assert [i["product_id"] for i in data["valid_items"]] == [str(ok.id)]
    invalid = {i["product_id"]: i for i in data["invalid_items"]}
    assert invalid[str(empty.id)]["reason"] == "out_of_stock"
    assert invalid[str(empty.id)]["available_quantity"] == 0
    assert invalid[str(short.id)]["reason"] == "insufficient_stock"
    assert invalid[str(short.id)]["requested_quantity"] == 5
    assert Product.objects.get(id=ok.id).quantity == 5
