"""Coupon HTTP endpoints: storefront lookup and admin maintenance."""
from datetime import timedelta
from decimal import Decimal

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.database import engine
from app.models import Coupon


def _coupon_body(**overrides):
    now = utcnow()
    body = {
        "code": "spring15",
        "description": "Spring sale",
        "discountType": "PERCENTAGE",
        "discountValue": "15",
        "minimumOrderValue": "50",
        "usageLimit": 100,
        "validFrom": (now - timedelta(days=1)).isoformat(),
        "validUntil": (now + timedelta(days=30)).isoformat(),
    }
    body.update(overrides)
    return body


def test_admin_creates_coupon_with_upper_case_code(client, admin, auth_headers):
    r = client.post("/api/coupons", json=_coupon_body(), headers=auth_headers(admin))
    assert r.status_code == 201, r.text
    j = r.json()
    assert j["code"] == "SPRING15"
    assert j["usageCount"] == 0
    assert Decimal(j["discountValue"]) == Decimal("15")


def test_usage_count_cannot_be_set_on_create(client, admin, auth_headers):
    r = client.post("/api/coupons", json=_coupon_body(usageCount=99), headers=auth_headers(admin))
    assert r.status_code == 201, r.text
    assert r.json()["usageCount"] == 0


def test_customer_cannot_manage_coupons(client, customer, auth_headers):
    r = client.post("/api/coupons", json=_coupon_body(), headers=auth_headers(customer))
    assert r.status_code == 403


def test_percentage_over_100_is_invalid(client, admin, auth_headers):
    r = client.post("/api/coupons", json=_coupon_body(discountValue="150"), headers=auth_headers(admin))
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_lookup_by_code(client, make_coupon):
    make_coupon(code="HELLO", minimum_order_value=Decimal("50"))
    r = client.get("/api/coupons/code/hello")
    assert r.status_code == 200, r.text
    assert r.json()["code"] == "HELLO"

    r = client.get("/api/coupons/code/hello", params={"subtotal": "49.99"})
    assert r.status_code == 400
    assert r.json()["code"] == "COUPON_MINIMUM_ORDER_VALUE_NOT_MET"


def test_lookup_unknown_code(client):
    r = client.get("/api/coupons/code/NOPE")
    assert r.status_code == 404
    assert r.json()["code"] == "COUPON_NOT_FOUND"


def test_lookup_inactive_code(client, make_coupon):
    make_coupon(code="OFF", is_active=False)
    assert client.get("/api/coupons/code/OFF").json()["code"] == "COUPON_INACTIVE"


def test_update_rejects_limit_not_above_usage_count(client, admin, auth_headers, make_coupon):
    coupon = make_coupon(usage_limit=10, usage_count=5)
    r = client.patch(f"/api/coupons/{coupon.id}", json={"usageLimit": 5}, headers=auth_headers(admin))
    assert r.status_code == 400
    assert r.json()["code"] == "COUPON_NEW_USAGE_LIMIT_EQUALS_OR_LOWER_THAN_USAGE_COUNT"

    r = client.patch(f"/api/coupons/{coupon.id}", json={"usageLimit": 6, "isActive": False}, headers=auth_headers(admin))
    assert r.status_code == 200, r.text
    assert r.json()["usageLimit"] == 6
    assert r.json()["isActive"] is False


def test_delete_coupon_keeps_orders(client, admin, customer, products, auth_headers, make_coupon):
    coupon = make_coupon()
    body = {"items": [{"productId": products[0].id, "quantity": 1}], "paymentMethod": "PIX", "couponId": coupon.id}
    order_id = client.post("/api/orders", json=body, headers=auth_headers(customer)).json()["id"]

    r = client.delete(f"/api/coupons/{coupon.id}", headers=auth_headers(admin))
    assert r.status_code == 204
    with Session(engine) as s:
        assert s.get(Coupon, coupon.id) is None
    r = client.get(f"/api/orders/{order_id}", headers=auth_headers(customer))
    assert r.status_code == 200
    assert r.json()["couponId"] is None


def test_lookup_is_rate_limited(client, make_coupon):
    make_coupon(code="HELLO")
    for i in range(5):
        r = client.get("/api/coupons/code/HELLO")
        assert r.status_code == 200, f"Request {i + 1} should be 200"
    r = client.get("/api/coupons/code/HELLO")
    assert r.status_code == 429
    assert r.json()["code"] == "E_TOO_MANY_REQUESTS"


def test_lookup_limit_is_per_forwarded_client(client, make_coupon):
    make_coupon(code="HELLO")
    for _ in range(5):
        client.get("/api/coupons/code/HELLO", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    r = client.get("/api/coupons/code/HELLO", headers={"X-Forwarded-For": "203.0.113.7"})
    assert r.status_code == 429
    r = client.get("/api/coupons/code/HELLO", headers={"X-Forwarded-For": "198.51.100.2"})
    assert r.status_code == 200
