"""Health endpoint, response envelope basics and timestamp storage."""
from datetime import timedelta
from decimal import Decimal

from fastapi.testclient import TestClient

from app.core.clock import utcnow
from app.models import Order, PaymentMethod


def test_health_returns_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j.get("status") == "ok"
    assert j.get("database") == "ok"
    assert r.headers.get("X-Request-ID")


def test_invalid_token_is_unauthorized(client: TestClient):
    r = client.get("/api/orders/1", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    j = r.json()
    assert j["success"] is False
    assert j["code"] == "E_UNAUTHORIZED"


def test_timestamps_are_stored_as_naive_utc(db, customer, products):
    order = Order(user_id=customer.id, payment_method=PaymentMethod.PIX, total=Decimal("50.00"), paid_at=utcnow())
    db.add(order)
    db.commit()
    db.expire_all()

    stored = db.get(Order, order.id)
    assert stored.created_at.tzinfo is None
    assert stored.paid_at.tzinfo is None
    assert abs(utcnow() - stored.created_at) < timedelta(minutes=1)
