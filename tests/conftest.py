"""Pytest fixtures: test client, in-memory SQLite reset per test, fake payment providers, seeded users."""
import json
import os
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite for tests (must be set before the app is imported)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPPORTED_PAYMENT_METHODS", "PIX,MERCADO_PAGO,STRIPE")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("SMTP_HOST", "")
# High enough that no test trips the order limiter by accident
os.environ.setdefault("RATE_LIMIT_ORDERS_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "5")

from sqlmodel import Session, SQLModel

from app.api.deps import get_notifier, get_payment_gateway
from app.core.clock import utcnow
from app.core.database import engine
from app.core.exceptions import PaymentProviderError, WebhookSignatureError
from app.core.rate_limit import limiter
from app.core.security import create_access_token
from app.main import app
from app.models import (
    ROLE_ADMIN,
    Coupon,
    CouponDiscountType,
    PaymentMethod,
    PaymentProviderType,
    Product,
    User,
)
from app.services.payments import PaymentGateway, PaymentProvider, PaymentResult, WebhookOutcome


class FakeProvider(PaymentProvider):
    """In-process provider: records calls, can be told to fail."""

    def __init__(self, provider_type: PaymentProviderType):
        self.provider_type = provider_type
        self.created: list[int] = []
        self.cancelled: list[str] = []
        self.fail_create = False

    def create_payment(self, order, payer):
        if self.fail_create:
            raise PaymentProviderError("provider unavailable", provider=self.provider_type.value)
        self.created.append(order.id)
        payment_id = f"{self.provider_type.value.lower()}-{order.id}-{len(self.created)}"
        result = PaymentResult(
            id=payment_id,
            status="pending",
            provider=self.provider_type,
            external_reference=str(order.id),
        )
        if order.payment_method == PaymentMethod.PIX:
            result.qr_code = "00020126pix-copy-paste"
            result.qr_code_base64 = "iVBORw0KGgo="
        else:
            result.checkout_url = f"https://checkout.test/{payment_id}"
        return result

    def get_payment(self, payment_id):
        return {"id": payment_id}

    def cancel_payment(self, payment_id):
        self.cancelled.append(payment_id)
        return {"id": payment_id, "status": "cancelled"}

    def verify_webhook(self, body, headers, params=None):
        if headers.get("x-test-signature") == "bad":
            raise WebhookSignatureError()
        try:
            return json.loads(body or b"{}")
        except ValueError:
            return {}

    def process_webhook(self, event):
        if "order_id" not in event:
            return None
        return WebhookOutcome(order_id=str(event["order_id"]), status=str(event.get("status", "")))


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple] = []

    def send_order_confirmation(self, user, order):
        self.sent.append(("confirmation", order.id))
        return True

    def send_order_cancelled(self, user, order, reason=None, was_paid=False):
        self.sent.append(("cancelled", order.id, reason, was_paid))
        return True

    def send_payment_approved(self, user, order):
        self.sent.append(("approved", order.id))
        return True

    def count(self, kind: str) -> int:
        return sum(1 for entry in self.sent if entry[0] == kind)


@pytest.fixture(autouse=True)
def _reset_db():
    """Fresh schema for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    return PaymentGateway({
        PaymentProviderType.MERCADO_PAGO: FakeProvider(PaymentProviderType.MERCADO_PAGO),
        PaymentProviderType.STRIPE: FakeProvider(PaymentProviderType.STRIPE),
    })


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(gateway, notifier):
    """TestClient with the payment gateway and notifier swapped for fakes."""
    limiter.reset()
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def customer(db):
    user = User(email="buyer@example.com", full_name="Test Buyer")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_customer(db):
    user = User(email="other@example.com", full_name="Other Buyer")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    user = User(email="admin@example.com", full_name="Admin", role=ROLE_ADMIN)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers():
    """auth_headers(user) -> Authorization header carrying a token for that user."""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
    return _headers


@pytest.fixture
def products(db):
    """Two products: 50.00 and 25.00."""
    items = [
        Product(name="Coffee beans", sku="CB-1", price=Decimal("50.00")),
        Product(name="Mug", sku="MG-1", price=Decimal("25.00")),
    ]
    for p in items:
        db.add(p)
    db.commit()
    for p in items:
        db.refresh(p)
    return items


@pytest.fixture
def make_coupon(db):
    """make_coupon(**overrides) -> persisted coupon, valid for one day around now by default."""
    def _make(**overrides) -> Coupon:
        now = utcnow()
        fields = {
            "code": "SAVE10",
            "discount_type": CouponDiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=1),
        }
        fields.update(overrides)
        coupon = Coupon(**fields)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon
    return _make
