"""Payment gateway wiring and the Mercado Pago / Stripe providers without network access."""
import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace
from urllib.error import HTTPError

import pytest
import stripe
from sqlmodel import select

from app.core.config import settings
from app.core.exceptions import PaymentConfigurationError, PaymentProviderError, WebhookSignatureError
from app.models import Order, OrderItem, OrderPaymentStatus, PaymentMethod, PaymentProviderType, Product, User
from app.services.orders import create_order
from app.services.payments import (
    MercadoPagoProvider,
    PaymentGateway,
    StripeCheckoutProvider,
    WebhookOutcome,
    build_payment_gateway,
)
from app.services.payments import mercado_pago


def _order(method=PaymentMethod.PIX, total="90.00", discount="0"):
    order = Order(
        id=7,
        user_id=3,
        payment_method=method,
        total=Decimal(total),
        discount=Decimal(discount),
    )
    order.items = [
        OrderItem(product_id=1, quantity=2, price=Decimal("45.00"), product=Product(id=1, name="Tea", price=Decimal("45.00")))
    ]
    return order


PAYER = User(id=3, email="buyer@example.com", full_name="Buyer")


# --- gateway -----------------------------------------------------------------


def test_every_provider_type_must_be_configured(gateway):
    with pytest.raises(PaymentConfigurationError):
        PaymentGateway({PaymentProviderType.STRIPE: gateway.provider(PaymentProviderType.STRIPE)})


def test_method_routing(gateway):
    assert gateway.provider_for_method(PaymentMethod.PIX).provider_type == PaymentProviderType.MERCADO_PAGO
    assert gateway.provider_for_method("MERCADO_PAGO").provider_type == PaymentProviderType.MERCADO_PAGO
    assert gateway.provider_for_method(PaymentMethod.STRIPE).provider_type == PaymentProviderType.STRIPE
    with pytest.raises(PaymentConfigurationError):
        gateway.provider_for_method(PaymentMethod.CREDIT_CARD)


def test_enabled_methods_are_checked_at_startup():
    build_payment_gateway(settings, ["PIX", "STRIPE"])
    with pytest.raises(PaymentConfigurationError):
        build_payment_gateway(settings, ["PIX", "DEBIT_CARD"])
    with pytest.raises(PaymentConfigurationError):
        build_payment_gateway(settings, ["BITCOIN"])


# --- Mercado Pago ------------------------------------------------------------


@pytest.fixture
def mp():
    return MercadoPagoProvider(access_token="TEST-token", public_app_url="https://shop.test/")


def test_pix_payment(mp, monkeypatch):
    calls = []

    def fake_request(method, path, body=None, idempotency_key=None):
        calls.append((method, path, body, idempotency_key))
        return {
            "id": 123456,
            "status": "pending",
            "external_reference": "7",
            "point_of_interaction": {"transaction_data": {"qr_code": "000201pix", "qr_code_base64": "aGVsbG8="}},
        }

    monkeypatch.setattr(mp, "_request", fake_request)
    result = mp.create_payment(_order(), PAYER)
    method, path, body, key = calls[0]
    assert (method, path) == ("POST", "/v1/payments")
    assert body["payment_method_id"] == "pix"
    assert body["transaction_amount"] == 90.0
    assert body["external_reference"] == "7"
    assert body["notification_url"] == "https://shop.test/api/webhooks/mercado-pago"
    assert key
    assert result.id == "123456"
    assert result.qr_code == "000201pix"
    assert result.qr_code_base64 == "aGVsbG8="


def test_pix_rejects_amount_below_one_cent(mp, monkeypatch):
    monkeypatch.setattr(mp, "_request", lambda *a, **k: pytest.fail("must not call the API"))
    with pytest.raises(PaymentProviderError):
        mp.create_payment(_order(total="0.00"), PAYER)


def test_checkout_preference(mp, monkeypatch):
    calls = []

    def fake_request(method, path, body=None, idempotency_key=None):
        calls.append((method, path, body))
        return {"id": "pref-1", "init_point": "https://mp.test/init", "sandbox_init_point": "https://mp.test/sandbox"}

    monkeypatch.setattr(mp, "_request", fake_request)
    result = mp.create_payment(_order(method=PaymentMethod.MERCADO_PAGO), PAYER)
    _, path, body = calls[0]
    assert path == "/checkout/preferences"
    assert body["items"][0]["title"] == "Tea"
    assert body["items"][0]["quantity"] == 2
    assert result.preference_id == "pref-1"
    assert result.init_point == "https://mp.test/init"
    assert result.sandbox_init_point == "https://mp.test/sandbox"


def test_discounted_preference_charges_the_total(mp, monkeypatch):
    captured = {}
    monkeypatch.setattr(mp, "_request", lambda m, p, body=None, idempotency_key=None: captured.update(body) or {"id": "p"})
    mp.create_payment(_order(method=PaymentMethod.MERCADO_PAGO, total="80.00", discount="10.00"), PAYER)
    assert [(i["quantity"], i["unit_price"]) for i in captured["items"]] == [(1, 80.0)]


def test_timeout_becomes_provider_error(mp, monkeypatch):
    def boom(req, timeout):
        raise TimeoutError("timed out")

    monkeypatch.setattr(mercado_pago, "urlopen", boom)
    with pytest.raises(PaymentProviderError):
        mp.get_payment("1")


class _Response:
    def __init__(self, raw: bytes):
        self._raw = raw

    def read(self):
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.mark.parametrize("raw", [b"<html>bad gateway</html>", b"[1, 2]", b"\xff\xfe"])
def test_unusable_response_becomes_provider_error(mp, monkeypatch, raw):
    monkeypatch.setattr(mercado_pago, "urlopen", lambda req, timeout: _Response(raw))
    with pytest.raises(PaymentProviderError):
        mp.create_payment(_order(), PAYER)


def test_order_survives_unusable_provider_response(db, notifier, customer, products, gateway, monkeypatch):
    live = PaymentGateway({
        PaymentProviderType.MERCADO_PAGO: MercadoPagoProvider(access_token="TEST", public_app_url="https://shop.test"),
        PaymentProviderType.STRIPE: gateway.provider(PaymentProviderType.STRIPE),
    })
    monkeypatch.setattr(mercado_pago, "urlopen", lambda req, timeout: _Response(b"<html>bad gateway</html>"))

    order = create_order(db, live, notifier, customer, [SimpleNamespace(product_id=products[0].id, quantity=1)], "PIX")

    assert order.payment_status == OrderPaymentStatus.PENDING
    assert order.payment is None
    assert len(db.exec(select(Order)).all()) == 1
    assert notifier.count("confirmation") == 1


def test_cancel_of_unknown_payment_is_a_no_op(mp, monkeypatch):
    def not_found(req, timeout):
        raise HTTPError(req.full_url, 404, "Not Found", None, None)

    monkeypatch.setattr(mercado_pago, "urlopen", not_found)
    assert mp.cancel_payment("999")["status"] == "cancelled"


def test_cancel_other_http_errors_propagate(mp, monkeypatch):
    def server_error(req, timeout):
        raise HTTPError(req.full_url, 500, "Server Error", None, None)

    monkeypatch.setattr(mercado_pago, "urlopen", server_error)
    with pytest.raises(PaymentProviderError):
        mp.cancel_payment("999")


def test_mp_webhook_fetches_payment(mp, monkeypatch):
    monkeypatch.setattr(mp, "get_payment", lambda pid: {"id": pid, "status": "approved", "external_reference": "7"})
    event = mp.verify_webhook(json.dumps({"type": "payment", "data": {"id": "55"}}).encode(), {})
    assert mp.process_webhook(event) == WebhookOutcome(order_id="7", status="approved")


def test_mp_webhook_ignores_other_topics(mp):
    assert mp.process_webhook({"type": "merchant_order", "data": {"id": "1"}}) is None
    assert mp.process_webhook({}) is None


def test_mp_webhook_signature():
    secret = "mp-secret"
    mp = MercadoPagoProvider(access_token="t", public_app_url="https://shop.test", webhook_secret=secret)
    body = json.dumps({"type": "payment", "data": {"id": "55"}}).encode()
    manifest = "id:55;request-id:req-1;ts:1700000000;"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    headers = {"x-signature": f"ts=1700000000,v1={digest}", "x-request-id": "req-1"}
    assert mp.verify_webhook(body, headers)["data"]["id"] == "55"

    with pytest.raises(WebhookSignatureError):
        mp.verify_webhook(body, {**headers, "x-signature": "ts=1700000000,v1=deadbeef"})
    with pytest.raises(WebhookSignatureError):
        mp.verify_webhook(body, {})


# --- Stripe ------------------------------------------------------------------


def _fake_stripe_client(create=None, expire=None):
    sessions = SimpleNamespace(
        create=create or (lambda params: SimpleNamespace(id="cs_test_1", url="https://stripe.test/cs_test_1")),
        retrieve=lambda session_id: {"id": session_id},
        expire=expire or (lambda session_id: {"id": session_id, "status": "expired"}),
    )
    return SimpleNamespace(checkout=SimpleNamespace(sessions=sessions))


def _stripe(client=None):
    return StripeCheckoutProvider(
        api_key="sk_test_x",
        webhook_secret="whsec_unit",
        public_app_url="https://shop.test",
        client=client or _fake_stripe_client(),
    )


def test_stripe_checkout_session():
    captured = {}

    def create(params):
        captured.update(params)
        return SimpleNamespace(id="cs_test_1", url="https://stripe.test/cs_test_1")

    result = _stripe(_fake_stripe_client(create=create)).create_payment(_order(method=PaymentMethod.STRIPE), PAYER)
    assert result.id == "cs_test_1"
    assert result.checkout_url == "https://stripe.test/cs_test_1"
    assert captured["metadata"]["order_id"] == "7"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 4500
    assert captured["success_url"] == "https://shop.test/checkout/7?success=true"


def test_stripe_api_error_becomes_provider_error():
    def create(params):
        raise stripe.APIConnectionError("network down")

    with pytest.raises(PaymentProviderError):
        _stripe(_fake_stripe_client(create=create)).create_payment(_order(method=PaymentMethod.STRIPE), PAYER)


def test_stripe_cancel_missing_session_is_a_no_op():
    def expire(session_id):
        raise stripe.InvalidRequestError("No such checkout.session", "id", code="resource_missing")

    assert _stripe(_fake_stripe_client(expire=expire)).cancel_payment("cs_gone")["status"] == "expired"


def _signed(payload: str, secret: str = "whsec_unit") -> dict:
    ts = int(time.time())
    sig = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"stripe-signature": f"t={ts},v1={sig}"}


def _stripe_event(event_type, **session):
    return json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": "cs_test_1", "object": "checkout.session", "metadata": {"order_id": "7"}, **session}},
    })


def test_stripe_signature_verification():
    provider = _stripe()
    payload = _stripe_event("checkout.session.completed", payment_status="paid")
    event = provider.verify_webhook(payload.encode(), _signed(payload))
    assert provider.process_webhook(event) == WebhookOutcome(order_id="7", status="approved")

    with pytest.raises(WebhookSignatureError):
        provider.verify_webhook(payload.encode(), _signed(payload, secret="whsec_other"))
    with pytest.raises(WebhookSignatureError):
        provider.verify_webhook(payload.encode(), {})


@pytest.mark.parametrize(
    "event_type,session,expected",
    [
        ("checkout.session.completed", {"payment_status": "paid"}, "approved"),
        ("checkout.session.completed", {"payment_status": "unpaid"}, None),
        ("checkout.session.async_payment_succeeded", {}, "approved"),
        ("checkout.session.expired", {}, "rejected"),
        ("checkout.session.async_payment_failed", {}, "rejected"),
        ("customer.created", {}, None),
    ],
)
def test_stripe_event_mapping(event_type, session, expected):
    event = json.loads(_stripe_event(event_type, **session))
    outcome = _stripe().process_webhook(event)
    assert (outcome.status if outcome else None) == expected
