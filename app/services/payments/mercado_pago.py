"""
Mercado Pago over its REST API: direct PIX payments and Checkout Pro preferences.
Webhook deliveries only carry the payment id, so the status is always fetched back.
"""
import hashlib
import hmac
import json
import logging
import uuid
from collections.abc import Mapping
from decimal import Decimal
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request as UrlRequest
from urllib.request import urlopen

from app.core.exceptions import PaymentProviderError, WebhookSignatureError
from app.models import Order, PaymentMethod, PaymentProviderType, User
from app.services.discount import to_money

from .base import PaymentProvider, PaymentResult, WebhookOutcome

log = logging.getLogger("shopcore.payments.mercado_pago")

MINIMUM_PIX_AMOUNT = Decimal("0.01")
WEBHOOK_PATH = "/api/webhooks/mercado-pago"


class MercadoPagoApiError(PaymentProviderError):
    def __init__(self, status: int, message: str):
        super().__init__(message, provider=PaymentProviderType.MERCADO_PAGO.value)
        self.status = status


class MercadoPagoProvider(PaymentProvider):
    provider_type = PaymentProviderType.MERCADO_PAGO

    def __init__(
        self,
        access_token: str,
        public_app_url: str,
        api_url: str = "https://api.mercadopago.com",
        webhook_secret: str = "",
        timeout: float = 10.0,
        currency: str = "BRL",
    ):
        self._access_token = access_token
        self._public_app_url = public_app_url.rstrip("/")
        self._api_url = api_url.rstrip("/")
        self._webhook_secret = webhook_secret
        self._timeout = timeout
        self._currency = currency

    def _request(self, method: str, path: str, body: dict | None = None, idempotency_key: str | None = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        data = json.dumps(body).encode() if body is not None else None
        req = UrlRequest(f"{self._api_url}{path}", data=data, method=method, headers=headers)
        try:
            with urlopen(req, timeout=self._timeout) as resp:
                raw = resp.read().decode()
        except HTTPError as e:
            detail = ""
            try:
                detail = e.read().decode()[:200]
            except OSError:
                pass
            raise MercadoPagoApiError(e.code, f"Mercado Pago returned {e.code}: {detail}") from e
        except (URLError, OSError, HTTPException) as e:
            raise PaymentProviderError(
                f"Mercado Pago connection error: {str(e)[:80]}",
                provider=self.provider_type.value,
            ) from e
        except UnicodeDecodeError as e:
            raise PaymentProviderError("Mercado Pago returned an undecodable body", provider=self.provider_type.value) from e
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            log.warning("Mercado Pago non-JSON response: %s %s body=%r", method, path, raw[:200])
            raise PaymentProviderError("Mercado Pago returned a non-JSON response", provider=self.provider_type.value) from e
        if not isinstance(data, dict):
            raise PaymentProviderError("Mercado Pago returned an unexpected response", provider=self.provider_type.value)
        return data

    @property
    def _notification_url(self) -> str:
        return f"{self._public_app_url}{WEBHOOK_PATH}"

    def create_payment(self, order: Order, payer: User) -> PaymentResult:
        if order.payment_method == PaymentMethod.PIX:
            return self._create_pix_payment(order, payer)
        return self._create_preference(order, payer)

    def _create_pix_payment(self, order: Order, payer: User) -> PaymentResult:
        amount = to_money(order.total)
        if amount < MINIMUM_PIX_AMOUNT:
            raise PaymentProviderError(
                f"PIX amount must be at least {MINIMUM_PIX_AMOUNT}",
                provider=self.provider_type.value,
            )
        body = {
            "transaction_amount": float(amount),
            "description": f"Order #{order.id}",
            "payment_method_id": "pix",
            "payer": {"email": payer.email, "first_name": payer.full_name or ""},
            "external_reference": str(order.id),
            "notification_url": self._notification_url,
            "metadata": {"order_id": order.id, "user_id": order.user_id},
        }
        data = self._request("POST", "/v1/payments", body, idempotency_key=uuid.uuid4().hex)
        transaction = (data.get("point_of_interaction") or {}).get("transaction_data") or {}
        log.info("PIX payment created: order_id=%s payment_id=%s", order.id, data.get("id"))
        return PaymentResult(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or "pending"),
            provider=self.provider_type,
            external_reference=str(data.get("external_reference") or order.id),
            qr_code=transaction.get("qr_code"),
            qr_code_base64=transaction.get("qr_code_base64"),
        )

    def _preference_items(self, order: Order) -> list[dict]:
        if order.discount:
            # Item prices cannot carry the discount; charge the order total as one line
            return [{
                "id": str(order.id),
                "title": f"Order #{order.id}",
                "quantity": 1,
                "unit_price": float(to_money(order.total)),
                "currency_id": self._currency,
            }]
        return [
            {
                "id": str(item.product_id),
                "title": item.product.name if item.product else f"Product {item.product_id}",
                "quantity": item.quantity,
                "unit_price": float(item.price),
                "currency_id": self._currency,
            }
            for item in order.items
        ]

    def _create_preference(self, order: Order, payer: User) -> PaymentResult:
        back_url = f"{self._public_app_url}/checkout/{order.id}"
        body = {
            "items": self._preference_items(order),
            "payer": {"email": payer.email, "name": payer.full_name or ""},
            "back_urls": {"success": back_url, "failure": back_url, "pending": back_url},
            "auto_return": "approved",
            "external_reference": str(order.id),
            "notification_url": self._notification_url,
            "metadata": {"order_id": order.id, "user_id": order.user_id},
        }
        data = self._request("POST", "/checkout/preferences", body, idempotency_key=uuid.uuid4().hex)
        log.info("Checkout preference created: order_id=%s preference_id=%s", order.id, data.get("id"))
        return PaymentResult(
            id=str(data.get("id") or ""),
            status="pending",
            provider=self.provider_type,
            external_reference=str(order.id),
            preference_id=data.get("id"),
            init_point=data.get("init_point"),
            sandbox_init_point=data.get("sandbox_init_point"),
            checkout_url=data.get("init_point"),
        )

    def get_payment(self, payment_id: str) -> dict:
        return self._request("GET", f"/v1/payments/{payment_id}")

    def cancel_payment(self, payment_id: str) -> dict:
        try:
            return self._request("PUT", f"/v1/payments/{payment_id}", {"status": "cancelled"})
        except MercadoPagoApiError as e:
            if e.status == 404:
                log.info("Cancel skipped, payment unknown to Mercado Pago: %s", payment_id)
                return {"id": payment_id, "status": "cancelled"}
            raise

    def verify_webhook(
        self,
        body: bytes,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
    ) -> dict:
        try:
            event = json.loads(body or b"{}")
        except ValueError:
            log.warning("Mercado Pago webhook with malformed body ignored")
            event = {}
        if not isinstance(event, dict):
            event = {}
        if self._webhook_secret:
            data_id = (params or {}).get("data.id") or str((event.get("data") or {}).get("id") or "")
            self._check_signature(headers, data_id)
        return event

    def _check_signature(self, headers: Mapping[str, str], data_id: str) -> None:
        """x-signature is "ts=<unix>,v1=<hex hmac>" over "id:<data id>;request-id:<x-request-id>;ts:<ts>;"."""
        parts = {}
        for chunk in (headers.get("x-signature") or "").split(","):
            key, _, value = chunk.strip().partition("=")
            parts[key] = value
        ts, received = parts.get("ts"), parts.get("v1")
        if not ts or not received:
            raise WebhookSignatureError("Missing Mercado Pago signature")
        manifest = f"id:{data_id.lower()};request-id:{headers.get('x-request-id', '')};ts:{ts};"
        expected = hmac.new(self._webhook_secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, received):
            raise WebhookSignatureError()

    def process_webhook(self, event: Mapping[str, Any]) -> WebhookOutcome | None:
        if (event.get("type") or event.get("topic")) != "payment":
            return None
        payment_id = (event.get("data") or {}).get("id")
        if not payment_id:
            return None
        payment = self.get_payment(str(payment_id))
        order_id = str(payment.get("external_reference") or "")
        if not order_id:
            log.info("Mercado Pago payment %s has no external reference", payment_id)
            return None
        return WebhookOutcome(order_id=order_id, status=str(payment.get("status") or ""))
