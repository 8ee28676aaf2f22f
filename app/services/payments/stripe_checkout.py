"""Stripe hosted Checkout Sessions for card payments."""
import json
import logging
from collections.abc import Mapping
from typing import Any

import stripe

from app.core.exceptions import PaymentProviderError, WebhookSignatureError
from app.models import Order, PaymentProviderType, User
from app.services.discount import to_money

from .base import PaymentProvider, PaymentResult, WebhookOutcome

log = logging.getLogger("shopcore.payments.stripe")

APPROVED_EVENTS = {"checkout.session.async_payment_succeeded"}
REJECTED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


def _to_minor_units(amount) -> int:
    return int(to_money(amount) * 100)


class StripeCheckoutProvider(PaymentProvider):
    provider_type = PaymentProviderType.STRIPE

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        public_app_url: str,
        currency: str = "brl",
        timeout: float = 10.0,
        client: stripe.StripeClient | None = None,
    ):
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._public_app_url = public_app_url.rstrip("/")
        self._currency = currency.lower()
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> stripe.StripeClient:
        # Built on first use so the app starts without Stripe credentials
        if self._client is None:
            self._client = stripe.StripeClient(
                self._api_key,
                http_client=stripe.RequestsClient(timeout=self._timeout),
            )
        return self._client

    def _line_items(self, order: Order) -> list[dict]:
        if order.discount:
            return [{
                "price_data": {
                    "currency": self._currency,
                    "product_data": {"name": f"Order #{order.id}"},
                    "unit_amount": _to_minor_units(order.total),
                },
                "quantity": 1,
            }]
        return [
            {
                "price_data": {
                    "currency": self._currency,
                    "product_data": {"name": item.product.name if item.product else f"Product {item.product_id}"},
                    "unit_amount": _to_minor_units(item.price),
                },
                "quantity": item.quantity,
            }
            for item in order.items
        ]

    def create_payment(self, order: Order, payer: User) -> PaymentResult:
        checkout_url = f"{self._public_app_url}/checkout/{order.id}"
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": self._line_items(order),
            "success_url": f"{checkout_url}?success=true",
            "cancel_url": f"{checkout_url}?canceled=true",
            "customer_email": payer.email,
            "client_reference_id": str(order.id),
            "metadata": {"order_id": str(order.id), "user_id": str(order.user_id)},
        }
        try:
            session = self.client.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                f"Stripe checkout failed: {e.user_message or str(e)[:80]}",
                provider=self.provider_type.value,
            ) from e
        log.info("Stripe checkout session created: order_id=%s session_id=%s", order.id, session.id)
        return PaymentResult(
            id=session.id,
            status="pending",
            provider=self.provider_type,
            external_reference=str(order.id),
            checkout_url=session.url,
        )

    def get_payment(self, payment_id: str) -> Mapping[str, Any]:
        try:
            return self.client.checkout.sessions.retrieve(payment_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(str(e)[:120], provider=self.provider_type.value) from e

    def cancel_payment(self, payment_id: str) -> Mapping[str, Any]:
        try:
            return self.client.checkout.sessions.expire(payment_id)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                log.info("Cancel skipped, checkout session unknown to Stripe: %s", payment_id)
                return {"id": payment_id, "status": "expired"}
            raise PaymentProviderError(str(e)[:120], provider=self.provider_type.value) from e
        except stripe.StripeError as e:
            raise PaymentProviderError(str(e)[:120], provider=self.provider_type.value) from e

    def verify_webhook(
        self,
        body: bytes,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
    ) -> Mapping[str, Any]:
        signature = headers.get("stripe-signature")
        if not signature or not body:
            raise WebhookSignatureError("Missing stripe-signature header or body")
        try:
            stripe.Webhook.construct_event(body, signature, self._webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            log.warning("Stripe webhook rejected: %s", e)
            raise WebhookSignatureError() from e
        # Plain mapping of the verified payload, whatever type the SDK returns
        return json.loads(body)

    def process_webhook(self, event: Mapping[str, Any]) -> WebhookOutcome | None:
        event_type = event.get("type") or ""
        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        order_id = metadata.get("order_id") or session.get("client_reference_id")
        if not order_id:
            return None
        if event_type == "checkout.session.completed":
            if session.get("payment_status") != "paid":
                # Async methods complete later with async_payment_succeeded
                return None
            return WebhookOutcome(order_id=str(order_id), status="approved")
        if event_type in APPROVED_EVENTS:
            return WebhookOutcome(order_id=str(order_id), status="approved")
        if event_type in REJECTED_EVENTS:
            return WebhookOutcome(order_id=str(order_id), status="rejected")
        return None
