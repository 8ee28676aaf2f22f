"""
Payment gateway: routes a payment method to the provider that handles it.

Every PaymentProviderType must have an implementation; a missing one is a
deployment error raised while the application starts, never at request time.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from app.core.exceptions import PaymentConfigurationError
from app.models import Order, PaymentMethod, PaymentProviderType, User

from .base import PaymentProvider, PaymentResult
from .mercado_pago import MercadoPagoProvider
from .stripe_checkout import StripeCheckoutProvider

log = logging.getLogger("shopcore.payments")

# CREDIT_CARD and DEBIT_CARD are accepted on orders but have no provider yet
PROVIDER_FOR_METHOD: dict[PaymentMethod, PaymentProviderType] = {
    PaymentMethod.PIX: PaymentProviderType.MERCADO_PAGO,
    PaymentMethod.MERCADO_PAGO: PaymentProviderType.MERCADO_PAGO,
    PaymentMethod.STRIPE: PaymentProviderType.STRIPE,
}


class PaymentGateway:
    def __init__(self, providers: Mapping[PaymentProviderType, PaymentProvider]):
        missing = [t.value for t in PaymentProviderType if t not in providers]
        if missing:
            raise PaymentConfigurationError(f"No payment provider configured for: {', '.join(missing)}")
        self._providers = dict(providers)

    def provider(self, provider_type: PaymentProviderType | str) -> PaymentProvider:
        return self._providers[PaymentProviderType(provider_type)]

    def provider_for_method(self, method: PaymentMethod | str) -> PaymentProvider:
        provider_type = PROVIDER_FOR_METHOD.get(PaymentMethod(method))
        if provider_type is None:
            raise PaymentConfigurationError(f"Payment method {PaymentMethod(method).value} has no provider")
        return self._providers[provider_type]

    def ensure_supports(self, methods: Iterable[str]) -> None:
        """Fail fast when an enabled payment method cannot be routed to a provider."""
        for name in methods:
            try:
                method = PaymentMethod(name)
            except ValueError:
                raise PaymentConfigurationError(f"Unknown payment method: {name}") from None
            self.provider_for_method(method)

    def create_payment(self, order: Order, payer: User) -> PaymentResult:
        return self.provider_for_method(order.payment_method).create_payment(order, payer)

    def get_payment(self, provider_type: PaymentProviderType | str, payment_id: str) -> Mapping[str, Any]:
        return self.provider(provider_type).get_payment(payment_id)

    def cancel_payment(self, provider_type: PaymentProviderType | str, payment_id: str) -> Mapping[str, Any]:
        return self.provider(provider_type).cancel_payment(payment_id)


def build_payment_gateway(settings, methods: Iterable[str] = ()) -> PaymentGateway:
    methods = list(methods)
    timeout = settings.payment_provider_timeout_seconds
    gateway = PaymentGateway({
        PaymentProviderType.MERCADO_PAGO: MercadoPagoProvider(
            access_token=settings.mercado_pago_access_token,
            public_app_url=settings.public_app_url,
            api_url=settings.mercado_pago_api_url,
            webhook_secret=settings.mercado_pago_webhook_secret,
            timeout=timeout,
        ),
        PaymentProviderType.STRIPE: StripeCheckoutProvider(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            public_app_url=settings.public_app_url,
            currency=settings.stripe_currency,
            timeout=timeout,
        ),
    })
    gateway.ensure_supports(methods)
    log.info("Payment gateway ready: methods=%s", ",".join(methods) or "-")
    return gateway
