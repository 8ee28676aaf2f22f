from .base import PaymentProvider, PaymentResult, WebhookOutcome
from .mercado_pago import MercadoPagoProvider
from .registry import PROVIDER_FOR_METHOD, PaymentGateway, build_payment_gateway
from .stripe_checkout import StripeCheckoutProvider

__all__ = [
    "PROVIDER_FOR_METHOD",
    "MercadoPagoProvider",
    "PaymentGateway",
    "PaymentProvider",
    "PaymentResult",
    "StripeCheckoutProvider",
    "WebhookOutcome",
    "build_payment_gateway",
]
