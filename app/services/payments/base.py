"""Common contract every payment provider implements."""
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from app.models import Order, PaymentProviderType, User


@dataclass
class PaymentResult:
    """What a provider returns after creating a payment (or checkout) for an order."""

    id: str
    status: str
    provider: PaymentProviderType
    external_reference: str
    qr_code: str | None = None
    qr_code_base64: str | None = None
    checkout_url: str | None = None
    preference_id: str | None = None
    init_point: str | None = None
    sandbox_init_point: str | None = None


@dataclass(frozen=True)
class WebhookOutcome:
    """Provider notification reduced to (our order id, provider status string)."""

    order_id: str
    status: str


class PaymentProvider(ABC):
    provider_type: PaymentProviderType

    @abstractmethod
    def create_payment(self, order: Order, payer: User) -> PaymentResult:
        """Create the external payment. Any failure is raised as PaymentProviderError."""

    @abstractmethod
    def get_payment(self, payment_id: str) -> Mapping[str, Any]:
        ...

    @abstractmethod
    def cancel_payment(self, payment_id: str) -> Mapping[str, Any]:
        """Cancel remotely. A payment the provider does not know counts as cancelled."""

    @abstractmethod
    def verify_webhook(
        self,
        body: bytes,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None = None,
    ) -> Mapping[str, Any]:
        """Authenticate a delivery and return the decoded event. Raises WebhookSignatureError."""

    @abstractmethod
    def process_webhook(self, event: Mapping[str, Any]) -> WebhookOutcome | None:
        """None for events that do not describe a payment state change."""
