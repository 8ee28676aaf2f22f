from datetime import datetime
from decimal import Decimal

from app.models import PaymentProviderType, PaymentStatus

from .common import CamelModel


class PaymentRead(CamelModel):
    id: int
    order_id: int
    provider: PaymentProviderType
    provider_id: str
    status: PaymentStatus
    amount: Decimal
    provider_status: str | None = None
    qr_code: str | None = None
    qr_code_base64: str | None = None
    checkout_url: str | None = None
    preference_id: str | None = None
    init_point: str | None = None
    sandbox_init_point: str | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class WebhookAck(CamelModel):
    received: bool = True
