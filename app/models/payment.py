from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from app.core.clock import utcnow

if TYPE_CHECKING:
    from .order import Order


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"


class PaymentProviderType(str, Enum):
    MERCADO_PAGO = "MERCADO_PAGO"
    STRIPE = "STRIPE"


class Payment(SQLModel, table=True):
    """External payment for an order (1:1). Re-initiation rewrites the row; payments are never deleted."""

    __tablename__ = "payments"

    id: int | None = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", ondelete="CASCADE", unique=True, index=True)
    provider: PaymentProviderType
    provider_id: str = Field(index=True)
    status: PaymentStatus = PaymentStatus.PENDING
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    qr_code: str | None = None  # PIX copy-and-paste payload
    qr_code_base64: str | None = None
    provider_status: str | None = None  # raw status string as reported by the provider
    checkout_url: str | None = Field(default=None, max_length=500)
    preference_id: str | None = Field(default=None, max_length=500)
    init_point: str | None = Field(default=None, max_length=500)
    sandbox_init_point: str | None = Field(default=None, max_length=500)
    provider_metadata: dict | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    paid_at: datetime | None = None
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    order: Optional["Order"] = Relationship(back_populates="payment")
