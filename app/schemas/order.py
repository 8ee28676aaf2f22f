from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.models import OrderPaymentStatus, PaymentMethod

from .common import CamelModel
from .payment import PaymentRead


class OrderItemCreate(CamelModel):
    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(CamelModel):
    items: list[OrderItemCreate] = Field(min_length=1)
    # Plain string: an unknown method is a PAYMENT_METHOD_NOT_SUPPORTED, not a 422
    payment_method: str
    coupon_id: int | None = None


class OrderCancel(CamelModel):
    reason: str | None = Field(default=None, max_length=500)


class PaymentMethodUpdate(CamelModel):
    payment_method: str


class OrderItemRead(CamelModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal


class OrderRead(CamelModel):
    id: int
    user_id: int
    payment_method: PaymentMethod
    payment_status: OrderPaymentStatus
    coupon_id: int | None = None
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    paid_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime | None = None
    items: list[OrderItemRead] = []
    payment: PaymentRead | None = None


class OrderActionResponse(CamelModel):
    message: str
    order: OrderRead
