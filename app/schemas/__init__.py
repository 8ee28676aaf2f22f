from .coupon import CouponCreate, CouponRead, CouponUpdate
from .order import (
    OrderActionResponse,
    OrderCancel,
    OrderCreate,
    OrderItemCreate,
    OrderItemRead,
    OrderRead,
    PaymentMethodUpdate,
)
from .payment import PaymentRead, WebhookAck

__all__ = [
    "CouponCreate",
    "CouponRead",
    "CouponUpdate",
    "OrderActionResponse",
    "OrderCancel",
    "OrderCreate",
    "OrderItemCreate",
    "OrderItemRead",
    "OrderRead",
    "PaymentMethodUpdate",
    "PaymentRead",
    "WebhookAck",
]
