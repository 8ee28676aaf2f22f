from .coupon import Coupon, CouponDiscountType
from .order import Order, OrderItem, OrderPaymentStatus, PaymentMethod, can_transition
from .payment import Payment, PaymentProviderType, PaymentStatus
from .product import Product
from .user import ROLE_ADMIN, ROLE_CUSTOMER, User

__all__ = [
    "Coupon",
    "CouponDiscountType",
    "Order",
    "OrderItem",
    "OrderPaymentStatus",
    "Payment",
    "PaymentMethod",
    "PaymentProviderType",
    "PaymentStatus",
    "Product",
    "ROLE_ADMIN",
    "ROLE_CUSTOMER",
    "User",
    "can_transition",
]
