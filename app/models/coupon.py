"""Discount coupon: code, percentage/fixed discount, validity window and usage counter."""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class CouponDiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class Coupon(SQLModel, table=True):
    """Created by admins, applied at checkout. usage_count is only ever moved by redemption."""

    __tablename__ = "coupons"

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # stored upper-case
    description: str = ""
    discount_type: CouponDiscountType
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)  # percent (0-100) or currency amount
    minimum_order_value: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    maximum_discount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    usage_limit: int | None = Field(default=None)  # null or 0 = unlimited
    usage_count: int = Field(default=0)
    is_active: bool = True
    valid_from: datetime
    valid_until: datetime
    created_at: datetime | None = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None)

    @property
    def has_usage_limit(self) -> bool:
        return bool(self.usage_limit)
