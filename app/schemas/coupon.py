from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator, model_validator

from app.models import CouponDiscountType

from .common import CamelModel, naive_utc


class CouponCreate(CamelModel):
    code: str = Field(min_length=1, max_length=64)
    description: str = ""
    discount_type: CouponDiscountType
    discount_value: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    minimum_order_value: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    maximum_discount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    usage_limit: int | None = Field(default=None, ge=0)
    is_active: bool = True
    valid_from: datetime
    valid_until: datetime

    @field_validator("valid_from", "valid_until")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        return naive_utc(v)

    @model_validator(mode="after")
    def check_terms(self):
        if self.valid_until < self.valid_from:
            raise ValueError("validUntil must not be before validFrom")
        if self.discount_type == CouponDiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("A percentage discount cannot exceed 100")
        return self


class CouponUpdate(CamelModel):
    """Partial update. usageCount is not accepted here; it only moves through redemption."""

    code: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = None
    discount_type: CouponDiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    minimum_order_value: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    maximum_discount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    usage_limit: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def to_naive_utc(cls, v: datetime | None) -> datetime | None:
        return naive_utc(v)


class CouponRead(CamelModel):
    id: int
    code: str
    description: str
    discount_type: CouponDiscountType
    discount_value: Decimal
    minimum_order_value: Decimal
    maximum_discount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int
    is_active: bool
    valid_from: datetime
    valid_until: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
