"""Discount computation: pure, no database access, deterministic."""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.models import Coupon, CouponDiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Decimal rounded half-up to cents. Floats go through str() so 0.1 stays 0.1."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CouponTerms:
    """The parts of a coupon that decide the discount amount."""

    discount_type: CouponDiscountType
    discount_value: Decimal
    minimum_order_value: Decimal = ZERO
    maximum_discount: Decimal | None = None

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponTerms":
        return cls(
            discount_type=CouponDiscountType(coupon.discount_type),
            discount_value=Decimal(coupon.discount_value or 0),
            minimum_order_value=Decimal(coupon.minimum_order_value or 0),
            maximum_discount=Decimal(coupon.maximum_discount) if coupon.maximum_discount is not None else None,
        )


def compute_discount(subtotal: Decimal, terms: CouponTerms) -> Decimal:
    """
    Discount for `subtotal` under `terms`:
    percentage or fixed amount, capped by maximum_discount, zero below the minimum order value,
    never more than the subtotal, rounded half-up to cents.
    """
    subtotal = Decimal(subtotal)
    if terms.discount_type == CouponDiscountType.PERCENTAGE:
        discount = subtotal * terms.discount_value / Decimal(100)
    else:
        discount = terms.discount_value

    # A zero cap or minimum means "not set"
    if terms.maximum_discount and discount > terms.maximum_discount:
        discount = terms.maximum_discount
    if terms.minimum_order_value and subtotal < terms.minimum_order_value:
        discount = ZERO

    discount = max(min(discount, subtotal), ZERO)
    return to_money(discount)


def compute_total(subtotal: Decimal, terms: CouponTerms | None) -> tuple[Decimal, Decimal]:
    """(discount, total) for an order; no coupon means no discount."""
    subtotal = to_money(subtotal)
    if terms is None:
        return ZERO.quantize(CENT), subtotal
    discount = compute_discount(subtotal, terms)
    return discount, subtotal - discount
