"""Coupon validation, redemption and admin maintenance."""
import logging
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.exceptions import (
    CouponExpired,
    CouponInactive,
    CouponMinimumOrderValueNotMet,
    CouponNotFound,
    CouponUsageLimitExceeded,
    CouponUsageLimitTooLow,
)
from app.models import Coupon
from app.repositories import coupons as coupon_repo

log = logging.getLogger("shopcore.coupons")


def validate_coupon(coupon: Coupon | None, now: datetime | None = None, code: str | None = None) -> Coupon:
    """
    Pre-check before computing a discount. Order matters and is fixed:
    existence -> active -> validity window -> usage limit.
    """
    if coupon is None:
        raise CouponNotFound(code)
    if not coupon.is_active:
        raise CouponInactive(coupon.code)
    now = now or utcnow()
    if now < coupon.valid_from or now > coupon.valid_until:
        raise CouponExpired(coupon.code)
    if coupon.has_usage_limit and coupon.usage_count >= coupon.usage_limit:
        raise CouponUsageLimitExceeded(coupon.code)
    return coupon


def get_valid_coupon(db: Session, coupon_id: int, now: datetime | None = None) -> Coupon:
    return validate_coupon(coupon_repo.get_coupon(db, coupon_id), now)


def get_valid_coupon_by_code(
    db: Session,
    code: str,
    subtotal: Decimal | None = None,
    now: datetime | None = None,
) -> Coupon:
    """Lookup for the storefront: same checks, plus the minimum order value when a subtotal is known."""
    coupon = validate_coupon(coupon_repo.get_coupon_by_code(db, code), now, code=code)
    if subtotal is not None and coupon.minimum_order_value and subtotal < coupon.minimum_order_value:
        raise CouponMinimumOrderValueNotMet(coupon.minimum_order_value)
    return coupon


def redeem_coupon(db: Session, coupon: Coupon) -> None:
    """Reserve one use inside the caller's transaction; raises when the last use was taken meanwhile."""
    if not coupon_repo.increment_usage_if_available(db, coupon.id):
        log.info("Coupon redemption lost: coupon_id=%s code=%s", coupon.id, coupon.code)
        raise CouponUsageLimitExceeded(coupon.code)


def create_coupon(db: Session, **fields) -> Coupon:
    fields["code"] = (fields.get("code") or "").strip().upper()
    fields.pop("usage_count", None)
    coupon = Coupon(**fields)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def update_coupon(db: Session, coupon_id: int, **changes) -> Coupon:
    coupon = coupon_repo.get_coupon(db, coupon_id)
    if coupon is None:
        raise CouponNotFound()
    changes.pop("usage_count", None)
    new_limit = changes.get("usage_limit")
    if new_limit and coupon.usage_count >= new_limit:
        raise CouponUsageLimitTooLow()
    for key, value in changes.items():
        setattr(coupon, key, value)
    coupon.updated_at = utcnow()
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> None:
    coupon = coupon_repo.get_coupon(db, coupon_id)
    if coupon is None:
        raise CouponNotFound()
    db.delete(coupon)
    db.commit()
