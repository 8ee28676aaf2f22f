from sqlalchemy import or_, update
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.models import Coupon


def get_coupon(db: Session, coupon_id: int) -> Coupon | None:
    return db.get(Coupon, coupon_id)


def get_coupon_by_code(db: Session, code: str) -> Coupon | None:
    code_upper = (code or "").strip().upper()
    if not code_upper:
        return None
    return db.exec(select(Coupon).where(Coupon.code == code_upper)).first()


def increment_usage_if_available(db: Session, coupon_id: int) -> bool:
    """
    Single conditional UPDATE: usage_count + 1 only while the coupon is unlimited or below its limit.
    Runs on the session's connection, so it joins the caller's transaction. False = no use left.
    """
    stmt = (
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(
                Coupon.usage_limit.is_(None),
                Coupon.usage_limit == 0,
                Coupon.usage_count < Coupon.usage_limit,
            ),
        )
        .values(usage_count=Coupon.usage_count + 1, updated_at=utcnow())
    )
    result = db.connection().execute(stmt)
    return result.rowcount == 1
