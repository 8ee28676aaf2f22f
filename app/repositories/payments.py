from sqlalchemy import update
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.core.exceptions import ConcurrentModification
from app.models import Payment


def get_payment(db: Session, payment_id: int) -> Payment | None:
    return db.get(Payment, payment_id)


def get_by_order(db: Session, order_id: int) -> Payment | None:
    return db.exec(select(Payment).where(Payment.order_id == order_id)).first()


def save_for_order(db: Session, order_id: int, **values) -> Payment:
    """Insert the order's payment, or rewrite the existing row in place (one payment per order)."""
    existing = get_by_order(db, order_id)
    if existing is None:
        payment = Payment(order_id=order_id, **values)
        db.add(payment)
        db.flush()
        return payment
    # Clear provider fields the new attempt does not set
    reset = {
        "qr_code": None,
        "qr_code_base64": None,
        "checkout_url": None,
        "preference_id": None,
        "init_point": None,
        "sandbox_init_point": None,
        "paid_at": None,
    }
    reset.update(values)
    return update_payment(db, existing, **reset)


def update_payment(db: Session, payment: Payment, **values) -> Payment:
    """Compare-and-set on payments.version; the caller commits."""
    db.flush()
    stmt = (
        update(Payment)
        .where(Payment.id == payment.id, Payment.version == payment.version)
        .values(**values, version=Payment.version + 1, updated_at=utcnow())
    )
    result = db.connection().execute(stmt)
    if result.rowcount != 1:
        raise ConcurrentModification()
    db.expire(payment)
    return payment
