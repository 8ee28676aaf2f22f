"""
Order orchestration: pricing, coupon application, atomic persistence and the
post-commit payment/notification side effects.
"""
import logging
from collections.abc import Iterable
from datetime import datetime

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.config import get_supported_payment_methods
from app.core.exceptions import (
    AccessDenied,
    ConcurrentModification,
    OrderAlreadyCancelled,
    OrderCannotBeModified,
    OrderNotFound,
    PaymentMethodNotSupported,
    PaymentProviderError,
    ProductNotFound,
)
from app.models import (
    Order,
    OrderItem,
    OrderPaymentStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    User,
)
from app.repositories import orders as order_repo
from app.repositories import payments as payment_repo
from app.repositories import products as product_repo
from app.services import payment_manager
from app.services.coupon import get_valid_coupon, redeem_coupon
from app.services.discount import ZERO, CouponTerms, compute_total, to_money
from app.services.payments import PaymentGateway

log = logging.getLogger("shopcore.orders")


def _check_payment_method(method: PaymentMethod | str) -> PaymentMethod:
    name = method.value if isinstance(method, PaymentMethod) else str(method or "").upper()
    if name not in get_supported_payment_methods():
        raise PaymentMethodNotSupported(name)
    return PaymentMethod(name)


def _notify(action: str, send, *args, **kwargs) -> None:
    try:
        send(*args, **kwargs)
    except Exception as e:
        log.warning("Notification %s failed: %s", action, e)


def _load_for(db: Session, user: User, order_id: int) -> Order:
    order = order_repo.get_with_details(db, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    if not user.is_admin and order.user_id != user.id:
        raise AccessDenied()
    return order


def get_order(db: Session, user: User, order_id: int) -> Order:
    """Customers only see their own orders; someone else's order reads as not found."""
    order = order_repo.get_with_details(db, order_id)
    if order is None or (not user.is_admin and order.user_id != user.id):
        raise OrderNotFound(order_id)
    return order


def _start_payment(db: Session, gateway: PaymentGateway, order: Order) -> None:
    """Best-effort payment initiation after the order is committed."""
    try:
        payment_manager.create_payment_for_order(db, gateway, order)
    except PaymentProviderError as e:
        db.rollback()
        log.warning("Payment initiation failed: order_id=%s provider=%s err=%s", order.id, e.provider, e.message)
    except ConcurrentModification:
        db.rollback()
        log.warning("Payment initiation lost a concurrent update: order_id=%s", order.id)


def _cancel_payment_quietly(db: Session, gateway: PaymentGateway, payment: Payment) -> None:
    try:
        payment_manager.cancel_payment(db, gateway, payment)
    except (PaymentProviderError, ConcurrentModification) as e:
        db.rollback()
        log.warning("Payment cancel failed: order_id=%s provider_id=%s err=%s", payment.order_id, payment.provider_id, e)


def create_order(
    db: Session,
    gateway: PaymentGateway,
    notifier,
    user: User,
    items: Iterable,
    payment_method: PaymentMethod | str,
    coupon_id: int | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Create an order for `user` from `items` (objects with product_id and quantity).

    Everything before the commit is all-or-nothing: a missing product, an invalid
    coupon or a lost redemption race leaves no row behind. Payment initiation and
    the confirmation e-mail happen after the commit and never fail the call.
    """
    method = _check_payment_method(payment_method)
    lines = [(int(item.product_id), int(item.quantity)) for item in items]

    prices = product_repo.find_prices(db, (pid for pid, _ in lines))
    missing = {pid for pid, _ in lines if pid not in prices}
    if missing:
        raise ProductNotFound(missing)
    subtotal = to_money(sum((prices[pid] * qty for pid, qty in lines), ZERO))

    coupon = None
    terms = None
    if coupon_id is not None:
        coupon = get_valid_coupon(db, coupon_id, now)
        terms = CouponTerms.from_coupon(coupon)
    discount, total = compute_total(subtotal, terms)

    status = OrderPaymentStatus.PAID if total <= ZERO else OrderPaymentStatus.PENDING
    order = Order(
        user_id=user.id,
        payment_method=method,
        payment_status=status,
        coupon_id=coupon.id if coupon else None,
        total=total,
        discount=discount,
        paid_at=(now or utcnow()) if status == OrderPaymentStatus.PAID else None,
    )
    try:
        order_repo.insert_with_items(
            db, order, [OrderItem(product_id=pid, quantity=qty, price=prices[pid]) for pid, qty in lines]
        )
        if coupon is not None and discount > ZERO:
            redeem_coupon(db, coupon)
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info(
        "Order created: order_id=%s user_id=%s total=%s discount=%s status=%s",
        order.id, user.id, total, discount, status.value,
    )

    if status == OrderPaymentStatus.PENDING:
        _start_payment(db, gateway, order)

    order = order_repo.get_with_details(db, order.id)
    _notify("order_confirmation", notifier.send_order_confirmation, user, order)
    return order


def cancel_order(db: Session, gateway: PaymentGateway, notifier, order_id: int, reason: str | None = None) -> Order:
    """PENDING -> CANCELLED (payment cancelled too), PAID -> CHARGED_BACK."""
    order = order_repo.get_with_details(db, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    if order.payment_status == OrderPaymentStatus.CANCELLED:
        raise OrderAlreadyCancelled()
    if order.payment_status == OrderPaymentStatus.CHARGED_BACK:
        raise OrderCannotBeModified()

    was_paid = order.payment_status == OrderPaymentStatus.PAID
    target = OrderPaymentStatus.CHARGED_BACK if was_paid else OrderPaymentStatus.CANCELLED
    payment = order.payment
    order_repo.update_order(db, order, payment_status=target)
    db.commit()
    log.info("Order %s: order_id=%s reason=%s", target.value.lower(), order_id, reason or "-")

    if not was_paid and payment is not None and payment.status == PaymentStatus.PENDING:
        _cancel_payment_quietly(db, gateway, payment)

    order = order_repo.get_with_details(db, order_id)
    owner = db.get(User, order.user_id)
    _notify("order_cancelled", notifier.send_order_cancelled, owner, order, reason=reason, was_paid=was_paid)
    return order


def update_payment_method(
    db: Session,
    gateway: PaymentGateway,
    user: User,
    order_id: int,
    payment_method: PaymentMethod | str,
) -> Order:
    """Switch a PENDING order to another method: the old payment is cancelled and a new one started."""
    order = _load_for(db, user, order_id)
    method = _check_payment_method(payment_method)
    if order.payment_status != OrderPaymentStatus.PENDING:
        raise OrderCannotBeModified()

    existing = order.payment
    order_repo.update_order(db, order, payment_method=method)
    db.commit()
    log.info("Payment method changed: order_id=%s method=%s", order_id, method.value)

    if existing is not None and existing.status == PaymentStatus.PENDING:
        _cancel_payment_quietly(db, gateway, existing)
    order = order_repo.get_with_details(db, order_id)
    _start_payment(db, gateway, order)
    return order_repo.get_with_details(db, order_id)


def retry_payment(db: Session, gateway: PaymentGateway, user: User, order_id: int) -> Payment:
    """Explicit (re)initiation for a PENDING order. Provider failures propagate to the caller."""
    order = _load_for(db, user, order_id)
    if order.payment_status != OrderPaymentStatus.PENDING:
        raise OrderCannotBeModified()
    existing = payment_repo.get_by_order(db, order_id)
    if existing is not None and existing.status == PaymentStatus.PENDING:
        _cancel_payment_quietly(db, gateway, existing)
        order = order_repo.get_with_details(db, order_id)
    return payment_manager.create_payment_for_order(db, gateway, order)
