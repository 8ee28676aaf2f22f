"""
Payment lifecycle on our side: create/cancel through the gateway, persist the
result, and reconcile provider notifications into payment and order state.
"""
import logging
from collections.abc import Mapping

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.exceptions import ConcurrentModification
from app.models import (
    Order,
    OrderPaymentStatus,
    Payment,
    PaymentProviderType,
    PaymentStatus,
    User,
    can_transition,
)
from app.repositories import orders as order_repo
from app.repositories import payments as payment_repo
from app.services.payments import PaymentGateway, WebhookOutcome

log = logging.getLogger("shopcore.payments")

# Provider status strings -> our status; anything else is PENDING
PROVIDER_STATUS_MAP: dict[str, PaymentStatus] = {
    "approved": PaymentStatus.APPROVED,
    "pending": PaymentStatus.PENDING,
    "cancelled": PaymentStatus.CANCELLED,
    "rejected": PaymentStatus.REJECTED,
    "refunded": PaymentStatus.REFUNDED,
}

ORDER_STATUS_FOR_PAYMENT: dict[PaymentStatus, OrderPaymentStatus] = {
    PaymentStatus.APPROVED: OrderPaymentStatus.PAID,
    PaymentStatus.CANCELLED: OrderPaymentStatus.CANCELLED,
    PaymentStatus.REJECTED: OrderPaymentStatus.CANCELLED,
}

RECONCILE_ATTEMPTS = 3


def map_provider_status(status: str | None) -> PaymentStatus:
    """Case-insensitive; anything unknown stays PENDING."""
    return PROVIDER_STATUS_MAP.get((status or "").strip().lower(), PaymentStatus.PENDING)


def create_payment_for_order(db: Session, gateway: PaymentGateway, order: Order) -> Payment:
    """Create the external payment and store it as the order's payment. Raises PaymentProviderError."""
    payer = db.get(User, order.user_id)
    result = gateway.create_payment(order, payer)
    payment = payment_repo.save_for_order(
        db,
        order.id,
        provider=result.provider,
        provider_id=result.id,
        status=map_provider_status(result.status),
        provider_status=result.status,
        amount=order.total,
        qr_code=result.qr_code,
        qr_code_base64=result.qr_code_base64,
        checkout_url=result.checkout_url,
        preference_id=result.preference_id,
        init_point=result.init_point,
        sandbox_init_point=result.sandbox_init_point,
        provider_metadata={"external_reference": result.external_reference},
    )
    db.commit()
    db.refresh(payment)
    log.info("Payment stored: order_id=%s provider=%s provider_id=%s", order.id, result.provider.value, result.id)
    return payment


def cancel_payment(db: Session, gateway: PaymentGateway, payment: Payment) -> Payment:
    gateway.cancel_payment(payment.provider, payment.provider_id)
    payment_repo.update_payment(db, payment, status=PaymentStatus.CANCELLED)
    db.commit()
    db.refresh(payment)
    log.info("Payment cancelled: order_id=%s provider_id=%s", payment.order_id, payment.provider_id)
    return payment


def _apply_outcome(db: Session, payment: Payment, provider_status: str) -> bool:
    """Write one notification; True when it moved the order from PENDING to PAID."""
    order = order_repo.get_order(db, payment.order_id)
    new_status = map_provider_status(provider_status)
    now = utcnow()
    values = {"status": new_status, "provider_status": provider_status}
    if new_status == PaymentStatus.APPROVED:
        values["paid_at"] = payment.paid_at or now
    payment_repo.update_payment(db, payment, **values)

    target = ORDER_STATUS_FOR_PAYMENT.get(new_status)
    if target is None or order.payment_status == target:
        return False
    if not can_transition(order.payment_status, target):
        log.warning(
            "Order transition ignored: order_id=%s %s -> %s",
            order.id, order.payment_status.value, target.value,
        )
        return False
    order_values = {"payment_status": target}
    if target == OrderPaymentStatus.PAID:
        order_values["paid_at"] = order.paid_at or now
    order_repo.update_order(db, order, **order_values)
    return target == OrderPaymentStatus.PAID


def apply_webhook_outcome(db: Session, outcome: WebhookOutcome, notifier=None) -> Payment | None:
    """
    Reconcile a provider notification. Lost compare-and-set races are retried
    with fresh state; notifications for unknown orders are dropped.
    """
    try:
        order_id = int(outcome.order_id)
    except ValueError:
        log.info("Webhook for non-numeric order reference %r dropped", outcome.order_id)
        return None

    for attempt in range(1, RECONCILE_ATTEMPTS + 1):
        payment = payment_repo.get_by_order(db, order_id)
        if payment is None:
            log.info("Webhook for unknown order_id=%s dropped", order_id)
            return None
        try:
            became_paid = _apply_outcome(db, payment, outcome.status)
            db.commit()
            break
        except ConcurrentModification:
            db.rollback()
            log.warning("Webhook reconcile conflict: order_id=%s attempt=%s", order_id, attempt)
    else:
        raise ConcurrentModification()

    db.refresh(payment)
    log.info("Webhook applied: order_id=%s status=%s", order_id, payment.status.value)
    if became_paid and notifier is not None:
        order = order_repo.get_order(db, order_id)
        user = db.get(User, order.user_id)
        try:
            notifier.send_payment_approved(user, order)
        except Exception as e:
            log.warning("Payment approved notification failed: order_id=%s err=%s", order_id, e)
    return payment


def handle_webhook(
    db: Session,
    gateway: PaymentGateway,
    provider_type: PaymentProviderType,
    body: bytes,
    headers: Mapping[str, str],
    params: Mapping[str, str] | None = None,
    notifier=None,
) -> Payment | None:
    """
    Entry point for webhook routes. Signature failures raise WebhookSignatureError;
    every later failure is logged and swallowed so the provider gets an acknowledgement.
    """
    provider = gateway.provider(provider_type)
    event = provider.verify_webhook(body, headers, params)
    try:
        outcome = provider.process_webhook(event)
        if outcome is None:
            log.info("Webhook ignored: provider=%s", provider_type.value)
            return None
        return apply_webhook_outcome(db, outcome, notifier)
    except Exception as e:
        db.rollback()
        log.exception("Webhook processing failed: provider=%s err=%s", provider_type.value, e)
        return None
