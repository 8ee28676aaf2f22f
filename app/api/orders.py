"""Order endpoints: checkout, lookup, cancellation, payment method change and payment retry."""
from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session

from app.api.deps import get_current_user, get_notifier, get_payment_gateway, require_admin
from app.core.database import get_db
from app.core.rate_limit import ORDER_CREATE_LIMIT, limiter
from app.models import User
from app.schemas import (
    OrderActionResponse,
    OrderCancel,
    OrderCreate,
    OrderRead,
    PaymentMethodUpdate,
    PaymentRead,
)
from app.services import orders as order_service
from app.services.email_sender import EmailNotifier
from app.services.payments import PaymentGateway

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(ORDER_CREATE_LIMIT)
def create_order(
    request: Request,
    body: OrderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
):
    return order_service.create_order(
        db,
        gateway,
        notifier,
        user,
        body.items,
        body.payment_method,
        coupon_id=body.coupon_id,
    )


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.get_order(db, user, order_id)


@router.patch("/{order_id}/cancel", response_model=OrderActionResponse)
def cancel_order(
    order_id: int,
    body: OrderCancel | None = None,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
):
    reason = body.reason if body else None
    order = order_service.cancel_order(db, gateway, notifier, order_id, reason=reason)
    return {"message": "Order cancelled successfully.", "order": order}


@router.patch("/{order_id}/payment-method", response_model=OrderActionResponse)
def update_payment_method(
    order_id: int,
    body: PaymentMethodUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    order = order_service.update_payment_method(db, gateway, user, order_id, body.payment_method)
    return {"message": "Payment method updated successfully.", "order": order}


@router.post("/{order_id}/payment", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def retry_payment(
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return order_service.retry_payment(db, gateway, user, order_id)
