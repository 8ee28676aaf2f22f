"""
Provider notifications. Always acknowledged with {"received": true} so providers
do not retry; only a failed signature check is answered with an error.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from app.api.deps import get_notifier, get_payment_gateway
from app.core.database import get_db
from app.models import PaymentProviderType
from app.schemas import WebhookAck
from app.services import payment_manager
from app.services.email_sender import EmailNotifier
from app.services.payments import PaymentGateway

log = logging.getLogger("shopcore.webhooks")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


async def _receive(
    provider_type: PaymentProviderType,
    request: Request,
    db: Session,
    gateway: PaymentGateway,
    notifier: EmailNotifier,
) -> dict:
    body = await request.body()
    log.info("Webhook received: provider=%s bytes=%s", provider_type.value, len(body))
    # Provider calls and DB writes are blocking; keep them off the event loop
    await run_in_threadpool(
        payment_manager.handle_webhook,
        db,
        gateway,
        provider_type,
        body,
        request.headers,
        params=request.query_params,
        notifier=notifier,
    )
    return {"received": True}


@router.post("/mercado-pago", response_model=WebhookAck)
async def mercado_pago_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
):
    return await _receive(PaymentProviderType.MERCADO_PAGO, request, db, gateway, notifier)


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: EmailNotifier = Depends(get_notifier),
):
    return await _receive(PaymentProviderType.STRIPE, request, db, gateway, notifier)
