"""Payment provider webhooks (Stripe and Xendit)."""

import hmac
import os

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.payments.stripe_gateway import StripeGateway
from duely.payments.webhooks import PaymentWebhookService, parse_webhook_body
from duely.services.database import get_db_session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Receive a Stripe event.

    The raw body is verified against ``STRIPE_WEBHOOK_SECRET`` before it is
    parsed; unhandled event types are acknowledged and ignored.

    Raises:
        HTTPException: 400 for a missing or invalid signature, 500 when the
            secret is not configured or the event cannot be processed
    """
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if not secret:
        logger.error("stripe_webhook_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    payload = await request.body()
    try:
        StripeGateway.verify_webhook(payload, stripe_signature, secret)
        event = parse_webhook_body(payload)
    except ValueError as e:
        logger.warning("stripe_webhook_rejected", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    service = PaymentWebhookService(db, StripeGateway())
    try:
        await service.handle_stripe_event(event)
    except Exception as e:
        logger.error("stripe_webhook_failed", event_type=event.get("type"), error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
        )

    return {"received": True}


@router.post("/xendit")
async def xendit_webhook(
    request: Request,
    callback_token: str | None = Header(None, alias="x-callback-token"),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Receive a Xendit invoice callback authenticated by ``x-callback-token``."""
    expected = os.getenv("XENDIT_WEBHOOK_TOKEN")
    if not expected:
        logger.error("xendit_webhook_token_missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook token not configured",
        )

    if not callback_token or not hmac.compare_digest(callback_token, expected):
        logger.warning("xendit_webhook_rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        data = parse_webhook_body(await request.body())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    try:
        await PaymentWebhookService(db).handle_xendit_callback(data)
    except Exception as e:
        logger.error("xendit_webhook_failed", status=data.get("status"), error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
        )

    return {"received": True}
