"""Endpoints triggered by the external scheduler."""

import hmac
import os

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.services.database import get_db_session
from duely.services.exchange_rates import ExchangeRateService
from duely.services.notification_generator import NotificationGenerator
from duely.services.push import PushService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["cron"])


async def verify_cron_secret(authorization: str | None = Header(None)) -> None:
    """Require ``Bearer $CRON_SECRET`` when a secret is configured."""
    secret = os.getenv("CRON_SECRET")
    if not secret:
        return
    if not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        logger.warning("cron_unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/cron/generate-notifications", dependencies=[Depends(verify_cron_secret)])
async def generate_notifications(db: AsyncSession = Depends(get_db_session)) -> dict:
    generator = NotificationGenerator(db, PushService(db))
    return await generator.generate_all()


@router.get("/cron/generate-notifications")
async def generate_notifications_info() -> dict:
    return {
        "message": "Notification generation endpoint",
        "method": "POST",
        "description": "Generates renewal reminders, overdue alerts and budget alerts",
        "authentication": "Bearer token (CRON_SECRET)",
    }


@router.post("/exchange-rates/update", dependencies=[Depends(verify_cron_secret)])
async def update_exchange_rates(
    base_currency: str = "USD",
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Refresh today's exchange rates from the rate API."""
    result = await ExchangeRateService(db).fetch_and_store_rates(base_currency)
    return {"success": True, **result}
