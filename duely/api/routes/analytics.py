"""Spending analytics endpoints for end users."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.user import UserDB
from duely.services.analytics import AnalyticsService
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/trend")
async def spending_trend(
    months: int = Query(12, ge=1, le=36),
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"trend": await AnalyticsService(db).monthly_spending_trend(current_user.id, months)}


@router.get("/top-services")
async def top_services(
    limit: int = Query(10, ge=1, le=50),
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"services": await AnalyticsService(db).top_services(current_user.id, limit)}


@router.get("/billing-cycles")
async def billing_cycle_distribution(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"distribution": await AnalyticsService(db).billing_cycle_distribution(current_user.id)}


@router.get("/categories")
async def category_breakdown(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"categories": await AnalyticsService(db).category_breakdown(current_user.id)}


@router.get("/stats")
async def analytics_stats(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await AnalyticsService(db).stats(current_user.id)


@router.get("/insights")
async def insights(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Savings and spending insights derived from active subscriptions."""
    return {"insights": await AnalyticsService(db).insights(current_user.id)}
