"""Dashboard summary endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.user import UserDB
from duely.services.dashboard import UPCOMING_WINDOW_DAYS, DashboardService
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def dashboard_stats(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Spending totals, next renewal and budget use for the dashboard header."""
    return await DashboardService(db).dashboard_stats(current_user.id)


@router.get("/upcoming")
async def upcoming_renewals(
    days: int = Query(UPCOMING_WINDOW_DAYS, ge=1, le=365),
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    renewals = await DashboardService(db).upcoming_renewals(current_user.id, days)
    return {"subscriptions": renewals, "days": days}


@router.get("/overdue")
async def overdue_subscriptions(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"subscriptions": await DashboardService(db).overdue_subscriptions(current_user.id)}


@router.get("/category-breakdown")
async def category_breakdown(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"categories": await DashboardService(db).category_breakdown(current_user.id)}
