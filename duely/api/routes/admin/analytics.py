"""Admin revenue and user analytics endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.analytics import AdminAnalyticsService
from duely.api.middleware.admin_auth import get_current_admin
from duely.models.base import to_naive_utc
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin/analytics", tags=["admin-analytics"])


@router.get("")
async def analytics_overview(
    period: str = Query("30d", pattern=r"^(7d|30d|90d|1y|custom)$"),
    group_by: str = Query("day", pattern=r"^(day|week|month)$"),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """MRR, ARR, churn and growth for a period, with chart series.

    Args:
        period: Preset period or ``custom``
        group_by: Bucket size of the chart series
        start_date: First day of a custom period
        end_date: Last day of a custom period

    Raises:
        HTTPException: 400 if a custom period lacks its dates or ends before it starts
    """
    start_date, end_date = to_naive_utc(start_date), to_naive_utc(end_date)
    if period == "custom":
        if start_date is None or end_date is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date and end_date are required for a custom period",
            )
        if end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_date must be after start_date",
            )

    return await AdminAnalyticsService(db).overview(period, group_by, start_date, end_date)


@router.get("/forecast")
async def analytics_forecast(
    months: int = Query(3, ge=1, le=12),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await AdminAnalyticsService(db).forecast(months)
