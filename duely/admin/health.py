"""System health checks shown on the admin dashboard."""

import time
from datetime import datetime

import structlog
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminDB, AdminNotificationDB, AdminSettingDB
from duely.models.subscription import SubscriptionDB
from duely.models.user import UserDB

logger = structlog.get_logger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

_STARTED_AT = time.monotonic()


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _grade(response_time: int, healthy_below: int, degraded_below: int) -> str:
    if response_time < healthy_below:
        return HEALTHY
    if response_time < degraded_below:
        return DEGRADED
    return UNHEALTHY


def overall_status(statuses: list[str]) -> str:
    """Worst of the individual check statuses."""
    if UNHEALTHY in statuses:
        return UNHEALTHY
    if DEGRADED in statuses:
        return DEGRADED
    return HEALTHY


def format_uptime(seconds: float) -> str:
    """Render an uptime as ``"2d 3h 15m"``; anything under a minute is ``"< 1m"``."""
    seconds = int(seconds)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    return " ".join(parts) if parts else "< 1m"


class HealthService:
    """Runs the database, API and storage probes."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _count(self, column, *conditions) -> int:
        query = select(func.count(column))
        if conditions:
            query = query.where(*conditions)
        result = await self.db_session.execute(query)
        return result.scalar_one()

    async def check_database(self) -> dict:
        started = time.monotonic()
        try:
            await self.db_session.execute(text("SELECT 1"))
            response_time = _elapsed_ms(started)
            user_count = await self._count(UserDB.id)
        except SQLAlchemyError as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": UNHEALTHY,
                "message": "Database connection failed",
                "response_time": _elapsed_ms(started),
                "details": {"error": str(e)},
            }

        status = _grade(response_time, 100, 500)
        messages = {
            HEALTHY: "Database connection is healthy",
            DEGRADED: "Database response is slow",
            UNHEALTHY: "Database response is very slow",
        }
        return {
            "status": status,
            "message": messages[status],
            "response_time": response_time,
            "details": {"user_count": user_count, "threshold": "100ms optimal, 500ms acceptable"},
        }

    async def check_api(self) -> dict:
        started = time.monotonic()
        try:
            admin_count = await self._count(AdminDB.id)
        except SQLAlchemyError as e:
            logger.error("api_health_check_failed", error=str(e))
            return {"status": UNHEALTHY, "message": "API check failed", "details": {"error": str(e)}}

        response_time = _elapsed_ms(started)
        return {
            "status": _grade(response_time, 50, 200),
            "message": "API is operational",
            "response_time": response_time,
            "details": {"admin_count": admin_count, "threshold": "50ms optimal, 200ms acceptable"},
        }

    async def check_storage(self) -> dict:
        try:
            notification_count = await self._count(AdminNotificationDB.id)
            settings_count = await self._count(AdminSettingDB.id)
        except SQLAlchemyError as e:
            logger.error("storage_health_check_failed", error=str(e))
            return {"status": UNHEALTHY, "message": "Storage check failed", "details": {"error": str(e)}}

        return {
            "status": HEALTHY,
            "message": "Storage is operational",
            "details": {"notification_count": notification_count, "settings_count": settings_count},
        }

    async def metrics(self) -> dict:
        uptime = time.monotonic() - _STARTED_AT
        try:
            total_users = await self._count(UserDB.id)
            total_subscriptions = await self._count(SubscriptionDB.id)
            active_subscriptions = await self._count(
                SubscriptionDB.id, SubscriptionDB.status.in_(("active", "trial"))
            )
        except SQLAlchemyError as e:
            logger.error("system_metrics_failed", error=str(e))
            total_users = total_subscriptions = active_subscriptions = 0

        return {
            "uptime": round(uptime),
            "uptime_display": format_uptime(uptime),
            "total_users": total_users,
            "active_subscriptions": active_subscriptions,
            "total_subscriptions": total_subscriptions,
        }

    async def system_health(self) -> dict:
        database = await self.check_database()
        api = await self.check_api()
        storage = await self.check_storage()

        return {
            "overall": overall_status([database["status"], api["status"], storage["status"]]),
            "timestamp": datetime.utcnow().isoformat(),
            "checks": {"database": database, "api": api, "storage": storage},
            "metrics": await self.metrics(),
        }
