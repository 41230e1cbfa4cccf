"""Site-wide maintenance mode.

The enabled flag is read on every user API request, so it is cached
in-process for ``CACHE_SECONDS``. Activating or deactivating clears the
cache of the process handling the admin request; other workers pick the
change up when their cache expires.
"""

import time
import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import MaintenanceLogDB, MaintenanceModeDB

logger = structlog.get_logger(__name__)

CACHE_SECONDS = 10
DEFAULT_MESSAGE = "The site is currently under maintenance. We will be back online shortly."

_cache: dict | None = None


def clear_maintenance_cache() -> None:
    global _cache
    _cache = None


def _cached_enabled() -> bool | None:
    if _cache is not None and time.monotonic() - _cache["timestamp"] < CACHE_SECONDS:
        return _cache["enabled"]
    return None


class MaintenanceService:
    """Reads and toggles the single maintenance_mode row."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _active_row(self) -> MaintenanceModeDB | None:
        result = await self.db_session.execute(
            select(MaintenanceModeDB).where(MaintenanceModeDB.is_enabled.is_(True)).limit(1)
        )
        return result.scalar_one_or_none()

    async def is_enabled(self) -> bool:
        """Whether maintenance mode is on; a database error counts as off."""
        global _cache
        cached = _cached_enabled()
        if cached is not None:
            return cached

        try:
            row = await self._active_row()
        except SQLAlchemyError as e:
            logger.error("maintenance_check_failed", error=str(e))
            return False

        _cache = {"enabled": row is not None, "timestamp": time.monotonic()}
        return _cache["enabled"]

    async def info(self, now: datetime | None = None) -> dict | None:
        """Message and ETA for the maintenance page, or None when not active."""
        row = await self._active_row()
        if row is None:
            return None

        estimated_minutes = None
        if row.estimated_end_time:
            remaining = (row.estimated_end_time - (now or datetime.utcnow())).total_seconds()
            estimated_minutes = round(remaining / 60) if remaining > 0 else 0

        return {
            "enabled": True,
            "message": row.message,
            "estimated_end_time": (
                row.estimated_end_time.isoformat() if row.estimated_end_time else None
            ),
            "started_at": row.started_at.isoformat() if row.started_at else None,
            "estimated_minutes": estimated_minutes,
        }

    async def activate(
        self,
        admin_id: uuid.UUID,
        message: str | None = None,
        estimated_minutes: int | None = None,
        now: datetime | None = None,
    ) -> None:
        now = now or datetime.utcnow()
        estimated_end = now + timedelta(minutes=estimated_minutes) if estimated_minutes else None

        result = await self.db_session.execute(select(MaintenanceModeDB).limit(1))
        row = result.scalar_one_or_none()
        if row is None:
            row = MaintenanceModeDB()
            self.db_session.add(row)

        row.is_enabled = True
        row.message = message or DEFAULT_MESSAGE
        row.estimated_end_time = estimated_end
        row.started_at = now
        row.started_by = admin_id
        row.ended_at = None
        row.ended_by = None

        await self.db_session.commit()
        clear_maintenance_cache()
        logger.warning("maintenance_activated", admin_id=str(admin_id), estimated_minutes=estimated_minutes)

    async def deactivate(
        self,
        admin_id: uuid.UUID,
        admin_name: str,
        reason: str = "manual",
        now: datetime | None = None,
    ) -> None:
        """Turn maintenance off and record how long it lasted."""
        now = now or datetime.utcnow()
        row = await self._active_row()
        if row is None:
            return

        if row.started_at and row.started_by:
            duration = round((now - row.started_at).total_seconds() / 60)
            self.db_session.add(
                MaintenanceLogDB(
                    started_at=row.started_at,
                    ended_at=now,
                    duration=duration,
                    message=row.message,
                    started_by=row.started_by,
                    started_by_name=admin_name,
                    ended_by=admin_id,
                    ended_by_name=admin_name,
                    reason=reason or "manual",
                )
            )

        row.is_enabled = False
        row.ended_at = now
        row.ended_by = admin_id

        await self.db_session.commit()
        clear_maintenance_cache()
        logger.warning("maintenance_deactivated", admin_id=str(admin_id))

    async def status(self) -> dict:
        result = await self.db_session.execute(select(MaintenanceModeDB).limit(1))
        row = result.scalar_one_or_none()
        if row is None:
            return {"enabled": False, "message": None, "estimated_end_time": None, "started_at": None}
        return {
            "enabled": row.is_enabled,
            "message": row.message,
            "estimated_end_time": (
                row.estimated_end_time.isoformat() if row.estimated_end_time else None
            ),
            "started_at": row.started_at.isoformat() if row.started_at else None,
            "started_by": str(row.started_by) if row.started_by else None,
            "ended_at": row.ended_at.isoformat() if row.ended_at else None,
        }

    async def history(self, limit: int = 10) -> list[dict]:
        result = await self.db_session.execute(
            select(MaintenanceLogDB).order_by(MaintenanceLogDB.started_at.desc()).limit(limit)
        )
        return [
            {
                "id": str(log.id),
                "started_at": log.started_at.isoformat(),
                "ended_at": log.ended_at.isoformat(),
                "duration": log.duration,
                "message": log.message,
                "started_by_name": log.started_by_name,
                "ended_by_name": log.ended_by_name,
                "reason": log.reason,
            }
            for log in result.scalars().all()
        ]
