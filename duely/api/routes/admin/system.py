"""System health and audit log endpoints for the admin console."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.admin.health import HealthService
from duely.api.middleware.admin_auth import get_current_admin
from duely.models.base import to_naive_utc
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin", tags=["admin-system"])


@router.get("/system/health")
async def system_health(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await HealthService(db).system_health()


@router.get("/logs")
async def audit_logs(
    admin_id: uuid.UUID | None = None,
    action: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    limit: int = Query(50, ge=1, le=500),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    logs = await AuditLogger(db).get_logs(
        admin_id, action, to_naive_utc(start_time), to_naive_utc(end_time), limit
    )
    return {"logs": logs, "count": len(logs)}


@router.get("/logs/stats")
async def audit_log_stats(
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await AuditLogger(db).get_action_statistics(to_naive_utc(start_time), to_naive_utc(end_time))
