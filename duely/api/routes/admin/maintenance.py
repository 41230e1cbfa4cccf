"""Switching maintenance mode on and off."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.api.middleware.admin_auth import client_ip, get_current_admin, user_agent
from duely.models.admin import MaintenanceToggle
from duely.services.database import get_db_session
from duely.services.maintenance import MaintenanceService

router = APIRouter(prefix="/api/admin/maintenance", tags=["admin-maintenance"])


@router.get("")
async def maintenance_status(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await MaintenanceService(db).status()


@router.post("")
async def toggle_maintenance(
    toggle: MaintenanceToggle,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Turn maintenance mode on (with message and ETA) or off."""
    admin_id = current_admin["admin_id"]
    service = MaintenanceService(db)

    if toggle.enabled:
        await service.activate(admin_id, toggle.message, toggle.estimated_minutes)
        action = "maintenance_enabled"
    else:
        await service.deactivate(admin_id, current_admin["name"] or current_admin["email"], toggle.reason)
        action = "maintenance_disabled"

    await AuditLogger(db).log_action(
        admin_id,
        action,
        target="maintenance_mode",
        metadata={
            "message": toggle.message,
            "estimated_minutes": toggle.estimated_minutes,
            "reason": toggle.reason,
        },
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "status": await service.status()}


@router.get("/history")
async def maintenance_history(
    limit: int = Query(10, ge=1, le=100),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"history": await MaintenanceService(db).history(limit)}
