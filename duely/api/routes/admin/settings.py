"""Site-wide settings managed from the admin console."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.admin.settings import SETTING_CATEGORIES, AdminSettingsService
from duely.api.middleware.admin_auth import client_ip, get_current_admin, user_agent
from duely.models.admin import SettingWrite
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin/settings", tags=["admin-settings"])


class BulkSettingsUpdate(BaseModel):
    """Request schema for updating several settings at once."""

    settings: list[SettingWrite]


@router.get("")
async def list_settings(
    category: str | None = None,
    grouped: bool = False,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    if category and category not in SETTING_CATEGORIES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category")

    service = AdminSettingsService(db)
    if grouped:
        return {"settings": await service.grouped()}
    return {"settings": await service.list_settings(category)}


@router.post("")
async def set_setting(
    setting: SettingWrite,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    admin_id = current_admin["admin_id"]
    await AdminSettingsService(db).set(
        setting.key,
        setting.value,
        setting.type,
        setting.category,
        setting.description,
        updated_by=admin_id,
    )
    await AuditLogger(db).log_action(
        admin_id,
        "setting_updated",
        target=setting.key,
        metadata={"key": setting.key, "category": setting.category},
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}


@router.put("")
async def bulk_update_settings(
    body: BulkSettingsUpdate,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    admin_id = current_admin["admin_id"]
    updated = await AdminSettingsService(db).bulk_update(
        [setting.model_dump() for setting in body.settings], updated_by=admin_id
    )
    await AuditLogger(db).log_action(
        admin_id,
        "settings_bulk_updated",
        target=f"{updated} settings",
        metadata={"keys": [setting.key for setting in body.settings]},
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "updated": updated}


@router.post("/initialize")
async def initialize_settings(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create missing default settings without touching existing values."""
    created = await AdminSettingsService(db).initialize_defaults()
    return {"success": True, "created": created}


@router.delete("/{key}")
async def delete_setting(
    key: str,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    if not await AdminSettingsService(db).delete(key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")

    await AuditLogger(db).log_action(
        current_admin["admin_id"],
        "setting_deleted",
        target=key,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}
