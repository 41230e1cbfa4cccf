"""Admin notification feed endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.notifications import AdminNotificationService, serialize_admin_notification
from duely.api.middleware.admin_auth import get_current_admin
from duely.models.admin import AdminNotificationCreate
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin/notifications", tags=["admin-notifications"])


@router.get("")
async def list_notifications(
    type: str | None = None,
    category: str | None = None,
    is_read: bool | None = None,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = AdminNotificationService(db)
    return {
        "notifications": await service.list_notifications(type, category, is_read),
        "unread_count": await service.unread_count(),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_notification(
    data: AdminNotificationCreate,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    notification = await AdminNotificationService(db).create(**data.model_dump())
    return {"notification": serialize_admin_notification(notification)}


@router.post("/read-all")
async def mark_all_read(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    updated = await AdminNotificationService(db).mark_all_read(current_admin["admin_id"])
    return {"success": True, "updated": updated}


@router.post("/cleanup")
async def cleanup_expired(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    deleted = await AdminNotificationService(db).cleanup_expired()
    return {"success": True, "deleted": deleted}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AdminNotificationService(db).mark_read(notification_id, current_admin["admin_id"])
    return {"success": True}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AdminNotificationService(db).delete(notification_id)
    return {"success": True}
