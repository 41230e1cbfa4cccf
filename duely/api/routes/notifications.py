"""In-app notification and Web Push subscription endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.notification import PushSubscriptionCreate, PushUnsubscribe
from duely.models.user import UserDB
from duely.services.database import get_db_session
from duely.services.notifications import NotificationService
from duely.services.push import PushService

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/notifications")
async def list_notifications(
    unread_only: bool = False,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = NotificationService(db)
    return {
        "notifications": await service.list_notifications(current_user.id, unread_only),
        "unread_count": await service.unread_count(current_user.id),
    }


@router.get("/notifications/unread-count")
async def unread_count(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"count": await NotificationService(db).unread_count(current_user.id)}


@router.post("/notifications/read-all")
async def mark_all_read(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    updated = await NotificationService(db).mark_all_read(current_user.id)
    return {"success": True, "updated": updated}


@router.delete("/notifications/read")
async def clear_read(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    deleted = await NotificationService(db).clear_read(current_user.id)
    return {"success": True, "deleted": deleted}


@router.post("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await NotificationService(db).mark_read(current_user.id, notification_id)
    return {"success": True}


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await NotificationService(db).delete(current_user.id, notification_id)
    return {"success": True}


@router.get("/push/vapid-public-key")
async def vapid_public_key(db: AsyncSession = Depends(get_db_session)) -> dict:
    """Public VAPID key the browser needs to create a push subscription."""
    service = PushService(db)
    return {"public_key": service.public_key, "configured": service.is_configured}


@router.get("/push/subscriptions")
async def list_push_subscriptions(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"subscriptions": await PushService(db).list_subscriptions(current_user.id)}


@router.post("/push/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    data: PushSubscriptionCreate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    subscription = await PushService(db).subscribe(current_user.id, data)
    return {"success": True, "id": str(subscription.id)}


@router.post("/push/unsubscribe")
async def unsubscribe(
    data: PushUnsubscribe,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    removed = await PushService(db).unsubscribe(current_user.id, data.endpoint)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Push subscription not found",
        )
    return {"success": True}


@router.post("/push/test")
async def send_test_push(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = PushService(db)
    if not service.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured",
        )
    return {"success": await service.send_test(current_user.id)}
