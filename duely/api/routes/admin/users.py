"""Admin management of user accounts and their tracked subscriptions."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.users import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, AdminUserService
from duely.api.middleware.admin_auth import client_ip, get_current_admin, user_agent
from duely.models.admin import AdminSubscriptionUpdate, AdminUserUpdate, SubscriptionStatusChange
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/admin", tags=["admin-users"])


@router.get("/users")
async def list_users(
    search: str | None = None,
    plan: str | None = None,
    status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Paginated user list.

    Args:
        search: Matches name, email or username
        plan: ``free``, ``pro``, ``business`` or ``all``
        status: Plan status or ``all``
        page: 1-based page number
        limit: Page size
    """
    return await AdminUserService(db).list_users(search, plan, status, page, limit)


@router.get("/users/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await AdminUserService(db).get_user(user_id)


@router.put("/users/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    update: AdminUserUpdate,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    user = await AdminUserService(db).update_user(
        user_id,
        update,
        current_admin["admin_id"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "user": user}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    cascade = await AdminUserService(db).delete_user(
        user_id,
        current_admin["admin_id"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "deleted": cascade}


@router.get("/subscriptions")
async def list_subscriptions(
    search: str | None = None,
    status: str | None = None,
    user_id: uuid.UUID | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await AdminUserService(db).list_subscriptions(search, status, user_id, page, limit)


@router.get("/subscriptions/{subscription_id}")
async def get_subscription(
    subscription_id: uuid.UUID,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"subscription": await AdminUserService(db).get_subscription(subscription_id)}


@router.put("/subscriptions/{subscription_id}")
async def update_subscription(
    subscription_id: uuid.UUID,
    update: AdminSubscriptionUpdate,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    subscription = await AdminUserService(db).update_subscription(
        subscription_id,
        update,
        current_admin["admin_id"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "subscription": subscription}


@router.delete("/subscriptions/{subscription_id}")
async def delete_subscription(
    subscription_id: uuid.UUID,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AdminUserService(db).delete_subscription(
        subscription_id,
        current_admin["admin_id"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}


@router.post("/subscriptions/{subscription_id}/status")
async def change_subscription_status(
    subscription_id: uuid.UUID,
    change: SubscriptionStatusChange,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Pause, resume or cancel a subscription on the user's behalf."""
    subscription = await AdminUserService(db).change_subscription_status(
        subscription_id,
        change.status,
        current_admin["admin_id"],
        reason=change.reason,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "subscription": subscription}
