"""Subscription CRUD, renewal and totals endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.subscription import (
    SortField,
    SubscriptionCreate,
    SubscriptionFilter,
    SubscriptionUpdate,
)
from duely.models.user import UserDB
from duely.services.database import get_db_session
from duely.services.subscriptions import SubscriptionService, serialize_subscription

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("")
async def list_subscriptions(
    search: str | None = Query(None, description="Case-insensitive service name match"),
    category_id: uuid.UUID | None = Query(None),
    member_id: uuid.UUID | None = Query(None),
    status_filter: str = Query(
        "all", alias="status", pattern=r"^(active|trial|paused|canceled|all)$"
    ),
    billing_frequency: str = Query("all", pattern=r"^(monthly|yearly|quarterly|weekly|all)$"),
    sort_by: SortField = Query(SortField.NEXT_BILLING),
    sort_order: str = Query("asc", pattern=r"^(asc|desc)$"),
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """List the user's subscriptions.

    Args:
        search: Substring of the service name
        category_id: Only subscriptions in this category
        member_id: Only subscriptions assigned to this member
        status_filter: Subscription status or ``all``
        billing_frequency: Billing frequency or ``all``
        sort_by: Column to sort on
        sort_order: ``asc`` or ``desc``

    Returns:
        Subscriptions with their category and member attached
    """
    filters = SubscriptionFilter(
        search=search,
        category_id=category_id,
        member_id=member_id,
        status=status_filter,
        billing_frequency=billing_frequency,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    subscriptions = await SubscriptionService(db).list_subscriptions(current_user.id, filters)
    return {"subscriptions": subscriptions, "count": len(subscriptions)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    subscription = await SubscriptionService(db).create(current_user.id, data)
    return {"subscription": serialize_subscription(subscription)}


@router.get("/stats")
async def subscription_stats(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await SubscriptionService(db).stats(current_user.id)


@router.get("/totals")
async def subscription_totals(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Monthly total and annual projection in the user's display currency."""
    return await SubscriptionService(db).totals(current_user.id)


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"subscription": await SubscriptionService(db).get(current_user.id, subscription_id)}


@router.put("/{subscription_id}")
async def update_subscription(
    subscription_id: uuid.UUID,
    data: SubscriptionUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    subscription = await SubscriptionService(db).update(current_user.id, subscription_id, data)
    return {"subscription": serialize_subscription(subscription)}


@router.delete("/{subscription_id}")
async def delete_subscription(
    subscription_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await SubscriptionService(db).delete(current_user.id, subscription_id)
    return {"message": "Subscription deleted successfully"}


@router.post("/{subscription_id}/renew")
async def renew_subscription(
    subscription_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Advance the next billing date by one billing period."""
    subscription = await SubscriptionService(db).renew(current_user.id, subscription_id)
    return {"subscription": serialize_subscription(subscription)}
