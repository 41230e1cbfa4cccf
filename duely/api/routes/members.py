"""Family member endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.subscription import MemberCreate, MemberUpdate
from duely.models.user import UserDB
from duely.services.database import get_db_session
from duely.services.members import MemberService, serialize_member

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("")
async def list_members(
    with_stats: bool = False,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = MemberService(db)
    if with_stats:
        return {"members": await service.with_stats(current_user.id)}
    members = await service.list_members(current_user.id)
    return {"members": [serialize_member(member) for member in members]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_member(
    data: MemberCreate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    member = await MemberService(db).create(current_user.id, data)
    return {"member": serialize_member(member)}


@router.get("/stats")
async def member_stats(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await MemberService(db).member_stats(current_user.id)


@router.get("/family-savings")
async def family_plan_savings(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Services paid separately by several members that a family plan could cover."""
    return await MemberService(db).family_plan_savings(current_user.id)


@router.get("/{member_id}")
async def get_member(
    member_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"member": await MemberService(db).get(current_user.id, member_id)}


@router.get("/{member_id}/subscriptions")
async def member_subscriptions(
    member_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await MemberService(db).member_subscriptions(current_user.id, member_id)


@router.put("/{member_id}")
async def update_member(
    member_id: uuid.UUID,
    data: MemberUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    member = await MemberService(db).update(current_user.id, member_id, data)
    return {"member": serialize_member(member)}


@router.delete("/{member_id}")
async def delete_member(
    member_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await MemberService(db).delete(current_user.id, member_id)
    return {"message": "Member deleted successfully"}
