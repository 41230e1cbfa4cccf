"""Budget category endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.subscription import CategoryCreate, CategoryUpdate
from duely.models.user import UserDB
from duely.services.categories import CategoryService, serialize_category
from duely.services.database import get_db_session

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("")
async def list_categories(
    with_stats: bool = False,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """List categories, optionally with spending and budget utilization."""
    service = CategoryService(db)
    if with_stats:
        return {"categories": await service.with_stats(current_user.id)}
    categories = await service.list_categories(current_user.id)
    return {"categories": [serialize_category(category) for category in categories]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    category = await CategoryService(db).create(current_user.id, data)
    return {"category": serialize_category(category)}


@router.get("/stats")
async def category_stats(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await CategoryService(db).category_stats(current_user.id)


@router.get("/{category_id}")
async def get_category(
    category_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"category": await CategoryService(db).get(current_user.id, category_id)}


@router.put("/{category_id}")
async def update_category(
    category_id: uuid.UUID,
    data: CategoryUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    category = await CategoryService(db).update(current_user.id, category_id, data)
    return {"category": serialize_category(category)}


@router.delete("/{category_id}")
async def delete_category(
    category_id: uuid.UUID,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await CategoryService(db).delete(current_user.id, category_id)
    return {"message": "Category deleted successfully"}
