"""User preference endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.user import UserDB, UserSettingsUpdate
from duely.services.database import get_db_session
from duely.services.settings import UserSettingsService, serialize_settings

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def get_settings(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    settings = await UserSettingsService(db).get_or_create(current_user.id)
    return {"settings": serialize_settings(settings)}


@router.put("")
async def update_settings(
    update: UserSettingsUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    settings = await UserSettingsService(db).update(current_user.id, update)
    return {"settings": serialize_settings(settings)}
