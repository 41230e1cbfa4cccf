"""Public maintenance status for the maintenance page."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from duely.services.database import get_db_session
from duely.services.maintenance import MaintenanceService

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])


@router.get("/info")
async def maintenance_info(db: AsyncSession = Depends(get_db_session)) -> dict:
    info = await MaintenanceService(db).info()
    return info or {"enabled": False}
