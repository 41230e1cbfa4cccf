"""Health check endpoints for readiness and liveness probes."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from duely import __version__
from duely.services.database import get_db_manager

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    db_manager = get_db_manager()
    if db_manager is None:
        return "not_initialized"
    return "healthy" if await db_manager.health_check() else "unhealthy"


@router.get(
    "/v1/readiness",
    summary="Readiness probe",
    description="Check if the service is ready to accept requests",
    status_code=status.HTTP_200_OK,
)
async def readiness() -> JSONResponse:
    """Readiness probe endpoint.

    Returns 200 when the database answers, 503 otherwise.
    """
    checks = {"database": await _database_status()}
    ready = all(value == "healthy" for value in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )


@router.get(
    "/v1/liveness",
    summary="Liveness probe",
    description="Check if the service is alive",
    status_code=status.HTTP_200_OK,
)
async def liveness() -> dict:
    return {"status": "alive"}


@router.get(
    "/v1/health",
    summary="General health check",
    description="Service status with dependency checks",
    status_code=status.HTTP_200_OK,
)
async def health() -> dict:
    database = await _database_status()
    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "version": __version__,
        "service": "duely",
        "checks": {"database": {"status": database}},
    }
