"""Reject user API requests with 503 while maintenance mode is on."""

from collections.abc import Callable
from contextlib import asynccontextmanager

import structlog
from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from duely.api.middleware.error_handler import ErrorResponse
from duely.services.database import get_db_session
from duely.services.maintenance import MaintenanceService

logger = structlog.get_logger(__name__)

EXEMPT_PREFIXES = (
    "/api/admin",
    "/api/webhooks",
    "/api/maintenance",
    "/api/cron",
    "/v1/",
)


def is_exempt(path: str) -> bool:
    """Only ``/api/`` paths are gated; admin, webhook, cron and health paths never are."""
    if not path.startswith("/api/"):
        return True
    return path.startswith(EXEMPT_PREFIXES)


class MaintenanceMiddleware(BaseHTTPMiddleware):
    """Answers 503 for gated paths when maintenance mode is enabled."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_exempt(request.url.path):
            return await call_next(request)

        # Honour dependency overrides so tests share the app's session
        dependency = request.app.dependency_overrides.get(get_db_session, get_db_session)
        try:
            async with asynccontextmanager(dependency)() as session:
                info = None
                if await MaintenanceService(session).is_enabled():
                    info = await MaintenanceService(session).info()
        except RuntimeError as e:
            logger.warning("maintenance_check_skipped", error=str(e))
            return await call_next(request)

        if info is None:
            return await call_next(request)

        return ErrorResponse.create(
            error_type="maintenance",
            message=info["message"] or "Service is under maintenance",
            details={
                "estimated_end_time": info["estimated_end_time"],
                "estimated_minutes": info["estimated_minutes"],
            },
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
