"""FastAPI application setup and configuration."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from duely import __version__
from duely.api.middleware.error_handler import (
    duely_exception_handler,
    generic_exception_handler,
    permission_exception_handler,
    validation_exception_handler,
)
from duely.api.middleware.logging import LoggingMiddleware, setup_logging
from duely.api.middleware.maintenance import MaintenanceMiddleware
from duely.api.routes import (
    analytics,
    auth,
    categories,
    cron,
    dashboard,
    health,
    maintenance,
    members,
    notifications,
    plans,
    settings,
    subscriptions,
    webhooks,
)
from duely.api.routes.admin import analytics as admin_analytics
from duely.api.routes.admin import auth as admin_auth
from duely.api.routes.admin import export as admin_export
from duely.api.routes.admin import maintenance as admin_maintenance
from duely.api.routes.admin import notifications as admin_notifications
from duely.api.routes.admin import settings as admin_settings
from duely.api.routes.admin import system as admin_system
from duely.api.routes.admin import users as admin_users
from duely.services.database import initialize_database, shutdown_database
from duely.services.errors import DuelyError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "json"),
    )

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        db_manager = initialize_database(database_url)
        await db_manager.initialize_async()

    yield

    # Shutdown
    await shutdown_database()


app = FastAPI(
    title="Duely",
    description="Track recurring subscriptions, budgets and renewals across a household",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ========== CORS Configuration ==========

allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

# ========== Custom Middleware ==========

app.add_middleware(MaintenanceMiddleware)

# Logging middleware is added last so it wraps everything else
app.add_middleware(LoggingMiddleware)

# ========== Exception Handlers ==========

app.add_exception_handler(DuelyError, duely_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(PermissionError, permission_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# ========== Route Registration ==========

app.include_router(health.router)

app.include_router(auth.router)
app.include_router(subscriptions.router)
app.include_router(categories.router)
app.include_router(members.router)
app.include_router(dashboard.router)
app.include_router(analytics.router)
app.include_router(settings.router)
app.include_router(notifications.router)
app.include_router(plans.router)
app.include_router(webhooks.router)
app.include_router(cron.router)
app.include_router(maintenance.router)

app.include_router(admin_auth.router)
app.include_router(admin_users.router)
app.include_router(admin_analytics.router)
app.include_router(admin_system.router)
app.include_router(admin_settings.router)
app.include_router(admin_notifications.router)
app.include_router(admin_maintenance.router)
app.include_router(admin_export.router)

# ========== Root Endpoint ==========


@app.get(
    "/",
    tags=["root"],
    summary="API root",
    description="Returns API information and available endpoints",
)
async def root() -> dict:
    return {
        "service": "Duely",
        "version": __version__,
        "description": "Subscription tracking with budgets, reminders and analytics",
        "documentation": {
            "openapi": "/openapi.json",
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": {
            "liveness": "/v1/liveness",
            "readiness": "/v1/readiness",
            "health": "/v1/health",
        },
    }


# ========== Development Server ==========

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "duely.api.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info",
    )
