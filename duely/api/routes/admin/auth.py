"""Admin login, logout and two-factor authentication endpoints."""

import os

import structlog
from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.admin.auth import INVALID_CREDENTIALS_MESSAGE, AdminAuthService, serialize_admin
from duely.admin.session import (
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE_SECONDS,
    create_admin_session,
    create_pending_2fa_token,
    verify_admin_session,
    verify_pending_2fa_token,
)
from duely.admin.two_factor import TwoFactorService
from duely.api.middleware.admin_auth import client_ip, get_current_admin, user_agent
from duely.api.middleware.rate_limiter import check_admin_login_rate_limit
from duely.models.admin import AdminDB, AdminLoginRequest, TwoFactorCodeRequest, TwoFactorSetupComplete
from duely.services.database import get_db_session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin/auth", tags=["admin-auth"])

INVALID_CODE_MESSAGE = "Invalid verification code"


def _set_session_cookie(response: Response, admin: AdminDB) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_admin_session(admin.id, admin.email, admin.name),
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=os.getenv("ENVIRONMENT") == "production",
        samesite="lax",
        path="/",
    )


async def _finish_login(
    request: Request, response: Response, db: AsyncSession, admin: AdminDB, action: str
) -> dict:
    await AdminAuthService(db).record_login(admin)
    await AuditLogger(db).log_action(
        admin.id,
        action,
        target=admin.email,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    _set_session_cookie(response, admin)
    return {"success": True, "admin": serialize_admin(admin)}


@router.post("/login", dependencies=[Depends(check_admin_login_rate_limit)])
async def login(
    credentials: AdminLoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Check admin credentials and open a session.

    When the admin has 2FA enabled no session is opened; the response carries
    ``requires_2fa`` and a pending token for ``/2fa/verify`` instead.

    Raises:
        HTTPException: 401 on wrong credentials, 429 when rate limited
    """
    admin = await AdminAuthService(db).verify_credentials(credentials.email, credentials.password)
    if admin is None:
        logger.warning("admin_login_failed", client_ip=client_ip(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_MESSAGE,
        )

    if admin.two_factor_enabled:
        return {
            "success": True,
            "requires_2fa": True,
            "pending_token": create_pending_2fa_token(admin.id),
        }

    return await _finish_login(request, response, db, admin, "login")


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    admin_session: str | None = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    claims = verify_admin_session(admin_session)
    if claims is not None:
        admin = await AdminAuthService(db).get_admin_by_email(claims.get("email") or "")
        if admin is not None and str(admin.id) == claims["admin_id"]:
            await AuditLogger(db).log_action(
                admin.id,
                "logout",
                target=admin.email,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"success": True}


@router.get("/check")
async def auth_check(current_admin: dict = Depends(get_current_admin)) -> dict:
    return {
        "authenticated": True,
        "admin": {
            "id": str(current_admin["admin_id"]),
            "email": current_admin["email"],
            "name": current_admin["name"],
        },
    }


@router.post("/2fa/verify", dependencies=[Depends(check_admin_login_rate_limit)])
async def verify_two_factor(
    body: TwoFactorCodeRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Exchange a pending token plus a TOTP or backup code for a session."""
    admin_id = verify_pending_2fa_token(body.pending_token)
    if admin_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired verification session",
        )

    admin = await AdminAuthService(db).get_admin(admin_id)
    if admin is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not await TwoFactorService(db).verify(admin_id, body.token, body.is_backup_code):
        logger.warning("admin_2fa_failed", admin_id=str(admin_id))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CODE_MESSAGE)

    return await _finish_login(
        request, response, db, admin, "login_backup_code" if body.is_backup_code else "login"
    )


@router.get("/2fa/status")
async def two_factor_status(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await TwoFactorService(db).status(current_admin["admin_id"])


@router.get("/2fa/setup")
async def begin_two_factor_setup(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """New TOTP secret with its QR code; nothing is stored until confirmed."""
    return await TwoFactorService(db).begin_setup(current_admin["admin_id"])


@router.post("/2fa/setup")
async def complete_two_factor_setup(
    body: TwoFactorSetupComplete,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    admin_id = current_admin["admin_id"]
    codes = await TwoFactorService(db).complete_setup(admin_id, body.secret, body.token)
    await AuditLogger(db).log_action(
        admin_id,
        "2fa_enabled",
        target=current_admin["email"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "backup_codes": codes}


@router.post("/2fa/disable")
async def disable_two_factor(
    body: TwoFactorCodeRequest,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    admin_id = current_admin["admin_id"]
    service = TwoFactorService(db)
    if not await service.verify(admin_id, body.token, body.is_backup_code):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CODE_MESSAGE)

    await service.disable(admin_id)
    await AuditLogger(db).log_action(
        admin_id,
        "2fa_disabled",
        target=current_admin["email"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}


@router.get("/2fa/backup-codes")
async def backup_codes_remaining(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"remaining": await TwoFactorService(db).remaining_backup_codes(current_admin["admin_id"])}


@router.post("/2fa/backup-codes")
async def regenerate_backup_codes(
    body: TwoFactorCodeRequest,
    request: Request,
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Replace all backup codes; requires a current TOTP code."""
    admin_id = current_admin["admin_id"]
    service = TwoFactorService(db)
    if not await service.verify_token(admin_id, body.token):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CODE_MESSAGE)

    codes = await service.regenerate_backup_codes(admin_id)
    await AuditLogger(db).log_action(
        admin_id,
        "backup_codes_regenerated",
        target=current_admin["email"],
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True, "backup_codes": codes}
