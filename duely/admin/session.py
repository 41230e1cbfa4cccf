"""Signed admin session tokens carried in the ``admin_session`` cookie."""

import os
import uuid
from datetime import datetime, timedelta

from jose import JWTError, jwt

SESSION_COOKIE_NAME = "admin_session"
SESSION_MAX_AGE_SECONDS = 60 * 60 * 24 * 7
PENDING_2FA_MAX_AGE_SECONDS = 60 * 5
TOKEN_ALGORITHM = "HS256"


def _session_secret() -> str:
    secret = os.getenv("ADMIN_SESSION_SECRET")
    if not secret:
        raise RuntimeError("ADMIN_SESSION_SECRET environment variable not set")
    return secret


def _encode(claims: dict, max_age_seconds: int) -> str:
    now = datetime.utcnow()
    claims = {**claims, "iat": now, "exp": now + timedelta(seconds=max_age_seconds)}
    return jwt.encode(claims, _session_secret(), algorithm=TOKEN_ALGORITHM)


def _decode(token: str | None, token_type: str) -> dict | None:
    if not token:
        return None
    try:
        claims = jwt.decode(token, _session_secret(), algorithms=[TOKEN_ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != token_type or not claims.get("admin_id"):
        return None
    return claims


def create_admin_session(admin_id: uuid.UUID, email: str, name: str | None) -> str:
    """Session token stored in the admin cookie for seven days."""
    return _encode(
        {"admin_id": str(admin_id), "email": email, "name": name, "type": "session"},
        SESSION_MAX_AGE_SECONDS,
    )


def verify_admin_session(token: str | None) -> dict | None:
    """Claims of a valid session token (admin_id, email, name), None otherwise."""
    return _decode(token, "session")


def create_pending_2fa_token(admin_id: uuid.UUID) -> str:
    """Short-lived token proving the password step passed for ``admin_id``."""
    return _encode({"admin_id": str(admin_id), "type": "2fa_pending"}, PENDING_2FA_MAX_AGE_SECONDS)


def verify_pending_2fa_token(token: str | None) -> uuid.UUID | None:
    claims = _decode(token, "2fa_pending")
    if claims is None:
        return None
    try:
        return uuid.UUID(claims["admin_id"])
    except ValueError:
        return None
