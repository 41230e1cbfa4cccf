"""Cookie-session authentication for admin routes."""

import uuid

from fastapi import Cookie, HTTPException, Request, status

from duely.admin.session import SESSION_COOKIE_NAME, verify_admin_session


def client_ip(request: Request) -> str:
    """First ``x-forwarded-for`` hop, else the socket peer, else ``"unknown"``."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


async def get_current_admin(
    request: Request,
    admin_session: str | None = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> dict:
    """FastAPI dependency returning the admin session claims.

    The claims carry ``admin_id`` (as a UUID), ``email`` and ``name``.

    Raises:
        HTTPException: 401 if the cookie is missing or invalid
    """
    claims = verify_admin_session(admin_session)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        admin_id = uuid.UUID(claims["admin_id"])
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from e

    request.state.user_id = f"admin:{admin_id}"
    return {"admin_id": admin_id, "email": claims.get("email"), "name": claims.get("name")}
