"""Bearer-token authentication for end-user routes."""

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.user import UserDB
from duely.services.auth import decode_access_token
from duely.services.database import get_db_session

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def extract_token_from_header(authorization: str | None) -> str | None:
    """Return the token from ``Bearer <token>``, or None for any other shape."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    authorization: str = Header(None),
    db: AsyncSession = Depends(get_db_session),
) -> UserDB:
    """FastAPI dependency for getting the authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, malformed, invalid or
            belongs to a user that no longer exists

    Example:
        @router.get("/api/subscriptions")
        async def list_subscriptions(user: UserDB = Depends(get_current_user)):
            ...
    """
    if not authorization:
        raise _unauthorized("Missing Authorization header")

    token = extract_token_from_header(authorization)
    if not token:
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")

    user_id = decode_access_token(token)
    if user_id is None:
        raise _unauthorized("Invalid or expired token")

    user = await db.get(UserDB, user_id)
    if user is None:
        raise _unauthorized("Invalid or expired token")

    # Used by the rate limiter to key buckets per user
    request.state.user_id = str(user.id)
    return user
