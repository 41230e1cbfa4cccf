"""Registration, login and profile endpoints for end users."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.api.middleware.rate_limiter import check_login_rate_limit
from duely.models.user import (
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    UserDB,
)
from duely.services.auth import AccountService, create_access_token, serialize_user
from duely.services.database import get_db_session

router = APIRouter(prefix="/api", tags=["auth"])


@router.post(
    "/auth/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_login_rate_limit)],
)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db_session)) -> dict:
    """Create an account and return it with a bearer token."""
    user = await AccountService(db).register(request)
    return {
        "message": "User created successfully",
        "user": serialize_user(user),
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
    }


@router.post("/auth/login", dependencies=[Depends(check_login_rate_limit)])
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db_session)) -> dict:
    user = await AccountService(db).authenticate(request.email, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return {
        "user": serialize_user(user),
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
    }


@router.get("/auth/me")
async def me(current_user: UserDB = Depends(get_current_user)) -> dict:
    return {"user": serialize_user(current_user)}


@router.put("/user/profile")
async def update_profile(
    update: ProfileUpdate,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    user = await AccountService(db).update_profile(current_user.id, update)
    return {"user": serialize_user(user)}


@router.post("/user/password")
async def change_password(
    change: PasswordChange,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AccountService(db).change_password(current_user.id, change)
    return {"message": "Password updated successfully"}
