"""End-user accounts: registration, login tokens and profile changes."""

import os
import uuid
from datetime import datetime, timedelta

import structlog
from jose import JWTError, jwt
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import MemberDB
from duely.models.user import (
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    User,
    UserDB,
    UserSettingsDB,
)
from duely.services.errors import ConflictError, DomainValidationError, NotFoundError
from duely.services.passwords import hash_password, verify_password

logger = structlog.get_logger(__name__)

TOKEN_ALGORITHM = "HS256"
PRIMARY_MEMBER_COLOR = "#3b82f6"


def _auth_secret() -> str:
    secret = os.getenv("AUTH_SECRET")
    if not secret:
        raise RuntimeError("AUTH_SECRET environment variable not set")
    return secret


def create_access_token(user_id: uuid.UUID, expires_minutes: int | None = None) -> str:
    """Issue a signed bearer token for ``user_id``."""
    if expires_minutes is None:
        expires_minutes = int(os.getenv("AUTH_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))
    now = datetime.utcnow()
    claims = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "type": "access",
    }
    return jwt.encode(claims, _auth_secret(), algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID | None:
    """Return the user id carried by a valid token, None otherwise."""
    try:
        claims = jwt.decode(token, _auth_secret(), algorithms=[TOKEN_ALGORITHM])
    except JWTError:
        return None

    if claims.get("type") != "access" or not claims.get("sub"):
        return None
    try:
        return uuid.UUID(claims["sub"])
    except ValueError:
        return None


def serialize_user(user: UserDB) -> dict:
    return User.model_validate(user).model_dump(mode="json")


class AccountService:
    """Registration, credential checks and profile management for end users."""

    def __init__(self, db_session: AsyncSession):
        """Initialize account service.

        Args:
            db_session: Database session
        """
        self.db_session = db_session

    async def register(self, request: RegisterRequest) -> UserDB:
        """Create a user with a primary member and default settings.

        Raises:
            ConflictError: If the email or username is taken
        """
        result = await self.db_session.execute(
            select(UserDB).where(
                or_(UserDB.email == request.email, UserDB.username == request.username)
            )
        )
        existing = result.scalars().first()
        if existing is not None:
            if existing.email == request.email:
                raise ConflictError("User with this email already exists")
            raise ConflictError("Username is already taken")

        user = UserDB(
            id=uuid.uuid4(),
            name=request.name,
            username=request.username,
            email=request.email,
            password_hash=hash_password(request.password),
        )
        self.db_session.add(user)
        await self.db_session.flush()

        self.db_session.add(
            MemberDB(
                user_id=user.id,
                name=request.name,
                is_primary=True,
                avatar_color=PRIMARY_MEMBER_COLOR,
            )
        )
        self.db_session.add(UserSettingsDB(user_id=user.id))
        await self.db_session.commit()

        logger.info("user_registered", user_id=str(user.id))
        return user

    async def authenticate(self, email: str, password: str) -> UserDB | None:
        result = await self.db_session.execute(
            select(UserDB).where(UserDB.email == email.strip().lower())
        )
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    async def get_user(self, user_id: uuid.UUID) -> UserDB:
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: uuid.UUID, update: ProfileUpdate) -> UserDB:
        user = await self.get_user(user_id)

        if update.username and update.username != user.username:
            result = await self.db_session.execute(
                select(UserDB.id).where(UserDB.username == update.username)
            )
            if result.scalar_one_or_none() is not None:
                raise ConflictError("Username is already taken")
            user.username = update.username

        if update.name:
            user.name = update.name
        if update.image is not None:
            user.image = update.image or None

        await self.db_session.commit()
        return user

    async def change_password(self, user_id: uuid.UUID, change: PasswordChange) -> None:
        user = await self.get_user(user_id)
        if not verify_password(change.current_password, user.password_hash):
            raise DomainValidationError("Current password is incorrect")

        user.password_hash = hash_password(change.new_password)
        await self.db_session.commit()
        logger.info("user_password_changed", user_id=str(user_id))
