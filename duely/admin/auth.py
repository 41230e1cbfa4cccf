"""Admin credential checks and account lookup."""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import AdminDB
from duely.services.passwords import hash_password, verify_password

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def serialize_admin(admin: AdminDB) -> dict:
    return {
        "id": str(admin.id),
        "email": admin.email,
        "name": admin.name,
        "role": admin.role,
        "two_factor_enabled": admin.two_factor_enabled,
        "last_login": admin.last_login.isoformat() if admin.last_login else None,
        "created_at": admin.created_at.isoformat(),
    }


class AdminAuthService:
    """Verifies admin passwords and records logins."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def get_admin(self, admin_id: uuid.UUID) -> AdminDB | None:
        admin = await self.db_session.get(AdminDB, admin_id)
        if admin is None or not admin.is_active:
            return None
        return admin

    async def get_admin_by_email(self, email: str) -> AdminDB | None:
        result = await self.db_session.execute(
            select(AdminDB).where(AdminDB.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def verify_credentials(self, email: str, password: str) -> AdminDB | None:
        """The admin matching ``email`` and ``password``, or None.

        Unknown emails and wrong passwords are indistinguishable to the caller.
        """
        admin = await self.get_admin_by_email(email)
        if admin is None or not admin.is_active:
            return None
        if not verify_password(password, admin.password_hash):
            logger.warning("admin_login_rejected", admin_id=str(admin.id))
            return None
        return admin

    async def record_login(self, admin: AdminDB) -> None:
        admin.last_login = datetime.utcnow()
        await self.db_session.commit()

    async def create_admin(self, email: str, password: str, name: str, role: str = "admin") -> AdminDB:
        admin = AdminDB(
            email=email.strip().lower(),
            name=name,
            password_hash=hash_password(password),
            role=role,
        )
        self.db_session.add(admin)
        await self.db_session.commit()
        logger.info("admin_created", admin_id=str(admin.id))
        return admin
