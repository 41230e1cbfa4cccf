"""Per-user preferences (display currency, reminders, monthly budget)."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.user import UserSettingsDB, UserSettingsUpdate

DEFAULT_CURRENCY = "IDR"
NULLABLE_FIELDS = {"monthly_budget_limit", "monthly_budget_currency"}


def serialize_settings(settings: UserSettingsDB) -> dict:
    return {
        "currency": settings.currency,
        "language": settings.language,
        "email_reminders": settings.email_reminders,
        "reminder_days_before": settings.reminder_days_before,
        "weekly_digest": settings.weekly_digest,
        "monthly_budget_limit": settings.monthly_budget_limit,
        "monthly_budget_currency": settings.monthly_budget_currency,
        "updated_at": settings.updated_at.isoformat() if settings.updated_at else None,
    }


class UserSettingsService:
    """Reads and updates the user_settings row, creating it on first access."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def get_or_create(self, user_id: uuid.UUID) -> UserSettingsDB:
        result = await self.db_session.execute(
            select(UserSettingsDB).where(UserSettingsDB.user_id == user_id)
        )
        settings = result.scalar_one_or_none()
        if settings is None:
            settings = UserSettingsDB(
                user_id=user_id,
                currency=DEFAULT_CURRENCY,
                language="en",
                email_reminders=True,
                reminder_days_before=3,
                weekly_digest=False,
            )
            self.db_session.add(settings)
            await self.db_session.commit()
        return settings

    async def get_currency(self, user_id: uuid.UUID) -> str:
        settings = await self.get_or_create(user_id)
        return settings.currency or DEFAULT_CURRENCY

    async def update(self, user_id: uuid.UUID, update: UserSettingsUpdate) -> UserSettingsDB:
        settings = await self.get_or_create(user_id)
        for field, value in update.model_dump(exclude_unset=True).items():
            if value is None and field not in NULLABLE_FIELDS:
                continue
            setattr(settings, field, value)
        await self.db_session.commit()
        return settings
