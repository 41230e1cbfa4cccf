"""Integration tests for account registration, login and preferences."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import MemberDB
from duely.models.user import (
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    UserSettingsDB,
    UserSettingsUpdate,
)
from duely.services.auth import AccountService
from duely.services.errors import ConflictError, DomainValidationError
from duely.services.settings import UserSettingsService


def register_request(**overrides) -> RegisterRequest:
    data = {
        "name": "budi santoso",
        "username": "Budi_S",
        "email": " Budi@Example.com ",
        "password": "secret123",
        "confirm_password": "secret123",
    }
    data.update(overrides)
    return RegisterRequest(**data)


@pytest.mark.integration
class TestRegistration:
    """Tests for creating accounts."""

    @pytest.mark.asyncio
    async def test_register_normalises_and_creates_defaults(self, async_db_session: AsyncSession) -> None:
        user = await AccountService(async_db_session).register(register_request())

        assert user.name == "Budi Santoso"
        assert user.username == "budi_s"
        assert user.email == "budi@example.com"
        assert user.subscription_plan == "free"
        assert user.password_hash and user.password_hash != "secret123"

        members = (
            await async_db_session.execute(select(MemberDB).where(MemberDB.user_id == user.id))
        ).scalars().all()
        assert len(members) == 1
        assert members[0].is_primary
        assert members[0].name == "Budi Santoso"

        settings = (
            await async_db_session.execute(
                select(UserSettingsDB).where(UserSettingsDB.user_id == user.id)
            )
        ).scalar_one()
        assert settings.currency == "IDR"
        assert settings.reminder_days_before == 3

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, async_db_session: AsyncSession) -> None:
        service = AccountService(async_db_session)
        await service.register(register_request())

        with pytest.raises(ConflictError) as exc_info:
            await service.register(register_request(username="another"))

        assert exc_info.value.message == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, async_db_session: AsyncSession) -> None:
        service = AccountService(async_db_session)
        await service.register(register_request())

        with pytest.raises(ConflictError) as exc_info:
            await service.register(register_request(email="other@example.com", username="BUDI_S"))

        assert exc_info.value.message == "Username is already taken"

    def test_mismatched_passwords_fail_validation(self) -> None:
        with pytest.raises(ValueError, match="Passwords don't match"):
            register_request(confirm_password="secret124")

    def test_weak_password_fails_validation(self) -> None:
        with pytest.raises(ValueError, match="at least one letter and one number"):
            register_request(password="abcdefgh", confirm_password="abcdefgh")


@pytest.mark.integration
class TestCredentials:
    """Tests for login and password changes."""

    @pytest.mark.asyncio
    async def test_authenticate(self, async_db_session: AsyncSession) -> None:
        service = AccountService(async_db_session)
        user = await service.register(register_request())

        assert (await service.authenticate("BUDI@example.com ", "secret123")).id == user.id
        assert await service.authenticate("budi@example.com", "wrong-pass1") is None
        assert await service.authenticate("nobody@example.com", "secret123") is None

    @pytest.mark.asyncio
    async def test_user_without_password_cannot_log_in(
        self, async_db_session: AsyncSession, user_factory
    ) -> None:
        await user_factory(email="google@example.com", username="google_user")

        assert await AccountService(async_db_session).authenticate("google@example.com", "") is None

    @pytest.mark.asyncio
    async def test_change_password(self, async_db_session: AsyncSession) -> None:
        service = AccountService(async_db_session)
        user = await service.register(register_request())

        with pytest.raises(DomainValidationError, match="Current password is incorrect"):
            await service.change_password(
                user.id, PasswordChange(current_password="nope", new_password="newpass123")
            )

        await service.change_password(
            user.id, PasswordChange(current_password="secret123", new_password="newpass123")
        )

        assert await service.authenticate("budi@example.com", "newpass123") is not None
        assert await service.authenticate("budi@example.com", "secret123") is None


@pytest.mark.integration
class TestProfile:
    """Tests for profile updates."""

    @pytest.mark.asyncio
    async def test_update_name_and_username(self, async_db_session: AsyncSession, test_user) -> None:
        service = AccountService(async_db_session)

        updated = await service.update_profile(
            test_user.id, ProfileUpdate(name="jane q doe", username="JaneQ")
        )

        assert updated.name == "Jane Q Doe"
        assert updated.username == "janeq"

    @pytest.mark.asyncio
    async def test_taken_username_rejected(self, async_db_session: AsyncSession, user_factory) -> None:
        first = await user_factory()
        await user_factory(email="other@example.com", username="other")

        with pytest.raises(ConflictError):
            await AccountService(async_db_session).update_profile(
                first.id, ProfileUpdate(username="other")
            )

    @pytest.mark.asyncio
    async def test_empty_image_clears_it(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(image="https://cdn.example.com/a.png")

        updated = await AccountService(async_db_session).update_profile(user.id, ProfileUpdate(image=""))

        assert updated.image is None


@pytest.mark.integration
class TestUserSettings:
    """Tests for per-user preferences."""

    @pytest.mark.asyncio
    async def test_settings_created_on_first_access(self, async_db_session: AsyncSession, test_user) -> None:
        await async_db_session.execute(
            UserSettingsDB.__table__.delete().where(UserSettingsDB.user_id == test_user.id)
        )
        await async_db_session.commit()

        settings = await UserSettingsService(async_db_session).get_or_create(test_user.id)

        assert settings.currency == "IDR"
        assert settings.language == "en"
        assert settings.email_reminders is True
        assert settings.reminder_days_before == 3

    @pytest.mark.asyncio
    async def test_partial_update(self, async_db_session: AsyncSession, test_user) -> None:
        service = UserSettingsService(async_db_session)

        settings = await service.update(
            test_user.id,
            UserSettingsUpdate(currency="usd", monthly_budget_limit=500000, reminder_days_before=5),
        )

        assert settings.currency == "USD"
        assert settings.monthly_budget_limit == 500000
        assert settings.reminder_days_before == 5
        assert settings.language == "en"

    @pytest.mark.asyncio
    async def test_budget_limit_can_be_cleared(self, async_db_session: AsyncSession, test_user) -> None:
        service = UserSettingsService(async_db_session)
        await service.update(test_user.id, UserSettingsUpdate(monthly_budget_limit=100))

        settings = await service.update(test_user.id, UserSettingsUpdate(monthly_budget_limit=None))

        assert settings.monthly_budget_limit is None

    def test_reminder_days_bounds(self) -> None:
        with pytest.raises(ValueError):
            UserSettingsUpdate(reminder_days_before=0)
        with pytest.raises(ValueError):
            UserSettingsUpdate(language="fr")
