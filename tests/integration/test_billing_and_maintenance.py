"""Integration tests for plan changes, payment webhooks and maintenance mode."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.admin import MaintenanceModeDB
from duely.models.payment import PaymentDB, SubscriptionHistoryDB
from duely.models.user import UserDB
from duely.payments.stripe_gateway import StripeGateway
from duely.payments.webhooks import PaymentWebhookService
from duely.services.errors import NotFoundError
from duely.services.maintenance import DEFAULT_MESSAGE, MaintenanceService
from duely.services.plans import PlanService

NOW = datetime(2026, 5, 1, 9, 0)


async def history_actions(session: AsyncSession, user_id) -> list[str]:
    result = await session.execute(
        select(SubscriptionHistoryDB.action)
        .where(SubscriptionHistoryDB.user_id == user_id)
        .order_by(SubscriptionHistoryDB.created_at)
    )
    return sorted(result.scalars().all())


async def payments_for(session: AsyncSession, user_id) -> list[PaymentDB]:
    result = await session.execute(select(PaymentDB).where(PaymentDB.user_id == user_id))
    return list(result.scalars().all())


@pytest.mark.integration
class TestPlanChanges:
    """Tests for trial, upgrade, cancel and downgrade."""

    @pytest.mark.asyncio
    async def test_first_upgrade_starts_trial(self, async_db_session: AsyncSession, test_user) -> None:
        service = PlanService(async_db_session)

        result = await service.upgrade_plan(test_user.id, "pro", "monthly", now=NOW)

        assert result["status"] == "trial"
        assert result["message"] == "Successfully started pro trial! Your trial ends on 2026-05-15"
        plan = await service.get_current_plan(test_user.id)
        assert plan["plan"] == "pro"
        assert plan["status"] == "trial"
        assert plan["end_date"] == "2026-05-15T09:00:00"
        assert await history_actions(async_db_session, test_user.id) == ["trial_started"]

    @pytest.mark.asyncio
    async def test_paid_to_paid_upgrade_is_active(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro")

        result = await PlanService(async_db_session).upgrade_plan(user.id, "business", "yearly", now=NOW)

        assert result == {
            "message": "Successfully upgraded to business plan!",
            "status": "active",
            "end_date": "2027-05-01T09:00:00",
        }

    @pytest.mark.asyncio
    async def test_cancel_then_downgrade(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro", billing_cycle="monthly")
        service = PlanService(async_db_session)

        await service.cancel_plan(user.id)
        assert (await service.get_current_plan(user.id))["status"] == "canceled"

        await service.downgrade_to_free(user.id, now=NOW)
        plan = await service.get_current_plan(user.id)
        assert plan == {
            "plan": "free",
            "status": "active",
            "start_date": NOW.isoformat(),
            "end_date": None,
            "billing_cycle": None,
        }
        assert await history_actions(async_db_session, user.id) == ["canceled", "downgraded"]

    @pytest.mark.asyncio
    async def test_unknown_user(self, async_db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await PlanService(async_db_session).get_current_plan(uuid.uuid4())


@pytest.mark.integration
class TestStripeEvents:
    """Tests for Stripe webhook events."""

    @pytest.mark.asyncio
    async def test_checkout_completed_activates_plan(self, async_db_session: AsyncSession, test_user) -> None:
        event = {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "metadata": {"userId": str(test_user.id), "planId": "pro_yearly"},
                    "customer": "cus_123",
                    "payment_intent": "pi_123",
                    "amount_total": 4999,
                    "currency": "usd",
                }
            },
        }

        handled = await PaymentWebhookService(async_db_session).handle_stripe_event(event)

        assert handled is True
        user = await async_db_session.get(UserDB, test_user.id)
        assert user.subscription_plan == "pro"
        assert user.subscription_status == "active"
        assert user.billing_cycle == "yearly"
        assert user.stripe_customer_id == "cus_123"

        [payment] = await payments_for(async_db_session, test_user.id)
        assert payment.provider == "stripe"
        assert payment.amount == 49.99
        assert payment.currency == "USD"
        assert payment.status == "completed"
        assert payment.plan == "pro_yearly"
        assert await history_actions(async_db_session, test_user.id) == ["upgraded"]

    @pytest.mark.asyncio
    async def test_checkout_uses_stripe_billing_period(self, async_db_session: AsyncSession, test_user) -> None:
        gateway = StripeGateway(api_key="sk_test")
        period = (datetime(2026, 5, 1), datetime(2026, 6, 1))
        gateway.retrieve_subscription_period = AsyncMock(return_value=period)
        event = {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "metadata": {"userId": str(test_user.id), "planId": "business_monthly"},
                    "subscription": "sub_123",
                    "amount_total": 999,
                    "currency": "usd",
                }
            },
        }

        await PaymentWebhookService(async_db_session, stripe_gateway=gateway).handle_stripe_event(event)

        gateway.retrieve_subscription_period.assert_awaited_once_with("sub_123")
        user = await async_db_session.get(UserDB, test_user.id)
        assert user.subscription_end_date == datetime(2026, 6, 1)

    @pytest.mark.asyncio
    async def test_invoice_events_record_payments(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro")
        details = {"metadata": {"userId": str(user.id), "planId": "pro_monthly"}}
        service = PaymentWebhookService(async_db_session)

        await service.handle_stripe_event(
            {
                "type": "invoice.payment_succeeded",
                "data": {"object": {"subscription_details": details, "amount_paid": 999, "currency": "usd"}},
            }
        )
        await service.handle_stripe_event(
            {
                "type": "invoice.payment_failed",
                "data": {"object": {"subscription_details": details, "amount_due": 999, "currency": "usd"}},
            }
        )

        statuses = sorted(p.status for p in await payments_for(async_db_session, user.id))
        assert statuses == ["completed", "failed"]

    @pytest.mark.asyncio
    async def test_subscription_deleted_returns_to_free(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="business")

        await PaymentWebhookService(async_db_session).handle_stripe_event(
            {
                "type": "customer.subscription.deleted",
                "data": {"object": {"metadata": {"userId": str(user.id)}}},
            }
        )

        user = await async_db_session.get(UserDB, user.id)
        assert user.subscription_plan == "free"
        assert user.subscription_status == "canceled"

    @pytest.mark.asyncio
    async def test_unhandled_event_type(self, async_db_session: AsyncSession) -> None:
        handled = await PaymentWebhookService(async_db_session).handle_stripe_event(
            {"type": "customer.created", "data": {"object": {}}}
        )
        assert handled is False

    @pytest.mark.asyncio
    async def test_event_for_unknown_user_is_ignored(self, async_db_session: AsyncSession) -> None:
        handled = await PaymentWebhookService(async_db_session).handle_stripe_event(
            {
                "type": "checkout.session.completed",
                "data": {"object": {"metadata": {"userId": str(uuid.uuid4()), "planId": "pro_monthly"}}},
            }
        )

        assert handled is True
        assert (await async_db_session.execute(select(PaymentDB))).first() is None


@pytest.mark.integration
class TestXenditCallbacks:
    """Tests for Xendit invoice callbacks."""

    def callback(self, user_id, status: str, **fields) -> dict:
        data = {
            "id": "inv_123",
            "status": status,
            "amount": 49000,
            "currency": "IDR",
            "metadata": {"userId": str(user_id), "planId": "pro_monthly"},
        }
        data.update(fields)
        return data

    @pytest.mark.asyncio
    async def test_paid_invoice_upgrades(self, async_db_session: AsyncSession, test_user) -> None:
        handled = await PaymentWebhookService(async_db_session).handle_xendit_callback(
            self.callback(test_user.id, "PAID", payment_method="QRIS", payment_channel="QRIS")
        )

        assert handled is True
        user = await async_db_session.get(UserDB, test_user.id)
        assert user.subscription_plan == "pro"
        assert user.subscription_status == "active"
        assert user.billing_cycle == "monthly"

        [payment] = await payments_for(async_db_session, test_user.id)
        assert payment.provider == "xendit"
        assert payment.amount == 49000
        assert payment.payment_metadata == {"payment_channel": "QRIS", "payment_method": "QRIS"}

    @pytest.mark.asyncio
    async def test_interval_metadata_sets_billing_cycle(self, async_db_session: AsyncSession, test_user) -> None:
        data = self.callback(test_user.id, "SETTLED")
        data["metadata"]["interval"] = "year"

        await PaymentWebhookService(async_db_session).handle_xendit_callback(data)

        user = await async_db_session.get(UserDB, test_user.id)
        assert user.billing_cycle == "yearly"

    @pytest.mark.asyncio
    async def test_expired_invoice_records_failure(self, async_db_session: AsyncSession, test_user) -> None:
        await PaymentWebhookService(async_db_session).handle_xendit_callback(
            self.callback(test_user.id, "EXPIRED")
        )

        [payment] = await payments_for(async_db_session, test_user.id)
        assert payment.status == "failed"
        assert payment.payment_metadata == {"reason": "expired"}
        user = await async_db_session.get(UserDB, test_user.id)
        assert user.subscription_plan == "free"

    @pytest.mark.asyncio
    async def test_failed_invoice_keeps_failure_code(self, async_db_session: AsyncSession, test_user) -> None:
        await PaymentWebhookService(async_db_session).handle_xendit_callback(
            self.callback(test_user.id, "FAILED", failure_code="INSUFFICIENT_BALANCE")
        )

        [payment] = await payments_for(async_db_session, test_user.id)
        assert payment.payment_metadata == {"reason": "INSUFFICIENT_BALANCE"}

    @pytest.mark.asyncio
    async def test_pending_status_not_handled(self, async_db_session: AsyncSession, test_user) -> None:
        handled = await PaymentWebhookService(async_db_session).handle_xendit_callback(
            self.callback(test_user.id, "PENDING")
        )

        assert handled is False
        assert await payments_for(async_db_session, test_user.id) == []


@pytest.mark.integration
class TestMaintenanceMode:
    """Tests for toggling maintenance mode."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, async_db_session: AsyncSession) -> None:
        service = MaintenanceService(async_db_session)

        assert await service.is_enabled() is False
        assert await service.info() is None
        assert (await service.status())["enabled"] is False

    @pytest.mark.asyncio
    async def test_activate_and_info(self, async_db_session: AsyncSession) -> None:
        service = MaintenanceService(async_db_session)
        admin_id = uuid.uuid4()

        await service.activate(admin_id, estimated_minutes=30, now=NOW)

        assert await service.is_enabled() is True
        info = await service.info(now=NOW + timedelta(minutes=10))
        assert info["message"] == DEFAULT_MESSAGE
        assert info["estimated_minutes"] == 20
        assert info["estimated_end_time"] == "2026-05-01T09:30:00"

        late = await service.info(now=NOW + timedelta(hours=2))
        assert late["estimated_minutes"] == 0

        status = await service.status()
        assert status["started_by"] == str(admin_id)

    @pytest.mark.asyncio
    async def test_deactivate_records_history(self, async_db_session: AsyncSession) -> None:
        service = MaintenanceService(async_db_session)
        admin_id = uuid.uuid4()
        await service.activate(admin_id, message="Database upgrade", now=NOW)

        await service.deactivate(admin_id, "Ops", reason="completed", now=NOW + timedelta(minutes=45))

        assert await service.is_enabled() is False
        [entry] = await service.history()
        assert entry["duration"] == 45
        assert entry["message"] == "Database upgrade"
        assert entry["started_by_name"] == "Ops"
        assert entry["reason"] == "completed"

    @pytest.mark.asyncio
    async def test_deactivate_when_off_is_noop(self, async_db_session: AsyncSession) -> None:
        service = MaintenanceService(async_db_session)

        await service.deactivate(uuid.uuid4(), "Ops")

        assert await service.history() == []

    @pytest.mark.asyncio
    async def test_enabled_flag_is_cached(self, async_db_session: AsyncSession) -> None:
        service = MaintenanceService(async_db_session)
        assert await service.is_enabled() is False

        # Another worker turns maintenance on without touching this process's cache
        await async_db_session.execute(
            MaintenanceModeDB.__table__.insert().values(
                id=uuid.uuid4(), is_enabled=True, updated_at=datetime.utcnow()
            )
        )
        await async_db_session.commit()

        assert await service.is_enabled() is False
