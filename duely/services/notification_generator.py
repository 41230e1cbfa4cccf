"""Daily notification generation, triggered by an external cron call.

Three generators run in sequence:

* renewal reminders, ``reminder_days_before`` days ahead of next_billing
* overdue alerts for active subscriptions whose billing date has passed
* budget alerts for categories at 80% or more of their monthly budget

Each one is idempotent for its window (day or month) so repeated cron
invocations do not duplicate notifications.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.notification import NotificationDB, NotificationType
from duely.models.subscription import CategoryDB, SubscriptionDB
from duely.models.user import UserSettingsDB
from duely.services.calculations import monthly_amount
from duely.services.currency import format_currency
from duely.services.dates import get_days_until, start_of_day, start_of_month
from duely.services.exchange_rates import ExchangeRateService
from duely.services.push import PushService, build_payload

logger = structlog.get_logger(__name__)

DEFAULT_REMINDER_DAYS = 3
BUDGET_ALERT_THRESHOLD = 80


class NotificationGenerator:
    """Creates reminder, overdue and budget notifications for all users."""

    def __init__(self, db_session: AsyncSession, push_service: PushService | None = None):
        self.db_session = db_session
        self.push_service = push_service
        # (user_id, push payload) for rows added by the current run
        self._created: list[tuple[uuid.UUID, str]] = []

    async def _settings_by_user(self) -> dict[uuid.UUID, UserSettingsDB]:
        result = await self.db_session.execute(select(UserSettingsDB))
        return {settings.user_id: settings for settings in result.scalars().all()}

    async def _exists_since(
        self,
        user_id: uuid.UUID,
        kind: str,
        since: datetime,
        subscription_id: uuid.UUID | None = None,
        message_contains: str | None = None,
    ) -> bool:
        query = select(NotificationDB.id).where(
            NotificationDB.user_id == user_id,
            NotificationDB.type == kind,
            NotificationDB.created_at >= since,
        )
        if subscription_id is not None:
            query = query.where(NotificationDB.subscription_id == subscription_id)
        if message_contains is not None:
            query = query.where(NotificationDB.message.contains(message_contains))
        result = await self.db_session.execute(query.limit(1))
        return result.first() is not None

    def _add(self, **fields) -> None:
        notification = NotificationDB(id=uuid.uuid4(), **fields)
        self.db_session.add(notification)
        payload = build_payload(
            title=notification.title,
            body=notification.message,
            tag=notification.type,
            notification_id=str(notification.id),
        )
        self._created.append((notification.user_id, payload))

    async def generate_renewal_reminders(self, now: datetime | None = None) -> int:
        now = now or datetime.utcnow()
        today = start_of_day(now)
        settings_by_user = await self._settings_by_user()

        result = await self.db_session.execute(
            select(SubscriptionDB).where(SubscriptionDB.status == "active")
        )
        created = 0
        for subscription in result.scalars().all():
            settings = settings_by_user.get(subscription.user_id)
            if settings is not None and not settings.email_reminders:
                continue

            reminder_days = settings.reminder_days_before if settings else DEFAULT_REMINDER_DAYS
            days_until = get_days_until(subscription.next_billing, now)
            if days_until != reminder_days or days_until <= 0:
                continue

            if await self._exists_since(
                subscription.user_id,
                NotificationType.RENEWAL_REMINDER.value,
                today,
                subscription_id=subscription.id,
            ):
                continue

            self._add(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                type=NotificationType.RENEWAL_REMINDER.value,
                title=f"{subscription.service_name} renews in {reminder_days} days",
                message=(
                    f"Your {subscription.service_name} subscription will renew on "
                    f"{subscription.next_billing.strftime('%Y-%m-%d')} for "
                    f"{subscription.currency} {subscription.amount:.2f}."
                ),
            )
            created += 1

        await self.db_session.commit()
        return created

    async def generate_overdue_notifications(self, now: datetime | None = None) -> int:
        now = now or datetime.utcnow()
        today = start_of_day(now)
        settings_by_user = await self._settings_by_user()

        result = await self.db_session.execute(
            select(SubscriptionDB).where(
                SubscriptionDB.status == "active", SubscriptionDB.next_billing < now
            )
        )
        created = 0
        for subscription in result.scalars().all():
            settings = settings_by_user.get(subscription.user_id)
            if settings is not None and not settings.email_reminders:
                continue

            if await self._exists_since(
                subscription.user_id,
                NotificationType.OVERDUE.value,
                today,
                subscription_id=subscription.id,
            ):
                continue

            days_overdue = abs(get_days_until(subscription.next_billing, now))
            self._add(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                type=NotificationType.OVERDUE.value,
                title=f"{subscription.service_name} is overdue",
                message=(
                    f"Your {subscription.service_name} subscription was due {days_overdue} "
                    f"day{'' if days_overdue == 1 else 's'} ago. "
                    "Please review and update the renewal date."
                ),
            )
            created += 1

        await self.db_session.commit()
        return created

    async def generate_budget_alerts(self, now: datetime | None = None) -> int:
        now = now or datetime.utcnow()
        month_start = start_of_month(now)
        settings_by_user = await self._settings_by_user()

        result = await self.db_session.execute(
            select(CategoryDB).where(CategoryDB.budget_limit.is_not(None))
        )
        categories = list(result.scalars().all())
        rates = ExchangeRateService(self.db_session)

        created = 0
        for category in categories:
            if not category.budget_limit or category.budget_limit <= 0:
                continue

            settings = settings_by_user.get(category.user_id)
            currency = category.budget_currency or (settings.currency if settings else "IDR")

            subs_result = await self.db_session.execute(
                select(SubscriptionDB).where(
                    SubscriptionDB.category_id == category.id, SubscriptionDB.status == "active"
                )
            )
            subscriptions = list(subs_result.scalars().all())
            converter = await rates.load_converter((s.currency for s in subscriptions), currency)
            spending = sum(monthly_amount(s, currency, converter) for s in subscriptions)

            utilization = spending / category.budget_limit * 100
            if utilization < BUDGET_ALERT_THRESHOLD:
                continue

            if await self._exists_since(
                category.user_id,
                NotificationType.BUDGET_ALERT.value,
                month_start,
                message_contains=category.name,
            ):
                continue

            self._add(
                user_id=category.user_id,
                type=NotificationType.BUDGET_ALERT.value,
                title=f"Budget alert: {category.name}",
                message=(
                    f"Your {category.name} category is at {utilization:.0f}% of the monthly "
                    f"budget ({format_currency(spending, currency)} / "
                    f"{format_currency(category.budget_limit, currency)})."
                ),
            )
            created += 1

        await self.db_session.commit()
        return created

    async def _run(self, name: str, generator, now: datetime | None) -> dict:
        pending = len(self._created)
        try:
            return {"success": True, "notifications_created": await generator(now)}
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            # Rolled-back rows must not be pushed
            del self._created[pending:]
            logger.exception("notification_generator_failed", generator=name, error=str(e))
            return {"success": False, "error": f"Failed to generate {name.replace('_', ' ')}"}

    async def _deliver_push(self) -> None:
        if self.push_service is None or not self.push_service.is_configured:
            return

        for user_id, payload in self._created:
            await self.push_service.send_to_user(user_id, payload)

    async def generate_all(self, now: datetime | None = None) -> dict:
        """Run every generator and push the new notifications to devices."""
        self._created = []
        results = {
            "renewal_reminders": await self._run(
                "renewal_reminders", self.generate_renewal_reminders, now
            ),
            "overdue_notifications": await self._run(
                "overdue_notifications", self.generate_overdue_notifications, now
            ),
            "budget_alerts": await self._run("budget_alerts", self.generate_budget_alerts, now),
        }

        await self._deliver_push()

        total = sum(r.get("notifications_created", 0) for r in results.values() if r["success"])
        logger.info("notifications_generated", total=total)
        return {
            "success": all(r["success"] for r in results.values()),
            "results": results,
            "total_notifications_created": total,
        }
