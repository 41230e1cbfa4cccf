"""Changes to a user's Duely plan (trial, upgrade, cancel, downgrade)."""

import uuid
from datetime import datetime, timedelta

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.payment import SubscriptionHistoryDB
from duely.models.user import UserDB
from duely.services.errors import NotFoundError

logger = structlog.get_logger(__name__)

TRIAL_DAYS = 14
PAID_PLANS = ("pro", "business")


def plan_period_end(start: datetime, billing_cycle: str) -> datetime:
    if billing_cycle == "yearly":
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


def serialize_plan(user: UserDB) -> dict:
    return {
        "plan": user.subscription_plan,
        "status": user.subscription_status,
        "start_date": (
            user.subscription_start_date.isoformat() if user.subscription_start_date else None
        ),
        "end_date": user.subscription_end_date.isoformat() if user.subscription_end_date else None,
        "billing_cycle": user.billing_cycle,
    }


class PlanService:
    """Moves a user between the free, pro and business plans."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_user(self, user_id: uuid.UUID) -> UserDB:
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_current_plan(self, user_id: uuid.UUID) -> dict:
        return serialize_plan(await self._get_user(user_id))

    async def upgrade_plan(
        self, user_id: uuid.UUID, plan: str, billing_cycle: str, now: datetime | None = None
    ) -> dict:
        """Switch to ``plan``; the first move off the free plan is a 14-day trial."""
        now = now or datetime.utcnow()
        user = await self._get_user(user_id)
        previous_plan = user.subscription_plan

        if plan in PAID_PLANS and previous_plan == "free":
            status = "trial"
            end_date = now + timedelta(days=TRIAL_DAYS)
        else:
            status = "active"
            end_date = plan_period_end(now, billing_cycle)

        user.subscription_plan = plan
        user.subscription_status = status
        user.subscription_start_date = now
        user.subscription_end_date = end_date
        user.billing_cycle = billing_cycle

        self.db_session.add(
            SubscriptionHistoryDB(
                user_id=user_id,
                action="trial_started" if status == "trial" else "upgraded",
                from_plan=previous_plan,
                to_plan=plan,
                effective_date=now,
            )
        )
        await self.db_session.commit()
        logger.info("plan_upgraded", user_id=str(user_id), plan=plan, status=status)

        if status == "trial":
            message = (
                f"Successfully started {plan} trial! "
                f"Your trial ends on {end_date.strftime('%Y-%m-%d')}"
            )
        else:
            message = f"Successfully upgraded to {plan} plan!"

        return {"message": message, "status": status, "end_date": end_date.isoformat()}

    async def cancel_plan(self, user_id: uuid.UUID) -> dict:
        """Mark the plan canceled; it stays usable until its end date."""
        user = await self._get_user(user_id)
        user.subscription_status = "canceled"

        self.db_session.add(
            SubscriptionHistoryDB(
                user_id=user_id,
                action="canceled",
                from_plan=user.subscription_plan,
                to_plan=user.subscription_plan,
            )
        )
        await self.db_session.commit()
        logger.info("plan_canceled", user_id=str(user_id))
        return {"message": "Your subscription will be canceled at the end of the billing period"}

    async def downgrade_to_free(self, user_id: uuid.UUID, now: datetime | None = None) -> dict:
        user = await self._get_user(user_id)
        previous_plan = user.subscription_plan

        user.subscription_plan = "free"
        user.subscription_status = "active"
        user.subscription_start_date = now or datetime.utcnow()
        user.subscription_end_date = None
        user.billing_cycle = None

        self.db_session.add(
            SubscriptionHistoryDB(
                user_id=user_id, action="downgraded", from_plan=previous_plan, to_plan="free"
            )
        )
        await self.db_session.commit()
        logger.info("plan_downgraded", user_id=str(user_id), from_plan=previous_plan)
        return {"message": "Successfully downgraded to free plan"}
