"""Tracked subscription CRUD, filtering, renewal and totals."""

import uuid

import structlog
from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import (
    CategoryDB,
    MemberDB,
    SubscriptionCreate,
    SubscriptionDB,
    SortField,
    SubscriptionFilter,
    SubscriptionUpdate,
)
from duely.models.user import UserDB
from duely.services.calculations import calculate_annual_projection, calculate_monthly_total
from duely.services.dates import calculate_next_billing_date
from duely.services.errors import (
    DomainValidationError,
    NotFoundError,
    OwnershipError,
    PlanLimitError,
)
from duely.services.exchange_rates import ExchangeRateService
from duely.services.plan_limits import can_add_subscription, can_use_platform
from duely.services.settings import UserSettingsService

logger = structlog.get_logger(__name__)

NULLABLE_FIELDS = {"category_id", "member_id", "notes", "service_icon"}
TRIAL_EXPIRED_MESSAGE = "Your trial has expired. Please upgrade to continue using Duely."

SORT_COLUMNS = {
    "service_name": SubscriptionDB.service_name,
    "amount": SubscriptionDB.amount,
    "next_billing": SubscriptionDB.next_billing,
    "created_at": SubscriptionDB.created_at,
}


def serialize_subscription(
    subscription: SubscriptionDB,
    category: CategoryDB | None = None,
    member: MemberDB | None = None,
) -> dict:
    data = {
        "id": str(subscription.id),
        "user_id": str(subscription.user_id),
        "service_name": subscription.service_name,
        "service_icon": subscription.service_icon,
        "amount": subscription.amount,
        "currency": subscription.currency,
        "billing_frequency": subscription.billing_frequency,
        "category_id": str(subscription.category_id) if subscription.category_id else None,
        "member_id": str(subscription.member_id) if subscription.member_id else None,
        "start_date": subscription.start_date.isoformat(),
        "next_billing": subscription.next_billing.isoformat(),
        "status": subscription.status,
        "notes": subscription.notes,
        "created_at": subscription.created_at.isoformat(),
        "updated_at": subscription.updated_at.isoformat(),
    }
    if category is not None:
        data["category"] = {"id": str(category.id), "name": category.name, "color": category.color}
    if member is not None:
        data["member"] = {
            "id": str(member.id),
            "name": member.name,
            "avatar_color": member.avatar_color,
        }
    return data


async def ensure_platform_access(db_session: AsyncSession, user_id: uuid.UUID) -> UserDB:
    """Load the user and refuse writes once a paid trial or plan has lapsed."""
    user = await db_session.get(UserDB, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not can_use_platform(
        user.subscription_plan, user.subscription_status, user.subscription_end_date
    ):
        raise PlanLimitError(TRIAL_EXPIRED_MESSAGE)
    return user


class SubscriptionService:
    """Manages a user's tracked subscriptions."""

    def __init__(self, db_session: AsyncSession):
        """Initialize subscription service.

        Args:
            db_session: Database session
        """
        self.db_session = db_session

    async def _get_owned(self, user_id: uuid.UUID, subscription_id: uuid.UUID) -> SubscriptionDB:
        subscription = await self.db_session.get(SubscriptionDB, subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")
        if subscription.user_id != user_id:
            raise OwnershipError("Unauthorized")
        return subscription

    async def _check_references(
        self, user_id: uuid.UUID, category_id: uuid.UUID | None, member_id: uuid.UUID | None
    ) -> None:
        if category_id is not None:
            category = await self.db_session.get(CategoryDB, category_id)
            if category is None or category.user_id != user_id:
                raise NotFoundError("Category not found")
        if member_id is not None:
            member = await self.db_session.get(MemberDB, member_id)
            if member is None or member.user_id != user_id:
                raise NotFoundError("Member not found")

    async def count(self, user_id: uuid.UUID) -> int:
        result = await self.db_session.execute(
            select(func.count(SubscriptionDB.id)).where(SubscriptionDB.user_id == user_id)
        )
        return result.scalar_one()

    async def create(self, user_id: uuid.UUID, data: SubscriptionCreate) -> SubscriptionDB:
        """Record a new subscription.

        Raises:
            PlanLimitError: If the trial has lapsed or the plan limit is reached
            NotFoundError: If the category or member is not the user's
        """
        user = await ensure_platform_access(self.db_session, user_id)

        current = await self.count(user_id)
        if not can_add_subscription(user.subscription_plan, current):
            raise PlanLimitError(
                f"You've reached the maximum of {current} subscriptions for your plan. "
                "Upgrade to add more."
            )

        await self._check_references(user_id, data.category_id, data.member_id)

        subscription = SubscriptionDB(user_id=user_id, **data.model_dump())
        self.db_session.add(subscription)
        await self.db_session.commit()

        logger.info(
            "subscription_created", user_id=str(user_id), subscription_id=str(subscription.id)
        )
        return subscription

    async def update(
        self, user_id: uuid.UUID, subscription_id: uuid.UUID, data: SubscriptionUpdate
    ) -> SubscriptionDB:
        subscription = await self._get_owned(user_id, subscription_id)
        changes = data.model_dump(exclude_unset=True)

        await self._check_references(
            user_id, changes.get("category_id"), changes.get("member_id")
        )

        start_date = changes.get("start_date") or subscription.start_date
        next_billing = changes.get("next_billing") or subscription.next_billing
        if next_billing < start_date:
            raise DomainValidationError("Next billing date must be after start date")

        for field, value in changes.items():
            if value is None and field not in NULLABLE_FIELDS:
                continue
            setattr(subscription, field, value)

        await self.db_session.commit()
        return subscription

    async def delete(self, user_id: uuid.UUID, subscription_id: uuid.UUID) -> None:
        subscription = await self._get_owned(user_id, subscription_id)
        await self.db_session.delete(subscription)
        await self.db_session.commit()
        logger.info(
            "subscription_deleted", user_id=str(user_id), subscription_id=str(subscription_id)
        )

    async def get(self, user_id: uuid.UUID, subscription_id: uuid.UUID) -> dict:
        subscription = await self._get_owned(user_id, subscription_id)
        category = (
            await self.db_session.get(CategoryDB, subscription.category_id)
            if subscription.category_id
            else None
        )
        member = (
            await self.db_session.get(MemberDB, subscription.member_id)
            if subscription.member_id
            else None
        )
        return serialize_subscription(subscription, category, member)

    async def list_subscriptions(
        self, user_id: uuid.UUID, filters: SubscriptionFilter | None = None
    ) -> list[dict]:
        """List subscriptions with their category and member attached."""
        filters = filters or SubscriptionFilter()

        query = (
            select(SubscriptionDB, CategoryDB, MemberDB)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .outerjoin(MemberDB, SubscriptionDB.member_id == MemberDB.id)
            .where(SubscriptionDB.user_id == user_id)
        )

        if filters.search:
            query = query.where(
                func.lower(SubscriptionDB.service_name).contains(filters.search.lower())
            )
        if filters.category_id:
            query = query.where(SubscriptionDB.category_id == filters.category_id)
        if filters.member_id:
            query = query.where(SubscriptionDB.member_id == filters.member_id)
        if filters.status != "all":
            query = query.where(SubscriptionDB.status == filters.status)
        if filters.billing_frequency != "all":
            query = query.where(SubscriptionDB.billing_frequency == filters.billing_frequency)

        column = SORT_COLUMNS[SortField(filters.sort_by).value]
        query = query.order_by(desc(column) if filters.sort_order == "desc" else asc(column))

        result = await self.db_session.execute(query)
        return [serialize_subscription(sub, cat, mem) for sub, cat, mem in result.all()]

    async def list_rows(self, user_id: uuid.UUID) -> list[SubscriptionDB]:
        result = await self.db_session.execute(
            select(SubscriptionDB).where(SubscriptionDB.user_id == user_id)
        )
        return list(result.scalars().all())

    async def renew(self, user_id: uuid.UUID, subscription_id: uuid.UUID) -> SubscriptionDB:
        """Move next_billing forward by one billing period."""
        subscription = await self._get_owned(user_id, subscription_id)
        subscription.next_billing = calculate_next_billing_date(
            subscription.next_billing, subscription.billing_frequency
        )
        await self.db_session.commit()
        return subscription

    async def stats(self, user_id: uuid.UUID) -> dict:
        result = await self.db_session.execute(
            select(SubscriptionDB.status, func.count(SubscriptionDB.id))
            .where(SubscriptionDB.user_id == user_id)
            .group_by(SubscriptionDB.status)
        )
        counts = dict(result.all())
        return {
            "total": sum(counts.values()),
            "active": counts.get("active", 0),
            "paused": counts.get("paused", 0),
            "canceled": counts.get("canceled", 0),
            "trial": counts.get("trial", 0),
        }

    async def totals(self, user_id: uuid.UUID, display_currency: str | None = None) -> dict:
        """Monthly total and annual projection of active subscriptions."""
        if display_currency is None:
            display_currency = await UserSettingsService(self.db_session).get_currency(user_id)

        subscriptions = await self.list_rows(user_id)
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub in subscriptions), display_currency
        )

        monthly = calculate_monthly_total(subscriptions, False, display_currency, converter)
        annual = calculate_annual_projection(subscriptions, False, display_currency, converter)
        return {
            "currency": display_currency,
            "monthly_total": round(monthly, 2),
            "annual_projection": round(annual, 2),
        }
