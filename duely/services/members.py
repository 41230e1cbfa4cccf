"""Household members who subscriptions can be assigned to."""

import uuid

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import CategoryDB, MemberCreate, MemberDB, MemberUpdate, SubscriptionDB
from duely.services.calculations import monthly_amount
from duely.services.errors import DomainValidationError, NotFoundError, OwnershipError, PlanLimitError
from duely.services.exchange_rates import ExchangeRateService
from duely.services.family_insights import detect_family_plan_savings
from duely.services.plan_limits import can_add_member
from duely.services.settings import UserSettingsService
from duely.services.subscriptions import ensure_platform_access, serialize_subscription

logger = structlog.get_logger(__name__)

PRIMARY_DELETE_MESSAGE = (
    "Cannot delete primary member. Please assign another member as primary first."
)


def serialize_member(member: MemberDB) -> dict:
    return {
        "id": str(member.id),
        "name": member.name,
        "avatar_color": member.avatar_color,
        "avatar_image": member.avatar_image,
        "is_primary": member.is_primary,
        "created_at": member.created_at.isoformat(),
        "updated_at": member.updated_at.isoformat(),
    }


class MemberService:
    """CRUD, spending statistics and family-plan insights for members."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_owned(self, user_id: uuid.UUID, member_id: uuid.UUID) -> MemberDB:
        member = await self.db_session.get(MemberDB, member_id)
        if member is None:
            raise NotFoundError("Member not found")
        if member.user_id != user_id:
            raise OwnershipError("Unauthorized")
        return member

    async def _unset_primary(self, user_id: uuid.UUID, keep_id: uuid.UUID | None = None) -> None:
        query = update(MemberDB).where(MemberDB.user_id == user_id, MemberDB.is_primary.is_(True))
        if keep_id is not None:
            query = query.where(MemberDB.id != keep_id)
        await self.db_session.execute(query.values(is_primary=False))

    async def create(self, user_id: uuid.UUID, data: MemberCreate) -> MemberDB:
        """Add a member.

        Raises:
            PlanLimitError: If the trial has lapsed or the member limit is reached
        """
        user = await ensure_platform_access(self.db_session, user_id)

        result = await self.db_session.execute(
            select(func.count(MemberDB.id)).where(MemberDB.user_id == user_id)
        )
        current = result.scalar_one()
        if not can_add_member(user.subscription_plan, current):
            raise PlanLimitError(
                f"You've reached the maximum of {current} member(s) for your plan. "
                "Upgrade to add more."
            )

        if data.is_primary:
            await self._unset_primary(user_id)

        member = MemberDB(user_id=user_id, **data.model_dump())
        self.db_session.add(member)
        await self.db_session.commit()
        logger.info("member_created", user_id=str(user_id), member_id=str(member.id))
        return member

    async def update(self, user_id: uuid.UUID, member_id: uuid.UUID, data: MemberUpdate) -> MemberDB:
        member = await self._get_owned(user_id, member_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("is_primary"):
            await self._unset_primary(user_id, keep_id=member_id)

        for field, value in changes.items():
            if value is None and field in ("name", "is_primary"):
                continue
            setattr(member, field, value)

        await self.db_session.commit()
        return member

    async def delete(self, user_id: uuid.UUID, member_id: uuid.UUID) -> None:
        """Delete a member; their subscriptions become unassigned.

        Raises:
            DomainValidationError: If deleting the primary member while others remain
        """
        member = await self._get_owned(user_id, member_id)

        if member.is_primary:
            result = await self.db_session.execute(
                select(func.count(MemberDB.id)).where(
                    MemberDB.user_id == user_id, MemberDB.id != member_id
                )
            )
            if result.scalar_one() > 0:
                raise DomainValidationError(PRIMARY_DELETE_MESSAGE)

        await self.db_session.execute(
            update(SubscriptionDB).where(SubscriptionDB.member_id == member_id).values(member_id=None)
        )
        await self.db_session.delete(member)
        await self.db_session.commit()
        logger.info("member_deleted", user_id=str(user_id), member_id=str(member_id))

    async def get(self, user_id: uuid.UUID, member_id: uuid.UUID) -> dict:
        return serialize_member(await self._get_owned(user_id, member_id))

    async def list_members(self, user_id: uuid.UUID) -> list[MemberDB]:
        result = await self.db_session.execute(
            select(MemberDB)
            .where(MemberDB.user_id == user_id)
            .order_by(MemberDB.is_primary.desc(), MemberDB.name)
        )
        return list(result.scalars().all())

    async def with_stats(self, user_id: uuid.UUID, display_currency: str | None = None) -> list[dict]:
        """Members with active-subscription count, monthly spending and top subscription."""
        if display_currency is None:
            display_currency = await UserSettingsService(self.db_session).get_currency(user_id)

        members = await self.list_members(user_id)
        result = await self.db_session.execute(
            select(SubscriptionDB).where(
                SubscriptionDB.user_id == user_id,
                SubscriptionDB.status == "active",
                SubscriptionDB.member_id.is_not(None),
            )
        )
        subscriptions = list(result.scalars().all())
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub in subscriptions), display_currency
        )

        stats = []
        for member in members:
            amounts = [
                (sub.service_name, monthly_amount(sub, display_currency, converter))
                for sub in subscriptions
                if sub.member_id == member.id
            ]
            top = max(amounts, key=lambda item: item[1]) if amounts else None
            stats.append(
                {
                    **serialize_member(member),
                    "subscription_count": len(amounts),
                    "monthly_spending": round(sum(a for _, a in amounts), 2),
                    "top_subscription": (
                        {"service_name": top[0], "amount": top[1]} if top else None
                    ),
                }
            )
        return stats

    async def member_stats(self, user_id: uuid.UUID) -> dict:
        members = await self.with_stats(user_id)
        total_spending = sum(m["monthly_spending"] for m in members)

        most_active = None
        if members:
            top = members[0]
            for member in members[1:]:
                if member["monthly_spending"] > top["monthly_spending"]:
                    top = member
            most_active = {
                "id": top["id"],
                "name": top["name"],
                "avatar_color": top["avatar_color"],
                "spending": top["monthly_spending"],
                "subscription_count": top["subscription_count"],
            }

        return {
            "total_members": len(members),
            "total_spending": round(total_spending, 2),
            "most_active_member": most_active,
        }

    async def member_subscriptions(
        self, user_id: uuid.UUID, member_id: uuid.UUID, display_currency: str | None = None
    ) -> dict:
        member = await self._get_owned(user_id, member_id)
        if display_currency is None:
            display_currency = await UserSettingsService(self.db_session).get_currency(user_id)

        result = await self.db_session.execute(
            select(SubscriptionDB, CategoryDB)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .where(SubscriptionDB.user_id == user_id, SubscriptionDB.member_id == member_id)
            .order_by(SubscriptionDB.next_billing)
        )
        rows = result.all()
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub, _ in rows), display_currency
        )

        total = sum(monthly_amount(sub, display_currency, converter) for sub, _ in rows)
        return {
            "member": serialize_member(member),
            "subscriptions": [serialize_subscription(sub, category) for sub, category in rows],
            "total_monthly": round(total, 2),
            "display_currency": display_currency,
        }

    async def family_plan_savings(self, user_id: uuid.UUID) -> dict:
        display_currency = await UserSettingsService(self.db_session).get_currency(user_id)
        result = await self.db_session.execute(
            select(SubscriptionDB, MemberDB)
            .join(MemberDB, SubscriptionDB.member_id == MemberDB.id)
            .where(SubscriptionDB.user_id == user_id, SubscriptionDB.status == "active")
        )
        rows = result.all()
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub, _ in rows), display_currency
        )
        return detect_family_plan_savings(rows, display_currency, converter)
