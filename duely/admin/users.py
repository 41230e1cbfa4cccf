"""User and subscription management for admins.

Every change is written to the audit log with the values before and
after the change.
"""

import math
import uuid

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.audit_log import AuditLogger
from duely.models.admin import AdminSubscriptionUpdate, AdminUserUpdate
from duely.models.subscription import (
    SUPPORTED_CURRENCIES,
    CategoryDB,
    MemberDB,
    SubscriptionDB,
)
from duely.models.user import UserDB
from duely.services.errors import DomainValidationError, NotFoundError

logger = structlog.get_logger(__name__)

VALID_PLANS = ("free", "pro", "business")
VALID_USER_STATUSES = ("active", "trial", "canceled", "expired")
VALID_SUBSCRIPTION_STATUSES = ("active", "trial", "paused", "canceled")
VALID_FREQUENCIES = ("monthly", "yearly", "quarterly", "weekly")
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _iso(value):
    return value.isoformat() if value else None


def serialize_admin_user(user: UserDB) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "image": user.image,
        "subscription_plan": user.subscription_plan,
        "subscription_status": user.subscription_status,
        "subscription_end_date": _iso(user.subscription_end_date),
        "billing_cycle": user.billing_cycle,
        "google_id": user.google_id,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def serialize_admin_subscription(subscription: SubscriptionDB, user: UserDB | None = None) -> dict:
    data = {
        "id": str(subscription.id),
        "user_id": str(subscription.user_id),
        "service_name": subscription.service_name,
        "amount": subscription.amount,
        "currency": subscription.currency,
        "billing_frequency": subscription.billing_frequency,
        "next_billing": _iso(subscription.next_billing),
        "status": subscription.status,
        "notes": subscription.notes,
        "category_id": str(subscription.category_id) if subscription.category_id else None,
        "member_id": str(subscription.member_id) if subscription.member_id else None,
        "created_at": _iso(subscription.created_at),
        "updated_at": _iso(subscription.updated_at),
    }
    if user is not None:
        data["user"] = {"id": str(user.id), "name": user.name, "username": user.username, "email": user.email}
    return data


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "total_pages": math.ceil(total / limit) if limit else 0}


def status_change_action(previous: str, new: str) -> str:
    """Audit action name for a subscription status change."""
    if new == "canceled":
        return "subscription_canceled"
    if new == "paused":
        return "subscription_paused"
    if new == "active" and previous == "paused":
        return "subscription_resumed"
    return "subscription_status_changed"


class AdminUserService:
    """Back-office operations on users and their subscriptions."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session
        self.audit = AuditLogger(db_session)

    @staticmethod
    def _page(page: int, limit: int) -> tuple[int, int]:
        return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)

    async def _count(self, column, *conditions) -> int:
        result = await self.db_session.execute(select(func.count(column)).where(*conditions))
        return result.scalar_one()

    async def _get_user(self, user_id: uuid.UUID) -> UserDB:
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _get_subscription(self, subscription_id: uuid.UUID) -> SubscriptionDB:
        subscription = await self.db_session.get(SubscriptionDB, subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return subscription

    # ========== Users ==========

    async def list_users(
        self,
        search: str | None = None,
        plan: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        page, limit = self._page(page, limit)
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    UserDB.name.ilike(pattern),
                    UserDB.email.ilike(pattern),
                    UserDB.username.ilike(pattern),
                )
            )
        if plan and plan != "all":
            conditions.append(UserDB.subscription_plan == plan)
        if status and status != "all":
            conditions.append(UserDB.subscription_status == status)

        total = await self._count(UserDB.id, *conditions)
        result = await self.db_session.execute(
            select(UserDB)
            .where(*conditions)
            .order_by(UserDB.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = list(result.scalars().all())

        counts = {}
        if users:
            count_result = await self.db_session.execute(
                select(SubscriptionDB.user_id, func.count(SubscriptionDB.id))
                .where(SubscriptionDB.user_id.in_([u.id for u in users]))
                .group_by(SubscriptionDB.user_id)
            )
            counts = dict(count_result.all())

        return {
            "users": [
                {**serialize_admin_user(u), "subscription_count": counts.get(u.id, 0)} for u in users
            ],
            "pagination": _pagination(page, limit, total),
        }

    async def get_user(self, user_id: uuid.UUID) -> dict:
        """User details with their subscriptions, categories and members."""
        user = await self._get_user(user_id)

        subscriptions = await self.db_session.execute(
            select(SubscriptionDB).where(SubscriptionDB.user_id == user_id)
        )
        categories = await self.db_session.execute(
            select(CategoryDB.id, CategoryDB.name).where(CategoryDB.user_id == user_id)
        )
        members = await self.db_session.execute(
            select(MemberDB.id, MemberDB.name).where(MemberDB.user_id == user_id)
        )

        subs = [
            {
                "id": str(s.id),
                "service_name": s.service_name,
                "status": s.status,
                "amount": s.amount,
                "currency": s.currency,
                "billing_frequency": s.billing_frequency,
            }
            for s in subscriptions.scalars().all()
        ]
        cats = [{"id": str(cid), "name": name} for cid, name in categories.all()]
        mems = [{"id": str(mid), "name": name} for mid, name in members.all()]

        return {
            **serialize_admin_user(user),
            "subscriptions": subs,
            "categories": cats,
            "members": mems,
            "counts": {"subscriptions": len(subs), "categories": len(cats), "members": len(mems)},
        }

    async def update_user(
        self,
        user_id: uuid.UUID,
        update: AdminUserUpdate,
        admin_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        if update.subscription_plan and update.subscription_plan not in VALID_PLANS:
            raise DomainValidationError("Invalid subscription plan")
        if update.subscription_status and update.subscription_status not in VALID_USER_STATUSES:
            raise DomainValidationError("Invalid subscription status")

        user = await self._get_user(user_id)
        fields = ("name", "username", "email", "subscription_plan", "subscription_status")
        before = {field: getattr(user, field) for field in fields}

        username = update.username.strip().lower() if update.username else None
        if username and username != user.username:
            result = await self.db_session.execute(
                select(UserDB.id).where(UserDB.username == username, UserDB.id != user_id)
            )
            if result.scalar_one_or_none() is not None:
                raise DomainValidationError("Username already taken")
            user.username = username

        email = update.email.strip().lower() if update.email else None
        if email and email != user.email:
            result = await self.db_session.execute(
                select(UserDB.id).where(UserDB.email == email, UserDB.id != user_id)
            )
            if result.scalar_one_or_none() is not None:
                raise DomainValidationError("Email already in use")
            user.email = email

        if update.name:
            user.name = update.name.strip()
        if update.subscription_plan:
            user.subscription_plan = update.subscription_plan
        if update.subscription_status:
            user.subscription_status = update.subscription_status
        if update.subscription_end_date is not None:
            user.subscription_end_date = update.subscription_end_date

        after = {field: getattr(user, field) for field in fields}
        await self.audit.log_action(
            admin_id,
            "user_updated",
            target=f"Updated user: {user.email}",
            metadata={"user_id": str(user.id), "before": before, "after": after},
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        await self.db_session.commit()
        return serialize_admin_user(user)

    async def delete_user(
        self,
        user_id: uuid.UUID,
        admin_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        """Delete a user; their data goes with them through ON DELETE CASCADE.

        Returns:
            Counts of the subscriptions, categories and members removed
        """
        user = await self._get_user(user_id)
        cascade = {
            "subscriptions": await self._count(SubscriptionDB.id, SubscriptionDB.user_id == user_id),
            "categories": await self._count(CategoryDB.id, CategoryDB.user_id == user_id),
            "members": await self._count(MemberDB.id, MemberDB.user_id == user_id),
        }
        email = user.email

        await self.db_session.delete(user)
        await self.audit.log_action(
            admin_id,
            "user_deleted",
            target=f"Deleted user: {email}",
            metadata={"user_id": str(user_id), "user_email": email, "cascade_deleted": cascade},
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        await self.db_session.commit()

        logger.info("user_deleted_by_admin", user_id=str(user_id), admin_id=str(admin_id))
        return cascade

    # ========== Subscriptions ==========

    async def list_subscriptions(
        self,
        search: str | None = None,
        status: str | None = None,
        user_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict:
        page, limit = self._page(page, limit)
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(or_(SubscriptionDB.service_name.ilike(pattern), UserDB.email.ilike(pattern)))
        if status and status != "all":
            conditions.append(SubscriptionDB.status == status)
        if user_id:
            conditions.append(SubscriptionDB.user_id == user_id)

        joined = select(func.count(SubscriptionDB.id)).join(UserDB, SubscriptionDB.user_id == UserDB.id)
        total = (await self.db_session.execute(joined.where(*conditions))).scalar_one()

        result = await self.db_session.execute(
            select(SubscriptionDB, UserDB)
            .join(UserDB, SubscriptionDB.user_id == UserDB.id)
            .where(*conditions)
            .order_by(SubscriptionDB.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {
            "subscriptions": [serialize_admin_subscription(s, u) for s, u in result.all()],
            "pagination": _pagination(page, limit, total),
        }

    async def get_subscription(self, subscription_id: uuid.UUID) -> dict:
        result = await self.db_session.execute(
            select(SubscriptionDB, UserDB, CategoryDB, MemberDB)
            .join(UserDB, SubscriptionDB.user_id == UserDB.id)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .outerjoin(MemberDB, SubscriptionDB.member_id == MemberDB.id)
            .where(SubscriptionDB.id == subscription_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Subscription not found")

        subscription, user, category, member = row
        data = serialize_admin_subscription(subscription, user)
        data["category"] = (
            {"id": str(category.id), "name": category.name, "color": category.color} if category else None
        )
        data["member"] = {"id": str(member.id), "name": member.name} if member else None
        return data

    async def update_subscription(
        self,
        subscription_id: uuid.UUID,
        update: AdminSubscriptionUpdate,
        admin_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        if update.billing_frequency and update.billing_frequency not in VALID_FREQUENCIES:
            raise DomainValidationError("Invalid billing frequency")
        if update.status and update.status not in VALID_SUBSCRIPTION_STATUSES:
            raise DomainValidationError("Invalid subscription status")
        if update.currency and update.currency.upper() not in SUPPORTED_CURRENCIES:
            raise DomainValidationError("Invalid currency")

        subscription = await self._get_subscription(subscription_id)
        fields = ("service_name", "amount", "currency", "billing_frequency", "next_billing", "status", "notes")
        before = {field: getattr(subscription, field) for field in fields}

        changes = update.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "notes":
                continue
            if field == "currency":
                value = value.upper()
            setattr(subscription, field, value)

        after = {field: getattr(subscription, field) for field in fields}
        user = await self.db_session.get(UserDB, subscription.user_id)
        await self.audit.log_action(
            admin_id,
            "subscription_updated",
            target=f"Updated subscription: {subscription.service_name} for {user.email if user else ''}",
            metadata={
                "subscription_id": str(subscription.id),
                "user_id": str(subscription.user_id),
                "before": _jsonable(before),
                "after": _jsonable(after),
            },
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        await self.db_session.commit()
        return serialize_admin_subscription(subscription, user)

    async def delete_subscription(
        self,
        subscription_id: uuid.UUID,
        admin_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        subscription = await self._get_subscription(subscription_id)
        user = await self.db_session.get(UserDB, subscription.user_id)
        metadata = {
            "subscription_id": str(subscription.id),
            "user_id": str(subscription.user_id),
            "service_name": subscription.service_name,
            "amount": subscription.amount,
        }

        await self.db_session.delete(subscription)
        await self.audit.log_action(
            admin_id,
            "subscription_deleted",
            target=f"Deleted subscription: {metadata['service_name']} for {user.email if user else ''}",
            metadata=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        await self.db_session.commit()

    async def change_subscription_status(
        self,
        subscription_id: uuid.UUID,
        status: str,
        admin_id: uuid.UUID,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        if status not in VALID_SUBSCRIPTION_STATUSES:
            raise DomainValidationError("Invalid subscription status")

        subscription = await self._get_subscription(subscription_id)
        user = await self.db_session.get(UserDB, subscription.user_id)
        previous = subscription.status
        subscription.status = status

        await self.audit.log_action(
            admin_id,
            status_change_action(previous, status),
            target=(
                f"Changed subscription status: {subscription.service_name} for "
                f"{user.email if user else ''} from {previous} to {status}"
            ),
            metadata={
                "subscription_id": str(subscription.id),
                "user_id": str(subscription.user_id),
                "service_name": subscription.service_name,
                "previous_status": previous,
                "new_status": status,
                "reason": reason,
            },
            ip_address=ip_address,
            user_agent=user_agent,
            commit=False,
        )
        await self.db_session.commit()
        return serialize_admin_subscription(subscription, user)


def _jsonable(values: dict) -> dict:
    return {key: value.isoformat() if hasattr(value, "isoformat") else value for key, value in values.items()}
