"""Budget categories and their spending against budget."""

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import CategoryCreate, CategoryDB, CategoryUpdate, SubscriptionDB
from duely.services.calculations import monthly_amount
from duely.services.errors import ConflictError, NotFoundError, OwnershipError
from duely.services.exchange_rates import ExchangeRateService
from duely.services.settings import UserSettingsService

logger = structlog.get_logger(__name__)

DUPLICATE_NAME_MESSAGE = "A category with this name already exists"


def serialize_category(category: CategoryDB) -> dict:
    return {
        "id": str(category.id),
        "name": category.name,
        "icon": category.icon,
        "color": category.color,
        "budget_limit": category.budget_limit,
        "budget_currency": category.budget_currency,
        "created_at": category.created_at.isoformat(),
        "updated_at": category.updated_at.isoformat(),
    }


class CategoryService:
    """CRUD and spending statistics for a user's categories."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _get_owned(self, user_id: uuid.UUID, category_id: uuid.UUID) -> CategoryDB:
        category = await self.db_session.get(CategoryDB, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        if category.user_id != user_id:
            raise OwnershipError("Unauthorized")
        return category

    async def _ensure_unique_name(
        self, user_id: uuid.UUID, name: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(CategoryDB.id).where(CategoryDB.user_id == user_id, CategoryDB.name == name)
        if exclude_id is not None:
            query = query.where(CategoryDB.id != exclude_id)
        result = await self.db_session.execute(query)
        if result.first() is not None:
            raise ConflictError(DUPLICATE_NAME_MESSAGE)

    async def create(self, user_id: uuid.UUID, data: CategoryCreate) -> CategoryDB:
        await self._ensure_unique_name(user_id, data.name)

        category = CategoryDB(user_id=user_id, **data.model_dump())
        self.db_session.add(category)
        await self.db_session.commit()
        logger.info("category_created", user_id=str(user_id), category_id=str(category.id))
        return category

    async def update(
        self, user_id: uuid.UUID, category_id: uuid.UUID, data: CategoryUpdate
    ) -> CategoryDB:
        category = await self._get_owned(user_id, category_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name") and changes["name"] != category.name:
            await self._ensure_unique_name(user_id, changes["name"], exclude_id=category_id)

        for field, value in changes.items():
            if field == "name" and not value:
                continue
            setattr(category, field, value)

        await self.db_session.commit()
        return category

    async def delete(self, user_id: uuid.UUID, category_id: uuid.UUID) -> None:
        """Delete a category; its subscriptions become uncategorized."""
        category = await self._get_owned(user_id, category_id)

        await self.db_session.execute(
            update(SubscriptionDB)
            .where(SubscriptionDB.category_id == category_id)
            .values(category_id=None)
        )
        await self.db_session.delete(category)
        await self.db_session.commit()
        logger.info("category_deleted", user_id=str(user_id), category_id=str(category_id))

    async def get(self, user_id: uuid.UUID, category_id: uuid.UUID) -> dict:
        return serialize_category(await self._get_owned(user_id, category_id))

    async def list_categories(self, user_id: uuid.UUID) -> list[CategoryDB]:
        result = await self.db_session.execute(
            select(CategoryDB).where(CategoryDB.user_id == user_id).order_by(CategoryDB.name)
        )
        return list(result.scalars().all())

    async def with_stats(self, user_id: uuid.UUID, display_currency: str | None = None) -> list[dict]:
        """Categories with active-subscription count, monthly spending and budget use.

        Spending and budget are both expressed in the user's display currency.
        """
        if display_currency is None:
            display_currency = await UserSettingsService(self.db_session).get_currency(user_id)

        categories = await self.list_categories(user_id)
        result = await self.db_session.execute(
            select(SubscriptionDB).where(
                SubscriptionDB.user_id == user_id,
                SubscriptionDB.status == "active",
                SubscriptionDB.category_id.is_not(None),
            )
        )
        subscriptions = list(result.scalars().all())

        currencies = [sub.currency for sub in subscriptions]
        currencies += [c.budget_currency for c in categories if c.budget_currency]
        converter = await ExchangeRateService(self.db_session).load_converter(
            currencies, display_currency
        )

        stats = []
        for category in categories:
            members = [sub for sub in subscriptions if sub.category_id == category.id]
            spending = sum(monthly_amount(sub, display_currency, converter) for sub in members)

            utilization = None
            if category.budget_limit and category.budget_limit > 0:
                budget = converter.convert(
                    category.budget_limit,
                    category.budget_currency or display_currency,
                    display_currency,
                )
                utilization = round(spending / budget * 100, 2)

            stats.append(
                {
                    **serialize_category(category),
                    "subscription_count": len(members),
                    "monthly_spending": round(spending, 2),
                    "budget_utilization": utilization,
                }
            )
        return stats

    async def category_stats(self, user_id: uuid.UUID) -> dict:
        """Summary across categories, measured against the global monthly budget."""
        settings = await UserSettingsService(self.db_session).get_or_create(user_id)
        categories = await self.with_stats(user_id, settings.currency)

        total_budget = settings.monthly_budget_limit or 0
        total_spending = sum(c["monthly_spending"] for c in categories)
        utilization = (total_spending / total_budget) * 100 if total_budget > 0 else 0

        return {
            "total_categories": len(categories),
            "total_budget": round(total_budget, 2),
            "total_spending": round(total_spending, 2),
            "budget_utilization": round(utilization, 2),
        }
