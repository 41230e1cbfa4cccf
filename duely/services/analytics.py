"""Spending analytics and insights for paid plans."""

import uuid
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import CategoryDB, SubscriptionDB
from duely.models.user import UserDB
from duely.services.calculations import calculate_annual_savings, monthly_amount
from duely.services.currency import CurrencyConverter, format_currency
from duely.services.dates import format_month, start_of_month
from duely.services.errors import NotFoundError, PlanLimitError
from duely.services.exchange_rates import ExchangeRateService
from duely.services.plan_limits import has_feature
from duely.services.settings import UserSettingsService

ANALYTICS_LOCKED_MESSAGE = "Analytics is available on the Pro and Business plans. Upgrade to unlock."

HIGH_COST_FACTOR = 2
CATEGORY_CONCENTRATION_PCT = 30
ANNUAL_SAVINGS_MIN_PLANS = 3
SPENDING_CHANGE_PCT = 10


def spending_trend(
    subscriptions: list,
    months: int,
    display_currency: str,
    converter: CurrencyConverter | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Monthly totals for the last ``months`` months, oldest first.

    A subscription counts toward a month once its start date is on or
    before the first day of that month.
    """
    current = start_of_month(now or datetime.utcnow())
    trend = []
    for offset in range(months - 1, -1, -1):
        month_start = current - relativedelta(months=offset)
        total = sum(
            monthly_amount(sub, display_currency, converter)
            for sub in subscriptions
            if sub.start_date <= month_start
        )
        trend.append({"month": format_month(month_start), "total": round(total, 2)})
    return trend


def build_insights(
    rows: list[tuple],
    trend: list[dict],
    display_currency: str,
    converter: CurrencyConverter | None = None,
) -> list[dict]:
    """Recommendations derived from active subscriptions and the recent trend.

    Args:
        rows: (subscription, category or None) pairs of active subscriptions
        trend: Output of ``spending_trend`` covering at least two months
    """
    insights: list[dict] = []
    if not rows:
        return insights

    amounts = [(sub, category, monthly_amount(sub, display_currency, converter)) for sub, category in rows]
    total_monthly = sum(amount for _, _, amount in amounts)
    average = total_monthly / len(amounts)

    expensive = [sub for sub, _, amount in amounts if amount > average * HIGH_COST_FACTOR]
    if expensive:
        many = len(expensive) > 1
        insights.append(
            {
                "id": "high-cost-alert",
                "type": "warning",
                "title": "High-Cost Subscriptions Detected",
                "description": (
                    f"You have {len(expensive)} subscription{'s' if many else ''} that cost more "
                    "than twice your average. Consider reviewing "
                    f"{'these services' if many else 'this service'} for potential savings."
                ),
                "action_label": "View Details",
                "action_url": "/subscriptions",
            }
        )

    by_category: dict[uuid.UUID, list] = {}
    for _, category, amount in amounts:
        if category is not None:
            entry = by_category.setdefault(category.id, [category.name, 0.0])
            entry[1] += amount

    for category_id, (name, total) in by_category.items():
        percentage = (total / total_monthly) * 100 if total_monthly > 0 else 0
        if percentage > CATEGORY_CONCENTRATION_PCT:
            insights.append(
                {
                    "id": f"category-concentration-{category_id}",
                    "type": "info",
                    "title": "Category Spending Alert",
                    "description": (
                        f"{name} accounts for {round(percentage)}% of your total spending. "
                        "Consider diversifying or reviewing subscriptions in this category."
                    ),
                    "action_label": "View Category",
                    "action_url": "/subscriptions",
                }
            )

    monthly_plans = [sub for sub, _, _ in amounts if sub.billing_frequency == "monthly"]
    if len(monthly_plans) >= ANNUAL_SAVINGS_MIN_PLANS:
        savings = calculate_annual_savings(monthly_plans, 15, display_currency, converter)
        insights.append(
            {
                "id": "annual-savings",
                "type": "success",
                "title": "Annual Plan Savings Opportunity",
                "description": (
                    f"You have {len(monthly_plans)} monthly subscriptions. Switching to annual "
                    f"plans could save you approximately {format_currency(savings, display_currency)} "
                    "per year (assuming 15% discount)."
                ),
                "action_label": "Review Subscriptions",
                "action_url": "/subscriptions",
            }
        )

    if len(trend) >= 2:
        current = trend[-1]["total"]
        previous = trend[-2]["total"]
        change = ((current - previous) / previous) * 100 if previous > 0 else 0

        if change > SPENDING_CHANGE_PCT:
            insights.append(
                {
                    "id": "spending-increase",
                    "type": "warning",
                    "title": "Spending Increase Detected",
                    "description": (
                        f"Your subscription spending has increased by {round(change)}% compared "
                        "to last month. Review your subscriptions to ensure they align with "
                        "your budget."
                    ),
                    "action_label": "View Trend",
                    "action_url": "/analytics",
                }
            )
        elif change < -SPENDING_CHANGE_PCT:
            insights.append(
                {
                    "id": "spending-decrease",
                    "type": "success",
                    "title": "Great Progress!",
                    "description": (
                        f"Your subscription spending has decreased by {abs(round(change))}% "
                        "compared to last month. Keep up the good work!"
                    ),
                }
            )

    return insights


class AnalyticsService:
    """Analytics for a single user; requires a plan with the analytics feature."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _prepare(self, user_id: uuid.UUID):
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not has_feature(user.subscription_plan, "has_analytics"):
            raise PlanLimitError(ANALYTICS_LOCKED_MESSAGE)

        display_currency = await UserSettingsService(self.db_session).get_currency(user_id)
        result = await self.db_session.execute(
            select(SubscriptionDB, CategoryDB)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .where(SubscriptionDB.user_id == user_id, SubscriptionDB.status == "active")
        )
        rows = [tuple(row) for row in result.all()]
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub, _ in rows), display_currency
        )
        return rows, display_currency, converter

    async def monthly_spending_trend(
        self, user_id: uuid.UUID, months: int = 12, now: datetime | None = None
    ) -> list[dict]:
        rows, currency, converter = await self._prepare(user_id)
        return spending_trend([sub for sub, _ in rows], months, currency, converter, now)

    async def top_services(self, user_id: uuid.UUID, limit: int = 10) -> list[dict]:
        rows, currency, converter = await self._prepare(user_id)
        services = [
            {
                "id": str(sub.id),
                "service_name": sub.service_name,
                "amount": sub.amount,
                "currency": sub.currency,
                "billing_frequency": sub.billing_frequency,
                "monthly_equivalent": round(monthly_amount(sub, currency, converter), 2),
            }
            for sub, _ in rows
        ]
        services.sort(key=lambda item: item["monthly_equivalent"], reverse=True)
        return services[:limit]

    async def billing_cycle_distribution(self, user_id: uuid.UUID) -> list[dict]:
        rows, currency, converter = await self._prepare(user_id)
        distribution: dict[str, dict] = {}
        for sub, _ in rows:
            entry = distribution.setdefault(sub.billing_frequency, {"count": 0, "total": 0.0})
            entry["count"] += 1
            entry["total"] += monthly_amount(sub, currency, converter)

        return [
            {"frequency": frequency, "count": data["count"], "total_cost": round(data["total"], 2)}
            for frequency, data in distribution.items()
        ]

    async def category_breakdown(self, user_id: uuid.UUID) -> list[dict]:
        rows, currency, converter = await self._prepare(user_id)
        groups: dict[str, dict] = {}
        for sub, category in rows:
            key = str(category.id) if category else "uncategorized"
            entry = groups.setdefault(
                key,
                {
                    "name": category.name if category else "Uncategorized",
                    "total": 0.0,
                    "count": 0,
                    "color": category.color if category else None,
                },
            )
            entry["total"] += monthly_amount(sub, currency, converter)
            entry["count"] += 1

        total_spending = sum(entry["total"] for entry in groups.values())
        breakdown = [
            {
                "id": key,
                "name": entry["name"],
                "total": round(entry["total"], 2),
                "count": entry["count"],
                "percentage": (
                    round(entry["total"] / total_spending * 100, 1) if total_spending > 0 else 0
                ),
                "color": entry["color"],
            }
            for key, entry in groups.items()
        ]
        return sorted(breakdown, key=lambda item: item["total"], reverse=True)

    async def stats(self, user_id: uuid.UUID) -> dict:
        rows, currency, converter = await self._prepare(user_id)
        total_monthly = sum(monthly_amount(sub, currency, converter) for sub, _ in rows)
        count = len(rows)
        return {
            "currency": currency,
            "total_monthly": round(total_monthly, 2),
            "total_annual": round(total_monthly * 12, 2),
            "active_count": count,
            "average_cost": round(total_monthly / count, 2) if count else 0,
        }

    async def insights(self, user_id: uuid.UUID, now: datetime | None = None) -> list[dict]:
        rows, currency, converter = await self._prepare(user_id)
        trend = spending_trend([sub for sub, _ in rows], 3, currency, converter, now)
        return build_insights(rows, trend, currency, converter)
