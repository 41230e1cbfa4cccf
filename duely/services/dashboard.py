"""Dashboard summary: spending totals, renewals and category breakdown."""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import CategoryDB, MemberDB, SubscriptionDB
from duely.services.calculations import (
    calculate_annual_projection,
    calculate_annual_savings,
    calculate_category_totals,
    calculate_monthly_total,
    monthly_amount,
)
from duely.services.dates import get_days_until, is_overdue, is_within_days
from duely.services.exchange_rates import ExchangeRateService
from duely.services.settings import UserSettingsService

UPCOMING_WINDOW_DAYS = 7
DEFAULT_CATEGORY_COLOR = "#3b82f6"
CATEGORY_PALETTE = [
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#f97316",
]


class DashboardService:
    """Aggregates a user's active subscriptions for the dashboard."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _active_rows(self, user_id: uuid.UUID):
        result = await self.db_session.execute(
            select(SubscriptionDB, CategoryDB, MemberDB)
            .outerjoin(CategoryDB, SubscriptionDB.category_id == CategoryDB.id)
            .outerjoin(MemberDB, SubscriptionDB.member_id == MemberDB.id)
            .where(SubscriptionDB.user_id == user_id, SubscriptionDB.status == "active")
            .order_by(SubscriptionDB.next_billing)
        )
        return result.all()

    async def dashboard_stats(self, user_id: uuid.UUID, now: datetime | None = None) -> dict:
        now = now or datetime.utcnow()
        settings = await UserSettingsService(self.db_session).get_or_create(user_id)
        display_currency = settings.currency

        rows = await self._active_rows(user_id)
        active = [sub for sub, _, _ in rows]
        categories = {cat.id: cat.name for _, cat, _ in rows if cat is not None}
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub in active), display_currency
        )

        monthly = calculate_monthly_total(active, False, display_currency, converter)
        annual = calculate_annual_projection(active, False, display_currency, converter)
        savings = calculate_annual_savings(active, 15, display_currency, converter)
        category_totals = calculate_category_totals(active, categories, display_currency, converter)

        upcoming = [sub for sub in active if is_within_days(sub.next_billing, UPCOMING_WINDOW_DAYS, now)]
        overdue = [sub for sub in active if is_overdue(sub.next_billing, now)]
        pending = sorted(
            (sub for sub in active if not is_overdue(sub.next_billing, now)),
            key=lambda sub: sub.next_billing,
        )
        next_renewal = pending[0] if pending else None

        budget_limit = settings.monthly_budget_limit or None
        utilization = None
        if budget_limit:
            budget = converter.convert(
                budget_limit, settings.monthly_budget_currency or display_currency, display_currency
            )
            utilization = round(monthly / budget * 100, 2)

        top = category_totals[0] if category_totals else None
        return {
            "currency": display_currency,
            "monthly_spending": round(monthly, 2),
            "annual_projection": round(annual, 2),
            "active_subscriptions": len(active),
            "upcoming_renewals": len(upcoming),
            "overdue_count": len(overdue),
            "top_category": (
                {"name": top["category_name"], "amount": round(top["total"], 2)} if top else None
            ),
            "next_renewal": (
                {
                    "service_name": next_renewal.service_name,
                    "amount": round(monthly_amount(next_renewal, display_currency, converter), 2),
                    "date": next_renewal.next_billing.isoformat(),
                }
                if next_renewal
                else None
            ),
            "potential_savings": round(savings, 2),
            "monthly_budget_limit": budget_limit,
            "budget_utilization": utilization,
        }

    async def upcoming_renewals(
        self, user_id: uuid.UUID, days: int = UPCOMING_WINDOW_DAYS, now: datetime | None = None
    ) -> list[dict]:
        now = now or datetime.utcnow()
        return [
            {
                "id": str(sub.id),
                "service_name": sub.service_name,
                "amount": sub.amount,
                "currency": sub.currency,
                "billing_frequency": sub.billing_frequency,
                "next_billing": sub.next_billing.isoformat(),
                "category_name": category.name if category else None,
                "member_name": member.name if member else None,
                "days_until": get_days_until(sub.next_billing, now),
            }
            for sub, category, member in await self._active_rows(user_id)
            if is_within_days(sub.next_billing, days, now)
        ]

    async def overdue_subscriptions(
        self, user_id: uuid.UUID, now: datetime | None = None
    ) -> list[dict]:
        now = now or datetime.utcnow()
        return [
            {
                "id": str(sub.id),
                "service_name": sub.service_name,
                "amount": sub.amount,
                "currency": sub.currency,
                "next_billing": sub.next_billing.isoformat(),
                "days_overdue": abs(get_days_until(sub.next_billing, now)),
            }
            for sub, _, _ in await self._active_rows(user_id)
            if is_overdue(sub.next_billing, now)
        ]

    async def category_breakdown(self, user_id: uuid.UUID) -> list[dict]:
        """Category totals for charting; uncategorized slices take a palette colour."""
        display_currency = await UserSettingsService(self.db_session).get_currency(user_id)
        rows = await self._active_rows(user_id)
        active = [sub for sub, _, _ in rows]
        categories = {cat.id: cat for _, cat, _ in rows if cat is not None}
        converter = await ExchangeRateService(self.db_session).load_converter(
            (sub.currency for sub in active), display_currency
        )

        totals = calculate_category_totals(
            active, {key: cat.name for key, cat in categories.items()}, display_currency, converter
        )

        breakdown = []
        for index, item in enumerate(totals):
            category = next(
                (cat for key, cat in categories.items() if str(key) == item["category_id"]), None
            )
            if category is not None:
                color = category.color or DEFAULT_CATEGORY_COLOR
            else:
                color = CATEGORY_PALETTE[index % len(CATEGORY_PALETTE)]
            breakdown.append(
                {
                    **item,
                    "total": round(item["total"], 2),
                    "percentage": round(item["percentage"], 2),
                    "color": color,
                }
            )
        return breakdown
