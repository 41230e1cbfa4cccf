"""Platform-wide revenue and user metrics for the admin dashboard.

The metric functions are pure: they take lists of user and subscription
rows (anything exposing the used attributes) plus an explicit date range,
which keeps them testable without a database. ``AdminAnalyticsService``
loads the rows and assembles the overview payload.
"""

import math
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.subscription import SubscriptionDB
from duely.models.user import UserDB
from duely.services.dates import (
    end_of_day,
    format_day,
    format_month,
    start_of_day,
    start_of_month,
    start_of_week,
)

PERIODS = ("7d", "30d", "90d", "1y", "custom")
GROUPINGS = ("day", "week", "month")
PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
ACTIVE_STATUSES = ("active", "trial")
DEFAULT_LIFESPAN_MONTHS = 24


def get_date_range(
    period: str,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Start and end of ``period``; unknown periods fall back to 30 days."""
    now = now or datetime.utcnow()

    if period == "custom" and start and end:
        return start_of_day(start), end_of_day(end)
    if period == "1y":
        return now - relativedelta(years=1), now
    return now - timedelta(days=PERIOD_DAYS.get(period, 30)), now


def _monthly_revenue(subscription: Any) -> float:
    amount = float(subscription.amount or 0)
    if subscription.billing_frequency == "yearly":
        return amount / 12
    if subscription.billing_frequency == "quarterly":
        return amount / 3
    return amount


def _is_active(status: str | None) -> bool:
    return status in ACTIVE_STATUSES


def calculate_mrr(subscriptions: Sequence[Any]) -> float:
    """Monthly recurring revenue over active and trial subscriptions."""
    return sum(_monthly_revenue(sub) for sub in subscriptions if _is_active(sub.status))


def calculate_arr(mrr: float) -> float:
    return mrr * 12


def _intervals(start: datetime, end: datetime, group_by: str) -> list[tuple[datetime, datetime, datetime, str]]:
    """(label date, interval start, interval end, label) for each bucket."""
    buckets = []
    if group_by == "month":
        cursor = start_of_month(start)
        while cursor <= end:
            buckets.append((cursor, cursor, cursor + relativedelta(months=1), format_month(cursor)))
            cursor += relativedelta(months=1)
    elif group_by == "week":
        cursor = start_of_week(start)
        while cursor <= end:
            buckets.append(
                (cursor, cursor, start_of_week(cursor + timedelta(days=7)), format_day(cursor))
            )
            cursor += timedelta(days=7)
    else:
        cursor = start_of_day(start)
        while cursor <= end:
            buckets.append((cursor, cursor, end_of_day(cursor), format_day(cursor)))
            cursor += timedelta(days=1)
    return buckets


def calculate_revenue_by_period(
    subscriptions: Sequence[Any], start: datetime, end: datetime, group_by: str = "day"
) -> list[dict]:
    """MRR time series: subscriptions created by each bucket's end that are live now."""
    series = []
    for _, _, interval_end, label in _intervals(start, end, group_by):
        live = [
            sub
            for sub in subscriptions
            if sub.created_at <= interval_end and _is_active(sub.status)
        ]
        series.append(
            {
                "date": label,
                "amount": round(sum(_monthly_revenue(sub) for sub in live), 2),
                "subscription_count": len(live),
            }
        )
    return series


def get_users_by_period(
    users: Sequence[Any], start: datetime, end: datetime, group_by: str = "day"
) -> list[dict]:
    series = []
    for _, interval_start, interval_end, label in _intervals(start, end, group_by):
        existing = [user for user in users if user.created_at <= interval_end]
        series.append(
            {
                "date": label,
                "total_users": len(existing),
                "new_users": sum(
                    1 for user in existing if user.created_at >= interval_start
                ),
                "active_users": sum(
                    1 for user in existing if _is_active(user.subscription_status)
                ),
            }
        )
    return series


def calculate_user_growth_rate(users: Sequence[Any], start: datetime, end: datetime) -> float:
    """Growth of the user base over the range; 100 when it started empty."""
    at_start = sum(1 for user in users if user.created_at < start)
    at_end = sum(1 for user in users if user.created_at <= end)
    if at_start == 0:
        return 100.0
    return (at_end - at_start) / at_start * 100


def calculate_active_users_rate(users: Sequence[Any]) -> float:
    if not users:
        return 0.0
    active = sum(1 for user in users if _is_active(user.subscription_status))
    return active / len(users) * 100


def calculate_churn_rate(subscriptions: Sequence[Any], start: datetime, end: datetime) -> float:
    """Share of subscriptions live at ``start`` that were canceled during the range."""
    active_at_start = sum(
        1 for sub in subscriptions if sub.created_at < start and _is_active(sub.status)
    )
    churned = sum(
        1
        for sub in subscriptions
        if sub.status == "canceled" and start <= sub.updated_at <= end
    )
    if active_at_start == 0:
        return 0.0
    return churned / active_at_start * 100


def calculate_retention_rate(churn_rate: float) -> float:
    return 100 - churn_rate


def _distribution(values: list[str]) -> list[dict]:
    total = len(values)
    if total == 0:
        return []

    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1

    return [
        {
            "name": name[:1].upper() + name[1:],
            "value": count,
            "percentage": round(count / total * 100, 2),
        }
        for name, count in counts.items()
    ]


def get_subscription_distribution(subscriptions: Sequence[Any]) -> list[dict]:
    return _distribution([sub.status or "unknown" for sub in subscriptions])


def get_plan_distribution(users: Sequence[Any]) -> list[dict]:
    return _distribution([user.subscription_plan or "free" for user in users])


def calculate_arpu(total_revenue: float, total_users: int) -> float:
    if total_users == 0:
        return 0.0
    return total_revenue / total_users


def calculate_clv(arpu: float, lifespan_months: int = DEFAULT_LIFESPAN_MONTHS) -> float:
    return arpu * lifespan_months


def compare_periods(current: float, previous: float) -> dict:
    change = current - previous
    change_percent = 100.0 if previous == 0 else change / previous * 100

    if abs(change_percent) < 1:
        trend = "stable"
    elif change_percent > 0:
        trend = "up"
    else:
        trend = "down"

    return {
        "current": current,
        "previous": previous,
        "change": change,
        "change_percent": round(change_percent, 2),
        "trend": trend,
    }


def forecast_series(
    values: Sequence[float], months_to_forecast: int, now: datetime | None = None
) -> list[dict]:
    """Least-squares linear forecast with a two standard deviation band.

    Forecast months are labelled from the month after ``now``. Fewer than
    two history points give no forecast.
    """
    n = len(values)
    if n < 2:
        return []

    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    variance = sum((y - (slope * i + intercept)) ** 2 for i, y in enumerate(values)) / n
    std_dev = math.sqrt(variance)

    base = start_of_month(now or datetime.utcnow())
    forecasts = []
    for step in range(1, months_to_forecast + 1):
        predicted = slope * (n + step - 1) + intercept
        forecasts.append(
            {
                "date": format_month(base + relativedelta(months=step)),
                "predicted": max(0.0, round(predicted, 2)),
                "lower": max(0.0, round(predicted - 2 * std_dev, 2)),
                "upper": round(predicted + 2 * std_dev, 2),
            }
        )
    return forecasts


def forecast_revenue(
    revenue: Sequence[dict], months_to_forecast: int, now: datetime | None = None
) -> list[dict]:
    return forecast_series([point["amount"] for point in revenue], months_to_forecast, now)


def forecast_user_growth(
    growth: Sequence[dict], months_to_forecast: int, now: datetime | None = None
) -> list[dict]:
    return forecast_series([point["total_users"] for point in growth], months_to_forecast, now)


class AdminAnalyticsService:
    """Loads users and subscriptions and computes the analytics overview."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _created_between(self, model, start: datetime | None, end: datetime, inclusive_end: bool = True):
        query = select(model)
        if start is not None:
            query = query.where(model.created_at >= start)
        query = query.where(model.created_at <= end if inclusive_end else model.created_at < end)
        result = await self.db_session.execute(query.order_by(model.created_at))
        return list(result.scalars().all())

    async def overview(
        self,
        period: str = "30d",
        group_by: str = "day",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        now: datetime | None = None,
    ) -> dict:
        start, end = get_date_range(period, start_date, end_date, now)

        users = await self._created_between(UserDB, None, end)
        subscriptions = await self._created_between(SubscriptionDB, None, end)

        mrr = calculate_mrr(subscriptions)
        total_users = len(users)
        active_users_rate = calculate_active_users_rate(users)
        churn_rate = calculate_churn_rate(subscriptions, start, end)

        period_days = PERIOD_DAYS.get(period) or max((end - start).days, 1)
        previous_start = start - timedelta(days=period_days)
        previous_users = await self._created_between(UserDB, previous_start, start, inclusive_end=False)
        previous_subscriptions = await self._created_between(
            SubscriptionDB, previous_start, start, inclusive_end=False
        )

        return {
            "period": period,
            "group_by": group_by,
            "date_range": {"start": start.isoformat(), "end": end.isoformat()},
            "metrics": {
                "mrr": round(mrr, 2),
                "arr": round(calculate_arr(mrr), 2),
                "total_users": total_users,
                "active_users": round(total_users * active_users_rate / 100),
                "active_users_rate": round(active_users_rate, 2),
                "active_subscriptions": sum(1 for sub in subscriptions if _is_active(sub.status)),
                "churn_rate": round(churn_rate, 2),
                "retention_rate": round(calculate_retention_rate(churn_rate), 2),
                "arpu": round(calculate_arpu(mrr, total_users), 2),
                "user_growth_rate": round(calculate_user_growth_rate(users, start, end), 2),
            },
            "previous_period": {
                "mrr": round(calculate_mrr(previous_subscriptions), 2),
                "active_subscriptions": sum(
                    1 for sub in previous_subscriptions if _is_active(sub.status)
                ),
                "total_users": len(previous_users),
            },
            "chart_data": {
                "revenue": calculate_revenue_by_period(subscriptions, start, end, group_by),
                "user_growth": get_users_by_period(users, start, end, group_by),
                "subscription_distribution": get_subscription_distribution(subscriptions),
                "plan_distribution": get_plan_distribution(users),
            },
        }

    async def forecast(self, months: int = 3, now: datetime | None = None) -> dict:
        """Revenue and user forecasts from the last twelve months of history."""
        now = now or datetime.utcnow()
        start, end = get_date_range("1y", now=now)
        users = await self._created_between(UserDB, None, end)
        subscriptions = await self._created_between(SubscriptionDB, None, end)

        revenue = calculate_revenue_by_period(subscriptions, start, end, "month")
        growth = get_users_by_period(users, start, end, "month")
        return {
            "revenue": forecast_revenue(revenue, months, now),
            "users": forecast_user_growth(growth, months, now),
        }
