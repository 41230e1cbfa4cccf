"""Spending totals over collections of tracked subscriptions.

Every function accepts any objects exposing ``amount``, ``currency``,
``billing_frequency``, ``status``, ``category_id`` and ``member_id``
(ORM rows or plain namespaces) and an optional ``CurrencyConverter``
used to express amounts in ``display_currency``.
"""

from collections.abc import Iterable
from typing import Any

from duely.services.currency import CurrencyConverter, convert_to_annual, convert_to_monthly

DEFAULT_CURRENCY = "IDR"
DEFAULT_SAVINGS_PERCENTAGE = 15


def _in_display_currency(
    amount: float,
    subscription: Any,
    display_currency: str | None,
    converter: CurrencyConverter | None,
) -> float:
    source = subscription.currency or DEFAULT_CURRENCY
    if display_currency and converter is not None and source != display_currency:
        return converter.convert(amount, source, display_currency)
    return amount


def monthly_amount(
    subscription: Any,
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> float:
    """Monthly equivalent of one subscription in the display currency."""
    amount = convert_to_monthly(subscription.amount, subscription.billing_frequency)
    return _in_display_currency(amount, subscription, display_currency, converter)


def calculate_monthly_total(
    subscriptions: Iterable[Any],
    include_inactive: bool = False,
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> float:
    total = 0.0
    for sub in subscriptions:
        if not include_inactive and sub.status != "active":
            continue
        total += monthly_amount(sub, display_currency, converter)
    return total


def calculate_annual_projection(
    subscriptions: Iterable[Any],
    include_inactive: bool = False,
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> float:
    total = 0.0
    for sub in subscriptions:
        if not include_inactive and sub.status != "active":
            continue
        amount = convert_to_annual(sub.amount, sub.billing_frequency)
        total += _in_display_currency(amount, sub, display_currency, converter)
    return total


def calculate_average_cost(
    subscriptions: Iterable[Any],
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> float:
    """Average monthly cost of the active subscriptions, 0 when there are none."""
    active = [sub for sub in subscriptions if sub.status == "active"]
    if not active:
        return 0.0
    return calculate_monthly_total(active, False, display_currency, converter) / len(active)


def _group_monthly(
    subscriptions: Iterable[Any],
    key_attr: str,
    display_currency: str | None,
    converter: CurrencyConverter | None,
) -> dict[Any, dict]:
    groups: dict[Any, dict] = {}
    for sub in subscriptions:
        if sub.status != "active":
            continue
        key = getattr(sub, key_attr)
        group = groups.setdefault(key, {"total": 0.0, "count": 0})
        group["total"] += monthly_amount(sub, display_currency, converter)
        group["count"] += 1
    return groups


def calculate_category_totals(
    subscriptions: Iterable[Any],
    categories: dict[Any, str],
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> list[dict]:
    """Monthly spending per category, largest first.

    Args:
        subscriptions: Subscriptions to group (only active ones count)
        categories: Category id to category name
        display_currency: Currency for the totals
        converter: Rates used to convert into ``display_currency``

    Returns:
        List of dicts with category_id, category_name, total, count, percentage
    """
    subscriptions = list(subscriptions)
    total_monthly = calculate_monthly_total(subscriptions, False, display_currency, converter)
    groups = _group_monthly(subscriptions, "category_id", display_currency, converter)

    result = [
        {
            "category_id": str(key) if key else None,
            "category_name": (categories.get(key) or "Unknown") if key else "Uncategorized",
            "total": value["total"],
            "count": value["count"],
            "percentage": (value["total"] / total_monthly) * 100 if total_monthly > 0 else 0,
        }
        for key, value in groups.items()
    ]
    return sorted(result, key=lambda item: item["total"], reverse=True)


def calculate_member_totals(
    subscriptions: Iterable[Any],
    members: dict[Any, str],
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> list[dict]:
    """Monthly spending per family member, largest first."""
    groups = _group_monthly(subscriptions, "member_id", display_currency, converter)

    result = [
        {
            "member_id": str(key) if key else None,
            "member_name": (members.get(key) or "Unknown") if key else "Unassigned",
            "total": value["total"],
            "count": value["count"],
        }
        for key, value in groups.items()
    ]
    return sorted(result, key=lambda item: item["total"], reverse=True)


def calculate_annual_savings(
    subscriptions: Iterable[Any],
    savings_percentage: float = DEFAULT_SAVINGS_PERCENTAGE,
    display_currency: str | None = None,
    converter: CurrencyConverter | None = None,
) -> float:
    """Estimated yearly saving from moving active monthly plans to annual billing."""
    monthly_plans = [
        sub
        for sub in subscriptions
        if sub.status == "active" and sub.billing_frequency.lower() == "monthly"
    ]
    annual_cost = calculate_monthly_total(monthly_plans, False, display_currency, converter) * 12
    return (annual_cost * savings_percentage) / 100
