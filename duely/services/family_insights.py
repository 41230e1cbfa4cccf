"""Detect services paid separately by several family members."""

from collections.abc import Iterable
from typing import Any

from duely.services.calculations import monthly_amount
from duely.services.currency import CurrencyConverter

# Rough price of a family plan relative to the most expensive single seat
FAMILY_PLAN_MULTIPLIER = 1.5


def detect_family_plan_savings(
    assignments: Iterable[tuple[Any, Any]],
    display_currency: str,
    converter: CurrencyConverter | None = None,
) -> dict:
    """Estimate what a household saves by merging duplicate subscriptions.

    Args:
        assignments: (subscription, member) pairs for active, member-assigned subscriptions
        display_currency: Currency of the reported amounts
        converter: Rates used to convert into ``display_currency``

    Returns:
        Dict with total_potential_savings, duplicate_services and has_opportunities
    """
    groups: dict[str, list[dict]] = {}
    for subscription, member in assignments:
        if member is None:
            continue
        key = subscription.service_name.lower().strip()
        groups.setdefault(key, []).append(
            {
                "id": str(member.id),
                "name": member.name,
                "amount": monthly_amount(subscription, display_currency, converter),
            }
        )

    duplicates = []
    for service_name, members in groups.items():
        if len(members) < 2:
            continue

        total = sum(m["amount"] for m in members)
        family_cost = max(m["amount"] for m in members) * FAMILY_PLAN_MULTIPLIER
        savings = total - family_cost
        if savings <= 0:
            continue

        duplicates.append(
            {
                "service_name": service_name,
                "member_count": len(members),
                "members": members,
                "total_monthly_cost": round(total, 2),
                "estimated_family_plan_cost": round(family_cost, 2),
                "potential_savings": round(savings, 2),
            }
        )

    duplicates.sort(key=lambda d: d["potential_savings"], reverse=True)
    total_savings = sum(d["potential_savings"] for d in duplicates)

    return {
        "total_potential_savings": round(total_savings, 2),
        "duplicate_services": duplicates,
        "has_opportunities": bool(duplicates),
    }
