"""Plan limits and feature gating."""

from datetime import datetime

from pydantic import BaseModel

UNLIMITED = -1


class PlanLimits(BaseModel):
    """What a Duely plan allows."""

    max_subscriptions: int
    max_members: int
    has_analytics: bool
    has_advanced_reports: bool
    has_export: bool
    has_multi_currency: bool
    has_team_collaboration: bool
    has_api_access: bool


PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(
        max_subscriptions=3,
        max_members=1,
        has_analytics=False,
        has_advanced_reports=False,
        has_export=False,
        has_multi_currency=False,
        has_team_collaboration=False,
        has_api_access=False,
    ),
    "pro": PlanLimits(
        max_subscriptions=UNLIMITED,
        max_members=UNLIMITED,
        has_analytics=True,
        has_advanced_reports=True,
        has_export=True,
        has_multi_currency=True,
        has_team_collaboration=False,
        has_api_access=False,
    ),
    "business": PlanLimits(
        max_subscriptions=UNLIMITED,
        max_members=UNLIMITED,
        has_analytics=True,
        has_advanced_reports=True,
        has_export=True,
        has_multi_currency=True,
        has_team_collaboration=True,
        has_api_access=True,
    ),
}


def get_plan_limits(plan: str | None) -> PlanLimits:
    """Limits for ``plan``; unknown plans get the free limits."""
    return PLAN_LIMITS.get(plan or "free", PLAN_LIMITS["free"])


def can_add_subscription(plan: str, current_count: int) -> bool:
    limits = get_plan_limits(plan)
    if limits.max_subscriptions == UNLIMITED:
        return True
    return current_count < limits.max_subscriptions


def can_add_member(plan: str, current_count: int) -> bool:
    limits = get_plan_limits(plan)
    if limits.max_members == UNLIMITED:
        return True
    return current_count < limits.max_members


def has_feature(plan: str, feature: str) -> bool:
    """Check a boolean capability such as ``has_analytics`` or ``has_export``."""
    return bool(getattr(get_plan_limits(plan), feature, False))


def is_subscription_active(
    status: str, end_date: datetime | None, now: datetime | None = None
) -> bool:
    """Whether a plan status currently grants access.

    Trials stay valid until their end date; canceled and expired plans never do.
    """
    if status in ("canceled", "expired"):
        return False

    if status == "trial" and end_date:
        return (now or datetime.utcnow()) < end_date

    return status == "active"


def can_use_platform(
    plan: str, status: str, end_date: datetime | None, now: datetime | None = None
) -> bool:
    """The free plan is always usable; paid plans need an active status."""
    if plan == "free":
        return True
    return is_subscription_active(status, end_date, now)
