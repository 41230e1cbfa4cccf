"""Unit tests for plan limits, feature gating and pricing."""

from datetime import datetime, timedelta

import pytest

from duely.services.plan_limits import (
    UNLIMITED,
    can_add_member,
    can_add_subscription,
    can_use_platform,
    get_plan_limits,
    has_feature,
    is_subscription_active,
)
from duely.services.plans import plan_period_end
from duely.services.pricing import (
    PRICING_PLANS,
    format_price,
    get_plan_price,
    get_pricing_plan,
    yearly_savings,
)

NOW = datetime(2026, 5, 1, 12, 0)


@pytest.mark.unit
class TestPlanLimits:
    """Tests for per-plan quotas."""

    def test_free_plan_quotas(self) -> None:
        limits = get_plan_limits("free")
        assert limits.max_subscriptions == 3
        assert limits.max_members == 1

    def test_paid_plans_are_unlimited(self) -> None:
        for plan in ("pro", "business"):
            assert get_plan_limits(plan).max_subscriptions == UNLIMITED
            assert can_add_subscription(plan, 10_000)
            assert can_add_member(plan, 500)

    def test_unknown_plan_falls_back_to_free(self) -> None:
        assert get_plan_limits("enterprise") == get_plan_limits("free")
        assert get_plan_limits(None) == get_plan_limits("free")

    def test_free_subscription_limit_boundary(self) -> None:
        assert can_add_subscription("free", 2)
        assert not can_add_subscription("free", 3)

    def test_free_member_limit_boundary(self) -> None:
        assert can_add_member("free", 0)
        assert not can_add_member("free", 1)

    def test_features(self) -> None:
        assert not has_feature("free", "has_analytics")
        assert has_feature("pro", "has_analytics")
        assert not has_feature("pro", "has_api_access")
        assert has_feature("business", "has_api_access")
        assert not has_feature("business", "has_teleportation")


@pytest.mark.unit
class TestPlatformAccess:
    """Tests for trial expiry and plan status checks."""

    def test_trial_valid_until_end_date(self) -> None:
        assert is_subscription_active("trial", NOW + timedelta(days=1), NOW)
        assert not is_subscription_active("trial", NOW - timedelta(seconds=1), NOW)

    def test_canceled_and_expired_never_active(self) -> None:
        assert not is_subscription_active("canceled", NOW + timedelta(days=30), NOW)
        assert not is_subscription_active("expired", None, NOW)

    def test_active_status(self) -> None:
        assert is_subscription_active("active", None, NOW)

    def test_free_plan_always_usable(self) -> None:
        assert can_use_platform("free", "expired", None, NOW)

    def test_expired_paid_trial_blocks_platform(self) -> None:
        assert not can_use_platform("pro", "trial", NOW - timedelta(days=1), NOW)
        assert can_use_platform("pro", "trial", NOW + timedelta(days=13), NOW)


@pytest.mark.unit
class TestPricing:
    """Tests for the public price list."""

    def test_three_plans_in_order(self) -> None:
        assert [plan.id for plan in PRICING_PLANS] == ["free", "pro", "business"]

    def test_prices(self) -> None:
        assert get_plan_price("free") == 0
        assert get_plan_price("pro", "monthly") == 49000
        assert get_plan_price("pro", "yearly") == 490000
        assert get_plan_price("business", "yearly") == 990000

    def test_unknown_plan_price_raises(self) -> None:
        assert get_pricing_plan("platinum") is None
        with pytest.raises(ValueError):
            get_plan_price("platinum")

    def test_yearly_savings(self) -> None:
        assert yearly_savings("pro") == {"amount": 98000, "percentage": 17}
        assert yearly_savings("business") == {"amount": 198000, "percentage": 17}
        assert yearly_savings("free") == {"amount": 0, "percentage": 0}

    def test_format_price(self) -> None:
        assert format_price(0) == "Free"
        assert format_price(49000) == "Rp 49.000"

    def test_plan_period_end(self) -> None:
        start = datetime(2026, 1, 31)
        assert plan_period_end(start, "monthly") == datetime(2026, 2, 28)
        assert plan_period_end(start, "yearly") == datetime(2027, 1, 31)
