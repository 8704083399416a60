"""Unit tests for entitlement decisions."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tollgate.core.exceptions import EntitlementDeniedException
from tollgate.platform.billing.entitlements import (
    is_active,
    is_premium,
    is_trialing,
    require_active,
    require_premium,
    require_specific_plan,
)

NOW = datetime(2025, 1, 10, 12, 0, 0)


def make_sub(status="active", plan_type="monthly", end_date=NOW + timedelta(days=5)):
    return SimpleNamespace(status=status, plan_type=plan_type, end_date=end_date)


class TestIsActive:
    def test_missing_subscription_is_never_active(self):
        assert is_active(None, NOW) is False

    @pytest.mark.parametrize("status", ["trialing", "active", "past_due"])
    def test_live_statuses_with_future_end_are_active(self, status):
        assert is_active(make_sub(status=status), NOW) is True

    @pytest.mark.parametrize("status", ["canceled", "expired"])
    def test_terminal_statuses_are_inactive(self, status):
        assert is_active(make_sub(status=status), NOW) is False

    def test_end_date_in_the_past_is_inactive_before_the_sweep_runs(self):
        sub = make_sub(end_date=NOW - timedelta(seconds=1))
        assert is_active(sub, NOW) is False

    def test_end_date_equal_to_now_is_inactive(self):
        assert is_active(make_sub(end_date=NOW), NOW) is False

    def test_open_ended_subscription_is_active(self):
        assert is_active(make_sub(end_date=None), NOW) is True

    def test_aware_now_is_compared_in_utc(self):
        sub = make_sub(end_date=NOW + timedelta(hours=1))
        aware = NOW.replace(tzinfo=timezone.utc) + timedelta(hours=2)
        assert is_active(sub, aware) is False


class TestPlanPredicates:
    def test_free_plan_is_not_premium(self):
        assert is_premium(make_sub(plan_type="free")) is False

    @pytest.mark.parametrize("plan_type", ["weekly", "monthly", "quarterly", "yearly"])
    def test_paid_plans_are_premium(self, plan_type):
        assert is_premium(make_sub(plan_type=plan_type)) is True

    def test_missing_subscription_is_not_premium_or_trialing(self):
        assert is_premium(None) is False
        assert is_trialing(None) is False

    def test_trialing(self):
        assert is_trialing(make_sub(status="trialing", plan_type="free")) is True
        assert is_trialing(make_sub(status="active")) is False


class TestGates:
    def test_require_active_denies_missing_subscription(self):
        with pytest.raises(EntitlementDeniedException) as exc_info:
            require_active(None, NOW)
        assert exc_info.value.requirement == "active"

    def test_require_premium_denies_trial(self):
        with pytest.raises(EntitlementDeniedException) as exc_info:
            require_premium(make_sub(status="trialing", plan_type="free"), NOW)
        assert exc_info.value.requirement == "premium"
        assert "Upgrade required" in exc_info.value.message

    def test_require_premium_denies_lapsed_paid_plan(self):
        with pytest.raises(EntitlementDeniedException):
            require_premium(make_sub(end_date=NOW - timedelta(days=1)), NOW)

    def test_require_premium_allows_active_paid_plan(self):
        require_premium(make_sub(), NOW)

    def test_require_specific_plan_matches_exactly(self):
        require_specific_plan(make_sub(plan_type="yearly"), "yearly", NOW)
        with pytest.raises(EntitlementDeniedException) as exc_info:
            require_specific_plan(make_sub(plan_type="monthly"), "yearly", NOW)
        assert exc_info.value.requirement == "yearly"

    def test_require_specific_plan_denies_missing_subscription(self):
        with pytest.raises(EntitlementDeniedException):
            require_specific_plan(None, "monthly", NOW)
