"""
Tests for the add-on subscription lifecycle.

This module covers:
- Legal and illegal transitions
- Trial and grace sweeps
- Trial eligibility and pricing tier recommendation
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from plangate.config.catalog_config import AddonSubscriptionStatus, PlanTier
from plangate.services.addon_lifecycle import (
    AddonEvent,
    IllegalTransitionError,
    TRANSITIONS,
    allowed_events,
    calculate_bundle_price,
    days_until_grace_end,
    days_until_trial_end,
    grants_access,
    is_in_grace,
    is_terminal,
    is_trial_active,
    is_trial_eligible,
    recommend_pricing_tier,
    start_subscription,
    sweep,
    transition,
)

from conftest import NOW, make_subscription

TRIAL = AddonSubscriptionStatus.TRIAL
ACTIVE = AddonSubscriptionStatus.ACTIVE
GRACE = AddonSubscriptionStatus.GRACE
CANCELLED = AddonSubscriptionStatus.CANCELLED
EXPIRED = AddonSubscriptionStatus.EXPIRED


# =============================================================================
# TRANSITIONS
# =============================================================================

class TestTransitions:
    """Tests for the transition table."""

    @pytest.mark.parametrize("status,event,target", [
        (TRIAL, AddonEvent.PAYMENT_SUCCEEDED, ACTIVE),
        (TRIAL, AddonEvent.TRIAL_EXPIRED, EXPIRED),
        (ACTIVE, AddonEvent.PAYMENT_FAILED, GRACE),
        (GRACE, AddonEvent.PAYMENT_SUCCEEDED, ACTIVE),
        (GRACE, AddonEvent.GRACE_EXPIRED, EXPIRED),
        (TRIAL, AddonEvent.CANCELLED, CANCELLED),
        (ACTIVE, AddonEvent.CANCELLED, CANCELLED),
        (GRACE, AddonEvent.CANCELLED, CANCELLED),
    ])
    def test_legal_transitions(self, status, event, target):
        assert transition(make_subscription(status), event, NOW).status == target

    @pytest.mark.parametrize("status", [CANCELLED, EXPIRED])
    @pytest.mark.parametrize("event", list(AddonEvent))
    def test_terminal_statuses_accept_nothing(self, status, event):
        with pytest.raises(IllegalTransitionError):
            transition(make_subscription(status), event, NOW)

    def test_every_unlisted_pair_is_illegal(self):
        for status in (TRIAL, ACTIVE, GRACE):
            for event in AddonEvent:
                if (status, event) in TRANSITIONS:
                    continue
                with pytest.raises(IllegalTransitionError):
                    transition(make_subscription(status), event, NOW)

    def test_accepts_event_string(self):
        assert transition(make_subscription(ACTIVE), "payment_failed", NOW).status == GRACE

    def test_original_is_unchanged(self):
        sub = make_subscription(ACTIVE)
        transition(sub, AddonEvent.PAYMENT_FAILED, NOW)
        assert sub.status == ACTIVE

    def test_payment_failure_opens_grace_window(self):
        updated = transition(make_subscription(ACTIVE), AddonEvent.PAYMENT_FAILED, NOW, grace_period_days=5)
        assert updated.grace_period_ends_at == NOW + timedelta(days=5)
        assert is_in_grace(updated, NOW)
        assert days_until_grace_end(updated, NOW) == 5

    def test_recovery_clears_grace_and_keeps_activation(self):
        activated = NOW - timedelta(days=40)
        sub = make_subscription(GRACE, activated_at=activated, grace_period_ends_at=NOW + timedelta(days=2))
        updated = transition(sub, AddonEvent.PAYMENT_SUCCEEDED, NOW)
        assert updated.grace_period_ends_at is None
        assert updated.activated_at == activated

    def test_trial_conversion_sets_activation(self):
        updated = transition(make_subscription(TRIAL), AddonEvent.PAYMENT_SUCCEEDED, NOW)
        assert updated.activated_at == NOW

    def test_cancel_records_time(self):
        updated = transition(make_subscription(ACTIVE), AddonEvent.CANCELLED, NOW)
        assert updated.cancelled_at == NOW
        assert is_terminal(updated)
        assert not grants_access(updated)

    def test_allowed_events(self):
        assert set(allowed_events(make_subscription(GRACE))) == {
            AddonEvent.PAYMENT_SUCCEEDED,
            AddonEvent.GRACE_EXPIRED,
            AddonEvent.CANCELLED,
        }
        assert allowed_events(make_subscription(EXPIRED)) == ()


# =============================================================================
# START AND SWEEP
# =============================================================================

class TestStartSubscription:
    """Tests for creating a subscription."""

    def test_starts_in_trial(self):
        sub = start_subscription("t-1", "payroll", NOW, trial_days=14)
        assert sub.status == TRIAL
        assert sub.trial_ends_at == NOW + timedelta(days=14)
        assert sub.trial_used is True
        assert is_trial_active(sub, NOW)
        assert days_until_trial_end(sub, NOW) == 14

    def test_ineligible_starts_active(self):
        sub = start_subscription("t-1", "payroll", NOW, trial_days=14, trial_eligible=False, trial_used=True)
        assert sub.status == ACTIVE
        assert sub.activated_at == NOW
        assert sub.trial_used is True

    def test_no_trial_days_starts_active(self):
        sub = start_subscription("t-1", "payroll", NOW)
        assert sub.status == ACTIVE
        assert sub.trial_used is False
        assert days_until_trial_end(sub, NOW) is None


class TestSweep:
    """Tests for expiring elapsed windows."""

    def test_elapsed_trial_expires(self):
        sub = make_subscription(TRIAL, trial_ends_at=NOW - timedelta(minutes=1))
        assert sweep(sub, NOW).status == EXPIRED

    def test_running_trial_unchanged(self):
        sub = make_subscription(TRIAL, trial_ends_at=NOW + timedelta(days=1))
        assert sweep(sub, NOW) is sub

    def test_elapsed_grace_expires(self):
        sub = make_subscription(GRACE, grace_period_ends_at=NOW)
        assert sweep(sub, NOW).status == EXPIRED

    def test_active_unchanged(self):
        sub = make_subscription(ACTIVE)
        assert sweep(sub, NOW) is sub

    def test_partial_day_rounds_up(self):
        sub = make_subscription(TRIAL, trial_ends_at=NOW + timedelta(hours=30))
        assert days_until_trial_end(sub, NOW) == 2


# =============================================================================
# ELIGIBILITY AND PRICING
# =============================================================================

class TestEligibilityAndPricing:
    """Tests for trial eligibility and tier recommendation."""

    def test_free_tier_not_eligible(self):
        assert not is_trial_eligible(PlanTier.FREE, trial_used=False)

    def test_trial_used_not_eligible(self):
        assert not is_trial_eligible(PlanTier.PRO, trial_used=True)

    def test_paid_tier_eligible(self):
        assert is_trial_eligible("starter", trial_used=False)

    def test_recommend_cheapest_fitting_tier(self, payroll_config):
        assert recommend_pricing_tier(payroll_config, 3).id == "starter"
        assert recommend_pricing_tier(payroll_config, 12).id == "growth"
        assert recommend_pricing_tier(payroll_config, 500).id == "unlimited"

    def test_bundle_price(self):
        assert calculate_bundle_price(Decimal("39"), "percentage", Decimal("10")) == Decimal("35.10")
        assert calculate_bundle_price(Decimal("39"), "fixed", Decimal("50")) == Decimal("0.00")

    def test_bundle_price_unknown_type(self):
        with pytest.raises(ValueError):
            calculate_bundle_price(Decimal("39"), "bogus", Decimal("1"))
