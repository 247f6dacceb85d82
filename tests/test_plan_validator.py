"""
Tests for plan validation.

Validation accumulates every error instead of stopping at the first one.
"""

from decimal import Decimal

import pytest

from plangate.config.catalog_config import PlanTier
from plangate.services.plan_validator import (
    validate_billing_cycles,
    validate_country_pricing,
    validate_feature_flags,
    validate_limits,
    validate_plan,
)


# =============================================================================
# FEATURE FLAGS
# =============================================================================

class TestFeatureFlags:
    """Tests for feature flag validation."""

    def test_known_flags_pass(self):
        result = validate_feature_flags({"invoicing": True, "payroll": True}, PlanTier.PRO)
        assert result.valid
        assert result.errors == []

    def test_unknown_key_reports_exactly_one_error(self):
        result = validate_feature_flags({"teleportation": True}, PlanTier.PRO)
        assert not result.valid
        assert result.errors == ["Unknown feature key: teleportation"]

    def test_unknown_key_on_free_tier_still_one_error(self):
        result = validate_feature_flags({"teleportation": True}, "free")
        assert len(result.errors) == 1

    def test_non_boolean_value(self):
        result = validate_feature_flags({"invoicing": "yes"}, PlanTier.PRO)
        assert not result.valid

    def test_restricted_feature_on_free_tier(self):
        result = validate_feature_flags({"payroll": True}, PlanTier.FREE)
        assert not result.valid
        assert "free tier" in result.errors[0]

    def test_restricted_feature_disabled_on_free_tier_is_fine(self):
        assert validate_feature_flags({"payroll": False}, PlanTier.FREE).valid

    def test_restricted_feature_on_paid_tier(self):
        assert validate_feature_flags({"payroll": True}, PlanTier.STARTER).valid


# =============================================================================
# LIMITS
# =============================================================================

class TestLimits:
    """Tests for limit validation."""

    def test_sentinels_and_caps_pass(self):
        assert validate_limits({"users": -1, "customers": 0, "records": 100}).valid

    def test_unknown_limit_key(self):
        result = validate_limits({"teleports": 5})
        assert result.errors == ["Unknown limit key: teleports"]

    def test_below_minus_one(self):
        assert not validate_limits({"users": -2}).valid

    @pytest.mark.parametrize("value", [True, 2.5, "10"])
    def test_non_integer(self, value):
        assert not validate_limits({"users": value}).valid


# =============================================================================
# COUNTRY PRICING
# =============================================================================

class TestCountryPricing:
    """Tests for country, currency and price point rules."""

    @pytest.mark.parametrize("price", ["0", "99", "199"])
    def test_india_allowed_price_points(self, price):
        assert validate_country_pricing("IN", "INR", Decimal(price)).valid

    def test_india_other_price_rejected(self):
        result = validate_country_pricing("IN", "INR", Decimal("149"))
        assert not result.valid
        assert "super admin override" in result.errors[0]

    def test_india_other_price_with_override(self):
        assert validate_country_pricing("IN", "INR", Decimal("149"), is_super_admin_override=True).valid

    def test_override_does_not_bypass_currency(self):
        result = validate_country_pricing("IN", "USD", Decimal("149"), is_super_admin_override=True)
        assert not result.valid
        assert len(result.errors) == 1

    def test_currency_mismatch(self):
        result = validate_country_pricing("GB", "USD", Decimal("10"))
        assert "expected GBP" in result.errors[0]

    def test_unsupported_country(self):
        assert not validate_country_pricing("ZZ", "USD", Decimal("10")).valid

    def test_negative_price(self):
        assert not validate_country_pricing("GB", "GBP", Decimal("-1")).valid

    def test_non_numeric_price(self):
        assert not validate_country_pricing("GB", "GBP", "free").valid

    def test_other_countries_have_no_price_points(self):
        assert validate_country_pricing("GB", "GBP", Decimal("12.50")).valid


# =============================================================================
# FULL PLAN
# =============================================================================

class TestValidatePlan:
    """Tests for whole-plan validation."""

    def test_valid_plan(self):
        result = validate_plan(
            tier=PlanTier.PRO,
            country_code="IN",
            currency_code="INR",
            base_price=Decimal("199"),
            feature_flags={"invoicing": True, "payroll": True},
            limits={"users": 10, "customers": -1},
            billing_cycles={"monthly": {"price": 199}, "yearly": {"price": 1990}},
        )
        assert result.to_dict() == {"valid": True, "errors": []}

    def test_accumulates_all_errors(self):
        result = validate_plan(
            tier="free",
            country_code="IN",
            currency_code="USD",
            base_price=Decimal("149"),
            feature_flags={"teleportation": True, "payroll": True},
            limits={"users": -3},
        )
        assert not result.valid
        assert len(result.errors) == 5

    def test_unknown_tier(self):
        result = validate_plan("platinum", "GB", "GBP", Decimal("10"))
        assert result.errors == ["Unknown plan tier: platinum"]

    def test_billing_cycles(self):
        result = validate_billing_cycles({"weekly": {"price": 1}, "yearly": {}, "monthly": {"price": -1}})
        assert len(result.errors) == 3
