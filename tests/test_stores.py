"""
Tests for the store converters.

Rows are built in memory and stores get a session stub; no database is
involved. Malformed stored values must be dropped so resolution falls back
to the restrictive default.
"""

import uuid
from decimal import Decimal

import pytest

from plangate.config.catalog_config import (
    AddonConfigStatus,
    AddonRolloutStatus,
    AddonSubscriptionStatus,
    BillingCycle,
    CountryStatus,
    OfferType,
    PlanTier,
)
from plangate.models import (
    AddonCountryPricing,
    BillingOffer,
    CountryRollout,
    PricingPlan,
    TenantAddonSubscription,
)
from plangate.services.stores import (
    AddonSubscriptionStore,
    PromotionStore,
    addon_config_from_row,
    apply_subscription_to_row,
    parse_billing_cycles,
    parse_limits,
    plan_from_row,
    policy_from_row,
    promotion_from_row,
    serialize_limits,
    subscription_from_row,
)
from plangate.utils.error_handling import ValidationException

from conftest import NOW, make_subscription


class TestPlanConversion:
    """Tests for plan rows."""

    def _row(self, **overrides) -> PricingPlan:
        values = dict(
            code="in-pro",
            name="Pro",
            tier=PlanTier.PRO,
            country_code="in",
            currency_code="inr",
            base_price=Decimal("199.00"),
            billing_cycles={"monthly": {"price": 199}, "yearly": {"price": "1990", "badge": "2 months free"}},
            feature_flags={"invoicing": True, "payroll": "yes"},
            limits={"users": 10, "customers": -1},
            max_users=10,
            is_recommended=True,
            sort_order=3,
            included_addons=["payroll"],
            gst_applicable=True,
        )
        values.update(overrides)
        return PricingPlan(**values)

    def test_plan_from_row(self):
        plan = plan_from_row(self._row())
        assert plan.country_code == "IN"
        assert plan.currency_code == "INR"
        assert plan.billing_cycles[BillingCycle.YEARLY].price == Decimal("1990")
        assert plan.billing_cycles[BillingCycle.YEARLY].badge == "2 months free"
        assert plan.limits["customers"].is_unlimited
        assert plan.included_addons == frozenset({"payroll"})

    def test_non_boolean_flag_is_off(self):
        assert plan_from_row(self._row()).feature_flags["payroll"] is False

    def test_null_json_columns(self):
        plan = plan_from_row(self._row(billing_cycles=None, feature_flags=None, limits=None, included_addons=None))
        assert dict(plan.limits) == {}
        assert plan.enabled_cycles() == (BillingCycle.MONTHLY,)

    def test_malformed_limits_dropped(self):
        limits = parse_limits({"users": "ten", "records": -7, "customers": 0})
        assert list(limits) == ["customers"]
        assert serialize_limits(limits) == {"customers": 0}

    def test_unknown_cycles_dropped(self):
        cycles = parse_billing_cycles({"weekly": {"price": 1}, "yearly": {"enabled": True}, "monthly": {"price": 5}})
        assert list(cycles) == [BillingCycle.MONTHLY]


class TestPolicyConversion:
    """Tests for country rollout rows."""

    def test_policy_from_row(self):
        row = CountryRollout(
            country_code="MY",
            status=CountryStatus.ENABLED,
            registration_enabled=True,
            billing_enabled=False,
            enabled_business_types=None,
            disabled_features=["whatsapp_automation"],
            enabled_addons=["payroll"],
            enabled_modules=None,
            addon_policies={
                "payroll": {"status": "beta", "cohort_tenant_ids": ["t-1"], "disclaimer_text": "Beta"},
                "hrms": {"status": "sideways"},
                "whatsapp": "live",
            },
        )
        policy = policy_from_row(row)
        assert policy.is_feature_blocked("whatsapp_automation")
        assert policy.addon_policies["payroll"].status == AddonRolloutStatus.BETA
        assert policy.addon_policies["payroll"].cohort_tenant_ids == frozenset({"t-1"})
        assert policy.addon_policies["hrms"].status == AddonRolloutStatus.DISABLED
        assert policy.addon_policies["whatsapp"].status == AddonRolloutStatus.DISABLED
        assert policy.is_business_type_allowed("retail")


class TestAddonConversion:
    """Tests for add-on pricing and subscription rows."""

    def test_addon_config_from_row(self):
        row = AddonCountryPricing(
            addon_id="payroll",
            country_code="my",
            status=AddonConfigStatus.LIVE,
            trial_days=14,
            pricing_tiers=[
                {"id": "starter", "name": "Starter", "price": 20, "currency": "MYR", "is_default": True, "max_employees": 5},
                {"name": "broken"},
                {"id": "scale", "price": "69", "currency": "MYR", "pricing_type": "per_employee"},
            ],
        )
        config = addon_config_from_row(row)
        assert config.country_code == "MY"
        assert [tier.id for tier in config.pricing_tiers] == ["starter", "scale"]
        assert config.default_tier().id == "starter"
        assert config.tier("scale").max_employees == -1

    def test_subscription_row_round_trip(self):
        tenant_id = str(uuid.uuid4())
        subscription = make_subscription(
            AddonSubscriptionStatus.GRACE,
            tenant_id=tenant_id,
            activated_at=NOW,
            grace_period_ends_at=NOW,
            trial_used=True,
        )
        row = TenantAddonSubscription()
        apply_subscription_to_row(subscription, row)
        assert row.tenant_id == uuid.UUID(tenant_id)
        restored = subscription_from_row(row)
        assert restored == subscription


class TestPromotionConversion:
    """Tests for offer rows."""

    def test_promotion_from_row(self):
        row = BillingOffer(
            id=uuid.uuid4(),
            code="SAVE10",
            name="Save 10",
            offer_type=OfferType.PERCENT,
            value=Decimal("10.00"),
            applicable_plans=["in-pro"],
            applicable_cycles=["yearly", "weekly"],
            applicable_countries=["in"],
            is_active=True,
            max_redemptions=None,
            redemption_count=0,
            per_tenant_limit=1,
        )
        promotion = promotion_from_row(row)
        assert promotion.per_tenant_limit == 1
        assert promotion.is_coupon
        assert promotion.applicable_cycles == frozenset({BillingCycle.YEARLY})
        assert promotion.applies_to_country("IN")


class _UnusedSession:
    """A session that fails the test if any query reaches it."""

    async def execute(self, *args, **kwargs):
        raise AssertionError("no query expected")


class TestNonUuidTenant:
    """Tenant ids that are not UUIDs own nothing and never reach the database."""

    @pytest.mark.asyncio
    async def test_list_for_tenant_is_empty(self):
        store = AddonSubscriptionStore(db=_UnusedSession())
        assert await store.list_for_tenant("acme-corp") == []

    @pytest.mark.asyncio
    async def test_get_is_none(self):
        store = AddonSubscriptionStore(db=_UnusedSession())
        assert await store.get("acme-corp", "payroll") is None

    @pytest.mark.asyncio
    async def test_save_rejected(self):
        store = AddonSubscriptionStore(db=_UnusedSession())
        with pytest.raises(ValidationException) as exc_info:
            await store.save(make_subscription(AddonSubscriptionStatus.ACTIVE, tenant_id="acme-corp"))
        assert exc_info.value.field == "tenant_id"

    @pytest.mark.asyncio
    async def test_no_redemptions(self):
        store = PromotionStore(db=_UnusedSession())
        assert await store.redemption_counts("acme-corp") == {}
