"""
PlanGate - Test Configuration

Pytest fixtures and configuration.

API tests run against in-memory stores swapped in through
app.dependency_overrides, so no database is required.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from plangate.config.catalog_config import (
    AddonConfigStatus,
    AddonRolloutStatus,
    AddonSubscriptionStatus,
    BillingCycle,
    CountryStatus,
    OfferType,
    PlanTier,
    PricingType,
)
from plangate.dependencies import (
    get_addon_config_store,
    get_addon_subscription_store,
    get_country_policy_store,
    get_plan_store,
    get_promotion_store,
)
from plangate.services.addon_lifecycle import AddonSubscription
from plangate.services.limit_values import LimitValue
from plangate.services.records import (
    AddonCountryConfig,
    CycleConfig,
    Plan,
    PricingTier,
    Promotion,
)
from plangate.services.rollout_policy import AddonRolloutSubPolicy, CountryRolloutPolicy
from main import app


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ===========================================
# IN-MEMORY STORES
# ===========================================

class InMemoryPlanStore:
    def __init__(self, plans: List[Plan]):
        self.plans = {plan.code: plan for plan in plans}

    async def get_by_code(self, code: str) -> Optional[Plan]:
        return self.plans.get(code)

    async def list_for_country(self, country_code: str) -> List[Plan]:
        return sorted(
            (p for p in self.plans.values() if p.country_code == country_code.upper()),
            key=lambda p: p.sort_order,
        )


class InMemoryCountryPolicyStore:
    def __init__(self, policies: List[CountryRolloutPolicy]):
        self.policies = {policy.country_code: policy for policy in policies}

    async def get(self, country_code: str) -> Optional[CountryRolloutPolicy]:
        return self.policies.get(country_code.upper())

    async def list_all(self) -> Dict[str, CountryRolloutPolicy]:
        return dict(self.policies)


class InMemoryAddonConfigStore:
    def __init__(self, configs: List[AddonCountryConfig]):
        self.configs = {(c.addon_id, c.country_code): c for c in configs}

    async def get(self, addon_id: str, country_code: str) -> Optional[AddonCountryConfig]:
        return self.configs.get((addon_id, country_code.upper()))


class InMemoryAddonSubscriptionStore:
    def __init__(self, subscriptions: Optional[List[AddonSubscription]] = None):
        self.subscriptions = {(s.tenant_id, s.addon_id): s for s in subscriptions or []}

    async def list_for_tenant(self, tenant_id: str) -> List[AddonSubscription]:
        return [s for (tenant, _), s in self.subscriptions.items() if tenant == tenant_id]

    async def get(self, tenant_id: str, addon_id: str) -> Optional[AddonSubscription]:
        return self.subscriptions.get((tenant_id, addon_id))

    async def save(self, subscription: AddonSubscription) -> AddonSubscription:
        self.subscriptions[(subscription.tenant_id, subscription.addon_id)] = subscription
        return subscription


class InMemoryPromotionStore:
    def __init__(self, promotions: List[Promotion]):
        self.promotions = list(promotions)
        self.redemptions: Dict[str, Dict[str, int]] = {}

    async def list_for(self, plan_code: str) -> List[Promotion]:
        return [p for p in self.promotions if p.applies_to_plan(plan_code)]

    async def redemption_counts(self, tenant_id: str) -> Dict[str, int]:
        return dict(self.redemptions.get(tenant_id, {}))


# ===========================================
# DATA FIXTURES
# ===========================================

def make_plan(**overrides) -> Plan:
    """Build an India Pro plan, overriding any field."""
    values = dict(
        code="in-pro",
        name="Pro",
        tier=PlanTier.PRO,
        country_code="IN",
        currency_code="INR",
        base_price=Decimal("199"),
        billing_cycles={
            BillingCycle.MONTHLY: CycleConfig(price=Decimal("100")),
            BillingCycle.YEARLY: CycleConfig(price=Decimal("1000"), badge="Save 17%"),
            BillingCycle.QUARTERLY: CycleConfig(price=Decimal("300"), enabled=False),
        },
        feature_flags={
            "invoicing": True,
            "whatsapp_automation": True,
            "analytics_advanced": True,
            "payroll": False,
        },
        limits={
            "users": LimitValue.capped(10),
            "customers": LimitValue.unlimited(),
            "records": LimitValue.unlimited(),
        },
        max_users=10,
        sort_order=3,
    )
    values.update(overrides)
    return Plan(**values)


def make_policy(**overrides) -> CountryRolloutPolicy:
    """Build a live India rollout policy, overriding any field."""
    values = dict(
        country_code="IN",
        status=CountryStatus.ENABLED,
        registration_enabled=True,
        billing_enabled=True,
        enabled_business_types=frozenset(),
        disabled_features=frozenset(),
        enabled_addons=frozenset({"payroll"}),
        enabled_modules=frozenset({"invoicing", "inventory"}),
        addon_policies={
            "payroll": AddonRolloutSubPolicy(status=AddonRolloutStatus.LIVE),
        },
    )
    values.update(overrides)
    return CountryRolloutPolicy(**values)


def make_subscription(status: AddonSubscriptionStatus, **overrides) -> AddonSubscription:
    values = dict(
        tenant_id="tenant-1",
        addon_id="payroll",
        status=status,
        addon_tier="growth",
        employee_count=12,
        monthly_amount=Decimal("39"),
        currency_code="INR",
    )
    values.update(overrides)
    return AddonSubscription(**values)


@pytest.fixture
def pro_plan() -> Plan:
    return make_plan()


@pytest.fixture
def free_plan() -> Plan:
    return make_plan(
        code="in-free",
        name="Free",
        tier=PlanTier.FREE,
        base_price=Decimal("0"),
        billing_cycles={},
        feature_flags={"invoicing": True},
        limits={"users": LimitValue.capped(1), "customers": LimitValue.capped(25), "records": LimitValue.capped(50)},
        max_users=1,
        sort_order=1,
    )


@pytest.fixture
def india_policy() -> CountryRolloutPolicy:
    return make_policy()


@pytest.fixture
def payroll_config() -> AddonCountryConfig:
    return AddonCountryConfig(
        addon_id="payroll",
        country_code="IN",
        status=AddonConfigStatus.LIVE,
        trial_days=7,
        pricing_tiers=(
            PricingTier("starter", "Starter", PricingType.FLAT, Decimal("20"), "INR", True, 5),
            PricingTier("growth", "Growth", PricingType.FLAT, Decimal("39"), "INR", False, 20),
            PricingTier("scale", "Scale", PricingType.FLAT, Decimal("69"), "INR", False, 50),
            PricingTier("unlimited", "Unlimited", PricingType.FLAT, Decimal("99"), "INR", False, -1),
        ),
    )


@pytest.fixture
def launch_offer() -> Promotion:
    return Promotion(
        id=str(uuid4()),
        name="Launch offer",
        type=OfferType.PERCENT,
        value=Decimal("20"),
    )


@pytest.fixture
def flat_coupon() -> Promotion:
    return Promotion(
        id=str(uuid4()),
        name="Save 100",
        type=OfferType.FLAT,
        value=Decimal("100"),
        code="SAVE100",
        applicable_plans=frozenset({"in-pro"}),
    )


# ===========================================
# API CLIENT
# ===========================================

@pytest.fixture
def stores(pro_plan, free_plan, india_policy, payroll_config, launch_offer, flat_coupon):
    """In-memory stores shared by the API client and the test."""
    blocked_policy = make_policy(
        country_code="AE",
        registration_enabled=False,
        billing_enabled=False,
        enabled_business_types=frozenset({"retail"}),
        enabled_addons=frozenset(),
        addon_policies={},
    )
    return {
        "plans": InMemoryPlanStore([pro_plan, free_plan]),
        "policies": InMemoryCountryPolicyStore([india_policy, blocked_policy]),
        "addon_configs": InMemoryAddonConfigStore([payroll_config]),
        "subscriptions": InMemoryAddonSubscriptionStore(),
        "promotions": InMemoryPromotionStore([launch_offer, flat_coupon]),
    }


@pytest_asyncio.fixture(scope="function")
async def client(stores) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with store overrides."""
    app.dependency_overrides[get_plan_store] = lambda: stores["plans"]
    app.dependency_overrides[get_country_policy_store] = lambda: stores["policies"]
    app.dependency_overrides[get_addon_config_store] = lambda: stores["addon_configs"]
    app.dependency_overrides[get_addon_subscription_store] = lambda: stores["subscriptions"]
    app.dependency_overrides[get_promotion_store] = lambda: stores["promotions"]

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
