"""
PlanGate - Engine Records

Immutable snapshots of plans, add-on pricing and promotions handed to the
policy engine by the stores. Mapping fields are frozen into read-only views.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from plangate.config.catalog_config import (
    AddonConfigStatus,
    BillingCycle,
    OfferType,
    PlanTier,
    PricingType,
)
from plangate.services.limit_values import LimitValue


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


# =============================================================================
# PLANS
# =============================================================================

@dataclass(frozen=True)
class CycleConfig:
    """Price and availability of one billing cycle."""
    price: Decimal
    enabled: bool = True
    badge: Optional[str] = None


@dataclass(frozen=True)
class Plan:
    """A purchasable bundle of features and limits for one country."""
    code: str
    name: str
    tier: PlanTier
    country_code: str
    currency_code: str
    base_price: Decimal = Decimal("0")
    billing_cycles: Mapping[BillingCycle, CycleConfig] = field(default_factory=dict)
    feature_flags: Mapping[str, bool] = field(default_factory=dict)
    limits: Mapping[str, LimitValue] = field(default_factory=dict)
    max_users: Optional[int] = None
    is_recommended: bool = False
    sort_order: int = 0
    included_addons: FrozenSet[str] = frozenset()
    gst_applicable: bool = False

    def __post_init__(self):
        object.__setattr__(self, "billing_cycles", _freeze(self.billing_cycles))
        object.__setattr__(self, "feature_flags", _freeze(self.feature_flags))
        object.__setattr__(self, "limits", _freeze(self.limits))
        object.__setattr__(self, "included_addons", frozenset(self.included_addons))

    def cycle_config(self, cycle: BillingCycle) -> Optional[CycleConfig]:
        """
        Get the configuration for a billing cycle.

        A plan without an explicit monthly cycle but with a positive base
        price is sold monthly at its base price.
        """
        config = self.billing_cycles.get(cycle)
        if config is None and cycle == BillingCycle.MONTHLY and self.base_price > 0:
            return CycleConfig(price=self.base_price, enabled=True)
        return config

    def enabled_cycles(self) -> Tuple[BillingCycle, ...]:
        cycles = []
        for cycle in BillingCycle:
            config = self.cycle_config(cycle)
            if config is not None and config.enabled:
                cycles.append(cycle)
        return tuple(cycles)


# =============================================================================
# ADD-ON COUNTRY PRICING
# =============================================================================

@dataclass(frozen=True)
class PricingTier:
    id: str
    name: str
    pricing_type: PricingType
    price: Decimal
    currency: str
    is_default: bool = False
    # -1 = no employee cap
    max_employees: int = -1


@dataclass(frozen=True)
class AddonCountryConfig:
    """Pricing and trial configuration for an add-on in one country."""
    addon_id: str
    country_code: str
    status: AddonConfigStatus = AddonConfigStatus.LIVE
    trial_days: int = 0
    pricing_tiers: Tuple[PricingTier, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "pricing_tiers", tuple(self.pricing_tiers))

    @property
    def is_live(self) -> bool:
        return self.status == AddonConfigStatus.LIVE

    def default_tier(self) -> Optional[PricingTier]:
        for tier in self.pricing_tiers:
            if tier.is_default:
                return tier
        return self.pricing_tiers[0] if self.pricing_tiers else None

    def tier(self, tier_id: str) -> Optional[PricingTier]:
        for tier in self.pricing_tiers:
            if tier.id == tier_id:
                return tier
        return None


# =============================================================================
# PROMOTIONS
# =============================================================================

@dataclass(frozen=True)
class Promotion:
    """
    A discount that is either applied automatically (code is None) or
    redeemed with a coupon code.

    Empty scope sets mean the promotion applies to every plan, cycle or
    country.
    """
    id: str
    name: str
    type: OfferType
    value: Decimal
    code: Optional[str] = None
    applicable_plans: FrozenSet[str] = frozenset()
    applicable_cycles: FrozenSet[BillingCycle] = frozenset()
    applicable_countries: FrozenSet[str] = frozenset()
    is_active: bool = True
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    max_redemptions: Optional[int] = None
    redemption_count: int = 0
    per_tenant_limit: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "applicable_plans", frozenset(self.applicable_plans))
        object.__setattr__(self, "applicable_cycles", frozenset(self.applicable_cycles))
        object.__setattr__(
            self,
            "applicable_countries",
            frozenset(c.upper() for c in self.applicable_countries),
        )

    @property
    def is_coupon(self) -> bool:
        return self.code is not None

    def is_redeemable(self, now: datetime, tenant_redemptions: int = 0) -> bool:
        """
        Active, inside its time window and under its redemption caps.

        tenant_redemptions is how many times the quoting tenant has already
        redeemed this promotion; it is checked against per_tenant_limit.
        """
        if not self.is_active:
            return False
        if self.starts_at is not None and now < self.starts_at:
            return False
        if self.ends_at is not None and now > self.ends_at:
            return False
        if self.max_redemptions is not None and self.redemption_count >= self.max_redemptions:
            return False
        if self.per_tenant_limit is not None and tenant_redemptions >= self.per_tenant_limit:
            return False
        return True

    def applies_to_plan(self, plan_code: str) -> bool:
        return not self.applicable_plans or plan_code in self.applicable_plans

    def applies_to_cycle(self, cycle: BillingCycle) -> bool:
        return not self.applicable_cycles or cycle in self.applicable_cycles

    def applies_to_country(self, country_code: Optional[str]) -> bool:
        if not self.applicable_countries:
            return True
        return country_code is not None and country_code.upper() in self.applicable_countries
