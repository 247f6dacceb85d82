"""
PlanGate - Stores

Async SQLAlchemy access to plans, country rollouts, add-on pricing, add-on
subscriptions and promotions.

Stores are the boundary between the wire representation (JSON columns,
-1/0/n limits, UUID tenant ids) and the immutable records the policy engine
works on. Malformed stored values are logged and dropped so that resolution
falls back to the restrictive default.
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.config.catalog_config import (
    AddonRolloutStatus,
    BillingCycle,
    PricingType,
)
from plangate.models.addon_subscription import TenantAddonSubscription
from plangate.models.plan import BillingOffer, OfferRedemption, PricingPlan
from plangate.models.rollout import AddonCountryPricing, CountryRollout
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
from plangate.utils.error_handling import ValidationException

logger = logging.getLogger(__name__)


# =============================================================================
# ROW -> RECORD CONVERTERS
# =============================================================================

def _decimal(value: Any, default: str = "0") -> Decimal:
    if value is None:
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)


def _tenant_uuid(tenant_id: Any) -> Optional[uuid.UUID]:
    """Parse a tenant id; ids that are not UUIDs cannot match any row."""
    try:
        return uuid.UUID(str(tenant_id))
    except ValueError:
        logger.debug("Tenant id %r is not a UUID", tenant_id)
        return None


def parse_billing_cycles(raw: Optional[Mapping[str, Any]], plan_code: str = "") -> Dict[BillingCycle, CycleConfig]:
    cycles = {}
    for cycle_id, config in (raw or {}).items():
        try:
            cycle = BillingCycle(cycle_id)
        except ValueError:
            logger.warning("Plan %s has unknown billing cycle %s; ignoring", plan_code, cycle_id)
            continue
        if not isinstance(config, Mapping) or config.get("price") is None:
            logger.warning("Plan %s cycle %s has no price; ignoring", plan_code, cycle_id)
            continue
        cycles[cycle] = CycleConfig(
            price=_decimal(config.get("price")),
            enabled=bool(config.get("enabled", True)),
            badge=config.get("badge"),
        )
    return cycles


def parse_limits(raw: Optional[Mapping[str, Any]], plan_code: str = "") -> Dict[str, LimitValue]:
    """Convert wire limits (-1/0/n) into LimitValues, dropping malformed entries."""
    limits = {}
    for key, value in (raw or {}).items():
        try:
            limits[key] = LimitValue.from_wire(value)
        except (TypeError, ValueError):
            logger.warning("Plan %s has invalid limit %s=%r; ignoring", plan_code, key, value)
    return limits


def serialize_limits(limits: Mapping[str, LimitValue]) -> Dict[str, int]:
    return {key: value.to_wire() for key, value in limits.items()}


def plan_from_row(row: PricingPlan) -> Plan:
    return Plan(
        code=row.code,
        name=row.name,
        tier=row.tier,
        country_code=row.country_code.upper(),
        currency_code=row.currency_code.upper(),
        base_price=_decimal(row.base_price),
        billing_cycles=parse_billing_cycles(row.billing_cycles, row.code),
        feature_flags={k: v is True for k, v in (row.feature_flags or {}).items()},
        limits=parse_limits(row.limits, row.code),
        max_users=row.max_users,
        is_recommended=row.is_recommended,
        sort_order=row.sort_order,
        included_addons=frozenset(row.included_addons or []),
        gst_applicable=row.gst_applicable,
    )


def _sub_policy(raw: Mapping[str, Any]) -> Optional[AddonRolloutSubPolicy]:
    try:
        status = AddonRolloutStatus(raw.get("status", AddonRolloutStatus.DISABLED.value))
    except ValueError:
        return None
    return AddonRolloutSubPolicy(
        status=status,
        cohort_tenant_ids=frozenset(str(t) for t in raw.get("cohort_tenant_ids") or []),
        disclaimer_text=raw.get("disclaimer_text"),
    )


def policy_from_row(row: CountryRollout) -> CountryRolloutPolicy:
    addon_policies = {}
    for addon_key, raw in (row.addon_policies or {}).items():
        sub_policy = _sub_policy(raw) if isinstance(raw, Mapping) else None
        if sub_policy is None:
            # An unreadable sub-policy disables the add-on
            logger.warning("Country %s has invalid %s rollout policy", row.country_code, addon_key)
            sub_policy = AddonRolloutSubPolicy(status=AddonRolloutStatus.DISABLED)
        addon_policies[addon_key] = sub_policy

    return CountryRolloutPolicy(
        country_code=row.country_code,
        status=row.status,
        registration_enabled=row.registration_enabled,
        billing_enabled=row.billing_enabled,
        enabled_business_types=frozenset(row.enabled_business_types or []),
        disabled_features=frozenset(row.disabled_features or []),
        enabled_addons=frozenset(row.enabled_addons or []),
        enabled_modules=frozenset(row.enabled_modules or []),
        notes=row.notes,
        addon_policies=addon_policies,
    )


def addon_config_from_row(row: AddonCountryPricing) -> AddonCountryConfig:
    tiers = []
    for raw in row.pricing_tiers or []:
        try:
            tiers.append(PricingTier(
                id=raw["id"],
                name=raw.get("name", raw["id"]),
                pricing_type=PricingType(raw.get("pricing_type", PricingType.FLAT.value)),
                price=_decimal(raw.get("price")),
                currency=raw.get("currency", ""),
                is_default=bool(raw.get("is_default", False)),
                max_employees=int(raw.get("max_employees", -1)),
            ))
        except (KeyError, ValueError, TypeError):
            logger.warning("Add-on %s/%s has an invalid pricing tier; ignoring", row.addon_id, row.country_code)
    return AddonCountryConfig(
        addon_id=row.addon_id,
        country_code=row.country_code.upper(),
        status=row.status,
        trial_days=row.trial_days,
        pricing_tiers=tuple(tiers),
    )


def subscription_from_row(row: TenantAddonSubscription) -> AddonSubscription:
    return AddonSubscription(
        id=str(row.id) if row.id else None,
        tenant_id=str(row.tenant_id),
        addon_id=row.addon_id,
        status=row.status,
        addon_tier=row.addon_tier,
        employee_count=row.employee_count,
        monthly_amount=_decimal(row.monthly_amount),
        currency_code=row.currency_code,
        trial_ends_at=row.trial_ends_at,
        activated_at=row.activated_at,
        grace_period_ends_at=row.grace_period_ends_at,
        cancelled_at=row.cancelled_at,
        trial_used=row.trial_used,
    )


def apply_subscription_to_row(subscription: AddonSubscription, row: TenantAddonSubscription) -> None:
    row.tenant_id = uuid.UUID(str(subscription.tenant_id))
    row.addon_id = subscription.addon_id
    row.addon_tier = subscription.addon_tier
    row.employee_count = subscription.employee_count
    row.monthly_amount = subscription.monthly_amount
    row.currency_code = subscription.currency_code
    row.status = subscription.status
    row.trial_ends_at = subscription.trial_ends_at
    row.activated_at = subscription.activated_at
    row.grace_period_ends_at = subscription.grace_period_ends_at
    row.cancelled_at = subscription.cancelled_at
    row.trial_used = subscription.trial_used


def promotion_from_row(row: BillingOffer) -> Promotion:
    cycles = set()
    for cycle_id in row.applicable_cycles or []:
        try:
            cycles.add(BillingCycle(cycle_id))
        except ValueError:
            logger.warning("Offer %s has unknown billing cycle %s; ignoring", row.id, cycle_id)
    value = _decimal(row.value)
    if value <= 0:
        logger.warning("Offer %s has non-positive value %s; it gives no discount", row.id, value)
    return Promotion(
        id=str(row.id),
        name=row.name,
        type=row.offer_type,
        value=value,
        code=row.code,
        applicable_plans=frozenset(row.applicable_plans or []),
        applicable_cycles=frozenset(cycles),
        applicable_countries=frozenset(row.applicable_countries or []),
        is_active=row.is_active,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        max_redemptions=row.max_redemptions,
        redemption_count=row.redemption_count,
        per_tenant_limit=row.per_tenant_limit,
    )


# =============================================================================
# STORES
# =============================================================================

class PlanStore:
    """Plan lookups by code and country."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[Plan]:
        result = await self.db.execute(
            select(PricingPlan).where(PricingPlan.code == code, PricingPlan.is_active.is_(True))
        )
        row = result.scalar_one_or_none()
        if row is None:
            logger.debug("Plan %s not found", code)
            return None
        return plan_from_row(row)

    async def list_for_country(self, country_code: str) -> List[Plan]:
        result = await self.db.execute(
            select(PricingPlan)
            .where(PricingPlan.country_code == country_code.upper(), PricingPlan.is_active.is_(True))
            .order_by(PricingPlan.sort_order)
        )
        return [plan_from_row(row) for row in result.scalars().all()]


class CountryPolicyStore:
    """Country rollout policy lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, country_code: str) -> Optional[CountryRolloutPolicy]:
        result = await self.db.execute(
            select(CountryRollout).where(CountryRollout.country_code == country_code.upper())
        )
        row = result.scalar_one_or_none()
        if row is None:
            logger.debug("Country rollout %s not configured", country_code)
            return None
        return policy_from_row(row)

    async def list_all(self) -> Dict[str, CountryRolloutPolicy]:
        result = await self.db.execute(select(CountryRollout))
        return {row.country_code.upper(): policy_from_row(row) for row in result.scalars().all()}


class AddonConfigStore:
    """Per-country add-on pricing lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, addon_id: str, country_code: str) -> Optional[AddonCountryConfig]:
        result = await self.db.execute(
            select(AddonCountryPricing).where(
                AddonCountryPricing.addon_id == addon_id,
                AddonCountryPricing.country_code == country_code.upper(),
            )
        )
        row = result.scalar_one_or_none()
        return addon_config_from_row(row) if row else None


class AddonSubscriptionStore:
    """Tenant add-on subscriptions; the only writer of subscription rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, tenant_uuid: uuid.UUID, addon_id: str) -> Optional[TenantAddonSubscription]:
        result = await self.db.execute(
            select(TenantAddonSubscription).where(
                TenantAddonSubscription.tenant_id == tenant_uuid,
                TenantAddonSubscription.addon_id == addon_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: str) -> List[AddonSubscription]:
        tenant_uuid = _tenant_uuid(tenant_id)
        if tenant_uuid is None:
            return []
        result = await self.db.execute(
            select(TenantAddonSubscription).where(TenantAddonSubscription.tenant_id == tenant_uuid)
        )
        return [subscription_from_row(row) for row in result.scalars().all()]

    async def get(self, tenant_id: str, addon_id: str) -> Optional[AddonSubscription]:
        tenant_uuid = _tenant_uuid(tenant_id)
        if tenant_uuid is None:
            return None
        row = await self._get_row(tenant_uuid, addon_id)
        return subscription_from_row(row) if row else None

    async def save(self, subscription: AddonSubscription) -> AddonSubscription:
        tenant_uuid = _tenant_uuid(subscription.tenant_id)
        if tenant_uuid is None:
            raise ValidationException(
                f"Tenant id {subscription.tenant_id!r} is not a valid UUID",
                field="tenant_id",
            )
        row = await self._get_row(tenant_uuid, subscription.addon_id)
        if row is None:
            row = TenantAddonSubscription()
            self.db.add(row)
        apply_subscription_to_row(subscription, row)
        await self.db.commit()
        await self.db.refresh(row)
        return subscription_from_row(row)


class PromotionStore:
    """Offers and coupons applicable to a plan, and tenant redemptions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for(self, plan_code: str) -> List[Promotion]:
        result = await self.db.execute(
            select(BillingOffer).where(BillingOffer.is_active.is_(True))
        )
        promotions = [promotion_from_row(row) for row in result.scalars().all()]
        return [p for p in promotions if p.applies_to_plan(plan_code)]

    async def redemption_counts(self, tenant_id: str) -> Dict[str, int]:
        """
        Count a tenant's redemptions per promotion id.

        Promotions the tenant never redeemed are absent from the result.
        """
        tenant_uuid = _tenant_uuid(tenant_id)
        if tenant_uuid is None:
            return {}
        result = await self.db.execute(
            select(OfferRedemption.offer_id, func.count(OfferRedemption.id))
            .where(OfferRedemption.tenant_id == tenant_uuid)
            .group_by(OfferRedemption.offer_id)
        )
        return {str(offer_id): count for offer_id, count in result.all()}
