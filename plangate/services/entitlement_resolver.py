"""
PlanGate - Entitlement Resolver

Combines a plan with the country rollout policy and the tenant's add-on
subscriptions into the final feature-flag and limit maps that gating code
consumes.

Resolution never fails. Missing or unknown configuration resolves to the most
restrictive state (feature off, limit = catalog default), so a tenant is never
granted access because something is not configured.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from plangate.config.catalog_config import (
    AddonSubscriptionStatus,
    LimitKey,
    get_addon_definition,
)
from plangate.services.addon_lifecycle import ENTITLED_STATUSES, AddonSubscription
from plangate.services.catalog import CATALOG, Catalog
from plangate.services.limit_values import LimitCheck, LimitValue, check_limit, more_permissive
from plangate.services.records import Plan
from plangate.services.rollout_policy import CountryRolloutPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedEntitlement:
    """Effective features and limits for a tenant."""
    features: Mapping[str, bool]
    limits: Mapping[str, LimitValue]

    def __post_init__(self):
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))
        object.__setattr__(self, "limits", MappingProxyType(dict(self.limits)))

    def is_enabled(self, key: str) -> bool:
        return self.features.get(key, False)

    def limit(self, key: str) -> LimitValue:
        return self.limits.get(key, LimitValue.unavailable())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "features": dict(self.features),
            "limits": {key: value.to_wire() for key, value in self.limits.items()},
        }


def _base_entitlement(plan: Optional[Plan], catalog: Catalog):
    features = {key: False for key in catalog.feature_keys()}
    limits = {key: entry.default for key, entry in catalog.limits.items()}

    if plan is None:
        return features, limits

    if plan.max_users is not None and catalog.has_limit(LimitKey.USERS.value):
        try:
            limits[LimitKey.USERS.value] = LimitValue.from_wire(plan.max_users)
        except (TypeError, ValueError):
            logger.warning("Plan %s has invalid max_users %r; using default", plan.code, plan.max_users)

    for key, enabled in plan.feature_flags.items():
        if not catalog.has_feature(key):
            logger.warning("Plan %s references unknown feature %s; ignoring", plan.code, key)
            continue
        features[key] = enabled is True

    for key, value in plan.limits.items():
        if not catalog.has_limit(key):
            logger.warning("Plan %s references unknown limit %s; ignoring", plan.code, key)
            continue
        limits[key] = value

    return features, limits


def _addon_grants(
    addon_id: str,
    status: AddonSubscriptionStatus,
    policy: CountryRolloutPolicy,
    tenant_id: Optional[str],
) -> bool:
    if status not in ENTITLED_STATUSES:
        return False
    if not policy.is_addon_enabled(addon_id):
        return False
    return policy.resolve_addon_sub_policy_status(addon_id, tenant_id).has_access


def _merge_addon(
    addon_id: str,
    addon_tier: Optional[str],
    features: Dict[str, bool],
    limits: Dict[str, LimitValue],
    catalog: Catalog,
) -> None:
    definition = get_addon_definition(addon_id)
    if definition is None:
        logger.warning("Unknown add-on %s; contributes nothing", addon_id)
        return

    for key in definition.features:
        if catalog.has_feature(key):
            features[key] = True

    for key, wire_value in definition.limits_for_tier(addon_tier).items():
        if not catalog.has_limit(key):
            continue
        contribution = LimitValue.from_wire(wire_value)
        limits[key] = more_permissive(limits[key], contribution)


def resolve_entitlement(
    plan: Optional[Plan],
    country_policy: Optional[CountryRolloutPolicy],
    addon_subscriptions: Iterable[AddonSubscription] = (),
    tenant_id: Optional[str] = None,
    catalog: Catalog = CATALOG,
) -> ResolvedEntitlement:
    """
    Resolve a tenant's effective entitlement.

    1. Plan flags and limits, with catalog defaults for anything missing.
    2. Add-ons included in the plan or held by subscription contribute only
       when the country enables the add-on, the add-on rollout admits the
       tenant and the subscription is in trial, active or grace.
    3. Country-disabled features are forced off. This ceiling applies to
       add-on features too.

    Limits are never changed by country policy.

    Args:
        plan: The tenant's plan, or None if it could not be found
        country_policy: The tenant's country policy, or None if not configured
        addon_subscriptions: The tenant's add-on subscriptions
        tenant_id: Tenant for cohort checks; defaults to each subscription's tenant
        catalog: Feature/limit registry

    Returns:
        ResolvedEntitlement
    """
    if country_policy is None:
        country_policy = CountryRolloutPolicy.not_configured(plan.country_code if plan else "")

    features, limits = _base_entitlement(plan, catalog)

    if plan is not None:
        for addon_id in sorted(plan.included_addons):
            if _addon_grants(addon_id, AddonSubscriptionStatus.ACTIVE, country_policy, tenant_id):
                _merge_addon(addon_id, None, features, limits, catalog)

    for subscription in addon_subscriptions:
        cohort_tenant = tenant_id if tenant_id is not None else subscription.tenant_id
        if _addon_grants(subscription.addon_id, subscription.status, country_policy, cohort_tenant):
            _merge_addon(subscription.addon_id, subscription.addon_tier, features, limits, catalog)

    for key in features:
        if features[key] and country_policy.is_feature_blocked(key):
            features[key] = False

    return ResolvedEntitlement(features=features, limits=limits)


# =============================================================================
# GATING HELPERS
# =============================================================================

def is_feature_enabled(entitlement: ResolvedEntitlement, key: str) -> bool:
    """Check a resolved feature flag; unknown keys are off."""
    return entitlement.is_enabled(key)


def check_entitlement_limit(
    entitlement: ResolvedEntitlement,
    key: str,
    current_usage: int,
) -> LimitCheck:
    """Check current usage against a resolved limit; unknown keys are unavailable."""
    return check_limit(entitlement.limit(key), current_usage)
