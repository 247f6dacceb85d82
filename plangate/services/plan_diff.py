"""
PlanGate - Plan Diff

Compares a tenant's current entitlement with a target plan to report lost
and gained features and reduced and increased limits. Used for downgrade
warnings and upgrade messaging.

Unlimited is compared through LimitValue ordering, never as -1.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from plangate.services.catalog import CATALOG, Catalog
from plangate.services.entitlement_resolver import ResolvedEntitlement, resolve_entitlement
from plangate.services.limit_values import LimitValue
from plangate.services.records import Plan
from plangate.services.rollout_policy import CountryRolloutPolicy


LimitInput = Union[LimitValue, int]


@dataclass(frozen=True)
class FeatureChange:
    key: str
    label: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class LimitChange:
    key: str
    label: str
    from_display: str
    to_display: str

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "from": self.from_display, "to": self.to_display}


@dataclass
class PlanDiff:
    """All four change lists between two entitlements."""
    lost_features: List[FeatureChange] = field(default_factory=list)
    gained_features: List[FeatureChange] = field(default_factory=list)
    reduced_limits: List[LimitChange] = field(default_factory=list)
    increased_limits: List[LimitChange] = field(default_factory=list)

    @property
    def is_downgrade(self) -> bool:
        return bool(self.lost_features or self.reduced_limits)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lost_features": [c.to_dict() for c in self.lost_features],
            "gained_features": [c.to_dict() for c in self.gained_features],
            "reduced_limits": [c.to_dict() for c in self.reduced_limits],
            "increased_limits": [c.to_dict() for c in self.increased_limits],
            "is_downgrade": self.is_downgrade,
        }


def _as_limit(value: LimitInput) -> LimitValue:
    if isinstance(value, LimitValue):
        return value
    return LimitValue.from_wire(value)


def _ordered_keys(keys, catalog_keys) -> List[str]:
    # Catalog order first, then anything else alphabetically
    known = [key for key in catalog_keys if key in keys]
    extra = sorted(key for key in keys if key not in catalog_keys)
    return known + extra


def _feature_change(key: str, catalog: Catalog) -> FeatureChange:
    entry = catalog.feature(key)
    if entry is None:
        return FeatureChange(key=key, label=key)
    return FeatureChange(key=key, label=entry.label, description=entry.description)


# =============================================================================
# FEATURES
# =============================================================================

def get_lost_features(
    current: Mapping[str, bool],
    target: Mapping[str, bool],
    catalog: Catalog = CATALOG,
) -> List[FeatureChange]:
    """Features enabled now that the target leaves off (missing counts as off)."""
    lost = {key for key, enabled in current.items() if enabled and not target.get(key, False)}
    return [_feature_change(key, catalog) for key in _ordered_keys(lost, catalog.feature_keys())]


def get_gained_features(
    current: Mapping[str, bool],
    target: Mapping[str, bool],
    catalog: Catalog = CATALOG,
) -> List[FeatureChange]:
    """Features the target enables that are off now."""
    gained = {key for key, enabled in target.items() if enabled and not current.get(key, False)}
    return [_feature_change(key, catalog) for key in _ordered_keys(gained, catalog.feature_keys())]


# =============================================================================
# LIMITS
# =============================================================================

def _is_reduction(current: LimitValue, target: LimitValue) -> bool:
    if current.is_unlimited:
        return not target.is_unlimited
    if current.is_capped:
        return target.is_unavailable or (target.is_capped and target.cap < current.cap)
    return False


def _is_increase(current: LimitValue, target: LimitValue) -> bool:
    if target.is_unlimited:
        return not current.is_unlimited
    if target.is_capped:
        return current.is_unavailable or (current.is_capped and target.cap > current.cap)
    return False


def _limit_changes(current, target, predicate, catalog: Catalog) -> List[LimitChange]:
    shared = set(current) & set(target)
    changes = []
    for key in _ordered_keys(shared, catalog.limit_keys()):
        before = _as_limit(current[key])
        after = _as_limit(target[key])
        if predicate(before, after):
            changes.append(LimitChange(
                key=key,
                label=catalog.limit_label(key),
                from_display=before.display(),
                to_display=after.display(),
            ))
    return changes


def get_reduced_limits(
    current: Mapping[str, LimitInput],
    target: Mapping[str, LimitInput],
    catalog: Catalog = CATALOG,
) -> List[LimitChange]:
    """
    Limits the target lowers.

    A reduction is unlimited -> anything finite, a smaller positive cap, or a
    positive cap -> unavailable. Only keys present on both sides are compared.
    """
    return _limit_changes(current, target, _is_reduction, catalog)


def get_increased_limits(
    current: Mapping[str, LimitInput],
    target: Mapping[str, LimitInput],
    catalog: Catalog = CATALOG,
) -> List[LimitChange]:
    """Limits the target raises, including finite -> unlimited."""
    return _limit_changes(current, target, _is_increase, catalog)


# =============================================================================
# WHOLE-ENTITLEMENT DIFF
# =============================================================================

def diff_entitlements(
    current: ResolvedEntitlement,
    target: ResolvedEntitlement,
    catalog: Catalog = CATALOG,
) -> PlanDiff:
    return PlanDiff(
        lost_features=get_lost_features(current.features, target.features, catalog),
        gained_features=get_gained_features(current.features, target.features, catalog),
        reduced_limits=get_reduced_limits(current.limits, target.limits, catalog),
        increased_limits=get_increased_limits(current.limits, target.limits, catalog),
    )


def diff_plan_change(
    current: ResolvedEntitlement,
    target_plan: Plan,
    country_policy: Optional[CountryRolloutPolicy],
    addon_subscriptions=(),
    tenant_id: Optional[str] = None,
    catalog: Catalog = CATALOG,
) -> PlanDiff:
    """Diff the current entitlement against what the tenant would get on a target plan."""
    target = resolve_entitlement(target_plan, country_policy, addon_subscriptions, tenant_id, catalog)
    return diff_entitlements(current, target, catalog)
