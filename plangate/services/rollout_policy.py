"""
PlanGate - Country Rollout Policy

Country-level restrictions layered over every plan: which business types may
sign up, which features are blocked, which add-ons and modules are enabled,
and cohort-gated add-on rollouts.

A country with no stored policy resolves to a "not configured" policy in
which everything is disabled.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional

from plangate.config.catalog_config import AddonRolloutStatus, CountryStatus

logger = logging.getLogger(__name__)


class RolloutRejection(str, Enum):
    """Codes returned when a rollout check denies an operation."""
    COUNTRY_NOT_AVAILABLE = "COUNTRY_NOT_AVAILABLE"
    COUNTRY_SIGNUP_DISABLED = "COUNTRY_SIGNUP_DISABLED"
    COUNTRY_BILLING_DISABLED = "COUNTRY_BILLING_DISABLED"
    BUSINESS_NOT_AVAILABLE_IN_COUNTRY = "BUSINESS_NOT_AVAILABLE_IN_COUNTRY"
    ADDON_NOT_ENABLED = "ADDON_NOT_ENABLED"
    ADDON_DISABLED = "ADDON_DISABLED"
    TENANT_NOT_IN_COHORT = "TENANT_NOT_IN_COHORT"


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class AddonRolloutSubPolicy:
    """Per-country rollout of a single add-on."""
    status: AddonRolloutStatus = AddonRolloutStatus.DISABLED
    cohort_tenant_ids: FrozenSet[str] = frozenset()
    disclaimer_text: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, "cohort_tenant_ids", frozenset(str(t) for t in self.cohort_tenant_ids)
        )


@dataclass(frozen=True)
class AddonAccess:
    """Effective add-on rollout status for one tenant."""
    addon_key: str
    status: AddonRolloutStatus
    is_beta: bool = False
    disclaimer: Optional[str] = None

    @property
    def has_access(self) -> bool:
        return self.status == AddonRolloutStatus.LIVE

    def to_dict(self) -> Dict:
        return {
            "addon_key": self.addon_key,
            "status": self.status.value,
            "has_access": self.has_access,
            "is_beta": self.is_beta,
            "disclaimer": self.disclaimer,
        }


@dataclass(frozen=True)
class RolloutCheck:
    """Result of a signup, billing or add-on availability check."""
    allowed: bool
    code: Optional[RolloutRejection] = None
    message: Optional[str] = None
    is_beta: bool = False
    disclaimer: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "allowed": self.allowed,
            "code": self.code.value if self.code else None,
            "message": self.message,
            "is_beta": self.is_beta,
            "disclaimer": self.disclaimer,
        }


@dataclass(frozen=True)
class CountryRolloutPolicy:
    country_code: str
    status: CountryStatus = CountryStatus.DISABLED
    registration_enabled: bool = False
    billing_enabled: bool = False
    # empty = every business type allowed
    enabled_business_types: FrozenSet[str] = frozenset()
    disabled_features: FrozenSet[str] = frozenset()
    enabled_addons: FrozenSet[str] = frozenset()
    enabled_modules: FrozenSet[str] = frozenset()
    notes: Optional[str] = None
    addon_policies: Mapping[str, AddonRolloutSubPolicy] = field(default_factory=dict)
    configured: bool = True

    def __post_init__(self):
        object.__setattr__(self, "country_code", self.country_code.upper())
        object.__setattr__(self, "enabled_business_types", frozenset(self.enabled_business_types))
        object.__setattr__(self, "disabled_features", frozenset(self.disabled_features))
        object.__setattr__(self, "enabled_addons", frozenset(self.enabled_addons))
        object.__setattr__(self, "enabled_modules", frozenset(self.enabled_modules))
        object.__setattr__(self, "addon_policies", MappingProxyType(dict(self.addon_policies)))

    @classmethod
    def not_configured(cls, country_code: str) -> "CountryRolloutPolicy":
        """The policy used for a country with no stored rollout record."""
        return cls(country_code=country_code or "", configured=False)

    @property
    def is_available(self) -> bool:
        return self.configured and self.status == CountryStatus.ENABLED

    def is_business_type_allowed(self, business_type: str) -> bool:
        if not self.configured:
            return False
        if not self.enabled_business_types:
            return True
        return business_type in self.enabled_business_types

    def is_feature_blocked(self, key: str) -> bool:
        """Blocked features are off regardless of what any plan grants."""
        if not self.configured:
            return True
        return key in self.disabled_features

    def is_addon_enabled(self, addon_id: str) -> bool:
        return self.configured and addon_id in self.enabled_addons

    def is_module_enabled(self, module_id: str) -> bool:
        return self.configured and module_id in self.enabled_modules

    def resolve_addon_sub_policy_status(
        self,
        addon_key: str,
        tenant_id: Optional[str] = None,
    ) -> AddonAccess:
        """
        Resolve the add-on rollout status for a tenant.

        disabled and live pass through unchanged. beta resolves to live only
        for tenants in the cohort and to disabled for everyone else. An
        add-on without a sub-policy is governed by enabled_addons alone.
        """
        if not self.configured:
            return AddonAccess(addon_key=addon_key, status=AddonRolloutStatus.DISABLED)

        sub_policy = self.addon_policies.get(addon_key)
        if sub_policy is None:
            return AddonAccess(addon_key=addon_key, status=AddonRolloutStatus.LIVE)

        if sub_policy.status == AddonRolloutStatus.BETA:
            in_cohort = tenant_id is not None and str(tenant_id) in sub_policy.cohort_tenant_ids
            return AddonAccess(
                addon_key=addon_key,
                status=AddonRolloutStatus.LIVE if in_cohort else AddonRolloutStatus.DISABLED,
                is_beta=True,
                disclaimer=sub_policy.disclaimer_text,
            )

        return AddonAccess(
            addon_key=addon_key,
            status=sub_policy.status,
            disclaimer=sub_policy.disclaimer_text,
        )


# =============================================================================
# RESOLUTION
# =============================================================================

def resolve_rollout_policy(
    country_code: Optional[str],
    policies: Mapping[str, CountryRolloutPolicy],
) -> CountryRolloutPolicy:
    """
    Look up the rollout policy for a country.

    Args:
        country_code: ISO country code, case-insensitive
        policies: Stored policies keyed by upper-case country code

    Returns:
        The stored policy, or a not-configured policy with everything disabled
    """
    code = (country_code or "").upper()
    policy = policies.get(code)
    if policy is None:
        logger.debug("No rollout policy configured for country %s", code or "<none>")
        return CountryRolloutPolicy.not_configured(code)
    return policy


def _country_unavailable(policy: CountryRolloutPolicy) -> RolloutCheck:
    if not policy.configured:
        message = f"PlanGate is not available in {policy.country_code or 'this country'} yet"
    elif policy.status == CountryStatus.MAINTENANCE:
        message = f"{policy.country_code} is temporarily unavailable for maintenance"
    elif policy.status == CountryStatus.COMING_SOON:
        message = f"{policy.country_code} is coming soon"
    else:
        message = f"PlanGate is not available in {policy.country_code}"
    return RolloutCheck(allowed=False, code=RolloutRejection.COUNTRY_NOT_AVAILABLE, message=message)


def validate_signup(policy: CountryRolloutPolicy, business_type: Optional[str] = None) -> RolloutCheck:
    """Check whether a new tenant of a business type may register in a country."""
    if not policy.is_available:
        return _country_unavailable(policy)
    if not policy.registration_enabled:
        return RolloutCheck(
            allowed=False,
            code=RolloutRejection.COUNTRY_SIGNUP_DISABLED,
            message=f"New registrations are paused in {policy.country_code}",
        )
    if business_type and not policy.is_business_type_allowed(business_type):
        return RolloutCheck(
            allowed=False,
            code=RolloutRejection.BUSINESS_NOT_AVAILABLE_IN_COUNTRY,
            message=f"Business type '{business_type}' is not available in {policy.country_code}",
        )
    return RolloutCheck(allowed=True)


def validate_billing(policy: CountryRolloutPolicy) -> RolloutCheck:
    """Check whether paid subscriptions can be purchased in a country."""
    if not policy.is_available:
        return _country_unavailable(policy)
    if not policy.billing_enabled:
        return RolloutCheck(
            allowed=False,
            code=RolloutRejection.COUNTRY_BILLING_DISABLED,
            message=f"Billing is not yet enabled in {policy.country_code}",
        )
    return RolloutCheck(allowed=True)


def validate_addon_access(
    policy: CountryRolloutPolicy,
    addon_key: str,
    tenant_id: Optional[str] = None,
) -> RolloutCheck:
    """Check whether a tenant may enable an add-on in its country."""
    if not policy.is_addon_enabled(addon_key):
        return RolloutCheck(
            allowed=False,
            code=RolloutRejection.ADDON_NOT_ENABLED,
            message=f"Add-on '{addon_key}' is not enabled in {policy.country_code or 'this country'}",
        )

    access = policy.resolve_addon_sub_policy_status(addon_key, tenant_id)
    if access.has_access:
        return RolloutCheck(allowed=True, is_beta=access.is_beta, disclaimer=access.disclaimer)
    if access.is_beta:
        return RolloutCheck(
            allowed=False,
            code=RolloutRejection.TENANT_NOT_IN_COHORT,
            message=f"Add-on '{addon_key}' is in beta and not yet available for this account",
            is_beta=True,
            disclaimer=access.disclaimer,
        )
    return RolloutCheck(
        allowed=False,
        code=RolloutRejection.ADDON_DISABLED,
        message=f"Add-on '{addon_key}' is disabled in {policy.country_code}",
    )
