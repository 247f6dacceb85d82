"""
PlanGate - Plan Validator

Validates candidate plan definitions against the catalog and the country
pricing rules. Validation never raises on bad input: every check appends to
an error list so admin screens can show all problems in one pass.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Union

from plangate.config.catalog_config import (
    BillingCycle,
    COUNTRY_CURRENCY,
    INDIA_ALLOWED_PRICE_POINTS,
    PlanTier,
)
from plangate.services.catalog import CATALOG, Catalog


@dataclass
class ValidationResult:
    """Accumulated validation outcome."""
    valid: bool = True
    errors: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False

    def extend(self, other: "ValidationResult") -> None:
        for message in other.errors:
            self.add_error(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _tier_value(tier: Union[PlanTier, str, None]) -> Optional[str]:
    if isinstance(tier, PlanTier):
        return tier.value
    return tier


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None


# =============================================================================
# FEATURE FLAGS
# =============================================================================

def validate_feature_flags(
    flags: Mapping[str, Any],
    tier: Union[PlanTier, str],
    catalog: Catalog = CATALOG,
) -> ValidationResult:
    """
    Validate feature flags against the catalog.

    Unknown keys produce exactly one error each. On the free tier, features
    marked restricted_on_free must not be enabled.
    """
    result = ValidationResult()
    is_free = _tier_value(tier) == PlanTier.FREE.value

    for key, value in flags.items():
        entry = catalog.feature(key)
        if entry is None:
            result.add_error(f"Unknown feature key: {key}")
            continue
        if not isinstance(value, bool):
            result.add_error(f"Feature '{key}' must be a boolean, got {type(value).__name__}")
            continue
        if is_free and entry.restricted_on_free and value:
            result.add_error(f"Feature '{key}' ({entry.label}) is not available on the free tier")

    return result


# =============================================================================
# LIMITS
# =============================================================================

def validate_limits(
    limits: Mapping[str, Any],
    catalog: Catalog = CATALOG,
) -> ValidationResult:
    """Validate limits: known keys, integer values >= -1."""
    result = ValidationResult()

    for key, value in limits.items():
        if not catalog.has_limit(key):
            result.add_error(f"Unknown limit key: {key}")
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            result.add_error(f"Limit '{key}' must be an integer, got {type(value).__name__}")
            continue
        if value < -1:
            result.add_error(
                f"Limit '{key}' must be -1 (unlimited), 0 (unavailable) or a positive cap, got {value}"
            )

    return result


# =============================================================================
# COUNTRY PRICING
# =============================================================================

def validate_country_pricing(
    country_code: str,
    currency_code: str,
    base_price: Any,
    is_super_admin_override: bool = False,
) -> ValidationResult:
    """
    Validate the country/currency/price combination.

    The currency must match the country's billing currency. India plans must
    use an allowed price point unless a super admin overrides it; the
    override never bypasses the currency check.
    """
    result = ValidationResult()
    country = (country_code or "").upper()
    currency = (currency_code or "").upper()

    expected_currency = COUNTRY_CURRENCY.get(country)
    if expected_currency is None:
        result.add_error(f"Unsupported country: {country_code}")
    elif currency != expected_currency:
        result.add_error(
            f"Currency {currency_code} does not match country {country} (expected {expected_currency})"
        )

    price = _to_decimal(base_price)
    if price is None or not price.is_finite():
        result.add_error(f"Base price must be a number, got {base_price!r}")
        return result
    if price < 0:
        result.add_error(f"Base price cannot be negative: {price}")

    if country == "IN" and not is_super_admin_override and price not in INDIA_ALLOWED_PRICE_POINTS:
        allowed = ", ".join(str(p) for p in sorted(INDIA_ALLOWED_PRICE_POINTS))
        result.add_error(
            f"India plans must be priced at one of {{{allowed}}}; got {price}. "
            "A super admin override is required for other price points"
        )

    return result


def validate_billing_cycles(billing_cycles: Mapping[str, Any]) -> ValidationResult:
    """Validate a raw billing-cycle mapping of cycle id -> {price, enabled}."""
    result = ValidationResult()
    valid_cycles = {cycle.value for cycle in BillingCycle}

    for cycle_id, config in billing_cycles.items():
        cycle_key = cycle_id.value if isinstance(cycle_id, BillingCycle) else cycle_id
        if cycle_key not in valid_cycles:
            result.add_error(f"Unknown billing cycle: {cycle_id}")
            continue
        price = _to_decimal(config.get("price") if isinstance(config, Mapping) else None)
        if price is None or not price.is_finite():
            result.add_error(f"Billing cycle '{cycle_key}' must have a numeric price")
        elif price < 0:
            result.add_error(f"Billing cycle '{cycle_key}' price cannot be negative: {price}")

    return result


# =============================================================================
# FULL PLAN
# =============================================================================

def validate_plan(
    tier: Union[PlanTier, str],
    country_code: str,
    currency_code: str,
    base_price: Any,
    feature_flags: Optional[Mapping[str, Any]] = None,
    limits: Optional[Mapping[str, Any]] = None,
    is_super_admin_override: bool = False,
    billing_cycles: Optional[Mapping[str, Any]] = None,
    catalog: Catalog = CATALOG,
) -> ValidationResult:
    """
    Validate a complete plan definition.

    Runs every check and accumulates all errors; never short-circuits.

    Returns:
        ValidationResult with valid=False if any check failed
    """
    result = ValidationResult()

    if _tier_value(tier) not in {t.value for t in PlanTier}:
        result.add_error(f"Unknown plan tier: {tier}")

    result.extend(
        validate_country_pricing(country_code, currency_code, base_price, is_super_admin_override)
    )
    if feature_flags is not None:
        result.extend(validate_feature_flags(feature_flags, tier, catalog))
    if limits is not None:
        result.extend(validate_limits(limits, catalog))
    if billing_cycles is not None:
        result.extend(validate_billing_cycles(billing_cycles))

    return result
