"""
PlanGate - Add-on Subscription Lifecycle

State machine for per-tenant add-on subscriptions (e.g. payroll):

    trial  -> active     payment succeeded
    trial  -> expired    trial window elapsed without activation
    active -> grace      payment failed
    grace  -> active     payment recovered
    grace  -> expired    grace window elapsed unresolved
    any non-terminal -> cancelled

cancelled and expired are terminal. Transitions are driven externally by
payment webhooks and scheduled sweeps; this module only defines the legal
transitions and read-only views. Subscriptions are immutable: every
transition returns a new record.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from plangate.config.catalog_config import (
    AddonSubscriptionStatus,
    DEFAULT_GRACE_PERIOD_DAYS,
    PlanTier,
)
from plangate.services.records import AddonCountryConfig, PricingTier

logger = logging.getLogger(__name__)


class AddonEvent(str, Enum):
    """External events that drive add-on subscription transitions."""
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    TRIAL_EXPIRED = "trial_expired"
    GRACE_EXPIRED = "grace_expired"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: FrozenSet[AddonSubscriptionStatus] = frozenset({
    AddonSubscriptionStatus.CANCELLED,
    AddonSubscriptionStatus.EXPIRED,
})

# Statuses in which the add-on's entitlements are usable; grace is payment-overdue but functional
ENTITLED_STATUSES: FrozenSet[AddonSubscriptionStatus] = frozenset({
    AddonSubscriptionStatus.TRIAL,
    AddonSubscriptionStatus.ACTIVE,
    AddonSubscriptionStatus.GRACE,
})

TRANSITIONS: Dict[Tuple[AddonSubscriptionStatus, AddonEvent], AddonSubscriptionStatus] = {
    (AddonSubscriptionStatus.TRIAL, AddonEvent.PAYMENT_SUCCEEDED): AddonSubscriptionStatus.ACTIVE,
    (AddonSubscriptionStatus.TRIAL, AddonEvent.TRIAL_EXPIRED): AddonSubscriptionStatus.EXPIRED,
    (AddonSubscriptionStatus.TRIAL, AddonEvent.CANCELLED): AddonSubscriptionStatus.CANCELLED,
    (AddonSubscriptionStatus.ACTIVE, AddonEvent.PAYMENT_FAILED): AddonSubscriptionStatus.GRACE,
    (AddonSubscriptionStatus.ACTIVE, AddonEvent.CANCELLED): AddonSubscriptionStatus.CANCELLED,
    (AddonSubscriptionStatus.GRACE, AddonEvent.PAYMENT_SUCCEEDED): AddonSubscriptionStatus.ACTIVE,
    (AddonSubscriptionStatus.GRACE, AddonEvent.GRACE_EXPIRED): AddonSubscriptionStatus.EXPIRED,
    (AddonSubscriptionStatus.GRACE, AddonEvent.CANCELLED): AddonSubscriptionStatus.CANCELLED,
}


class IllegalTransitionError(Exception):
    """Raised when an event is not valid for a subscription's current status."""

    def __init__(self, status: AddonSubscriptionStatus, event: AddonEvent):
        self.status = status
        self.event = event
        super().__init__(f"Cannot apply {event.value} to a subscription in {status.value}")


@dataclass(frozen=True)
class AddonSubscription:
    """A tenant's subscription to one add-on."""
    tenant_id: str
    addon_id: str
    status: AddonSubscriptionStatus
    addon_tier: Optional[str] = None
    employee_count: int = 0
    monthly_amount: Decimal = Decimal("0")
    currency_code: str = "USD"
    trial_ends_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    trial_used: bool = False
    id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "addon_id": self.addon_id,
            "status": self.status.value,
            "addon_tier": self.addon_tier,
            "employee_count": self.employee_count,
            "monthly_amount": str(self.monthly_amount),
            "currency_code": self.currency_code,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "grace_period_ends_at": (
                self.grace_period_ends_at.isoformat() if self.grace_period_ends_at else None
            ),
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "trial_used": self.trial_used,
        }


# =============================================================================
# TRANSITIONS
# =============================================================================

def transition(
    subscription: AddonSubscription,
    event: Union[AddonEvent, str],
    now: datetime,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> AddonSubscription:
    """
    Apply an event to a subscription.

    Args:
        subscription: Current snapshot
        event: The external event
        now: Time the event happened
        grace_period_days: Length of the grace window opened by a failed payment

    Returns:
        A new subscription in the target status

    Raises:
        IllegalTransitionError: If the event is not legal from the current status
    """
    event = AddonEvent(event)
    target = TRANSITIONS.get((subscription.status, event))
    if target is None:
        raise IllegalTransitionError(subscription.status, event)

    changes = {"status": target}
    if target == AddonSubscriptionStatus.ACTIVE:
        changes["grace_period_ends_at"] = None
        if subscription.activated_at is None or subscription.status == AddonSubscriptionStatus.TRIAL:
            changes["activated_at"] = now
    elif target == AddonSubscriptionStatus.GRACE:
        changes["grace_period_ends_at"] = now + timedelta(days=grace_period_days)
    elif target == AddonSubscriptionStatus.CANCELLED:
        changes["cancelled_at"] = now

    logger.info(
        "Add-on %s for tenant %s: %s -> %s (%s)",
        subscription.addon_id,
        subscription.tenant_id,
        subscription.status.value,
        target.value,
        event.value,
    )
    return replace(subscription, **changes)


def allowed_events(subscription: AddonSubscription) -> Tuple[AddonEvent, ...]:
    """Events that are legal from the subscription's current status."""
    return tuple(
        event for (status, event) in TRANSITIONS
        if status == subscription.status
    )


def start_subscription(
    tenant_id: str,
    addon_id: str,
    now: datetime,
    trial_days: int = 0,
    addon_tier: Optional[str] = None,
    employee_count: int = 0,
    monthly_amount: Decimal = Decimal("0"),
    currency_code: str = "USD",
    trial_eligible: bool = True,
    trial_used: bool = False,
) -> AddonSubscription:
    """
    Create the subscription for a tenant enabling an add-on.

    Starts in trial when trial days are configured and the tenant is
    eligible, otherwise active pending payment.
    """
    if trial_days > 0 and trial_eligible:
        return AddonSubscription(
            tenant_id=tenant_id,
            addon_id=addon_id,
            status=AddonSubscriptionStatus.TRIAL,
            addon_tier=addon_tier,
            employee_count=employee_count,
            monthly_amount=monthly_amount,
            currency_code=currency_code,
            trial_ends_at=now + timedelta(days=trial_days),
            trial_used=True,
        )
    return AddonSubscription(
        tenant_id=tenant_id,
        addon_id=addon_id,
        status=AddonSubscriptionStatus.ACTIVE,
        addon_tier=addon_tier,
        employee_count=employee_count,
        monthly_amount=monthly_amount,
        currency_code=currency_code,
        activated_at=now,
        trial_used=trial_used,
    )


def sweep(subscription: AddonSubscription, now: datetime) -> AddonSubscription:
    """Expire a trial or grace window that has elapsed; otherwise return unchanged."""
    if (
        subscription.status == AddonSubscriptionStatus.TRIAL
        and subscription.trial_ends_at is not None
        and now >= subscription.trial_ends_at
    ):
        return transition(subscription, AddonEvent.TRIAL_EXPIRED, now)
    if (
        subscription.status == AddonSubscriptionStatus.GRACE
        and subscription.grace_period_ends_at is not None
        and now >= subscription.grace_period_ends_at
    ):
        return transition(subscription, AddonEvent.GRACE_EXPIRED, now)
    return subscription


# =============================================================================
# READ-ONLY VIEWS
# =============================================================================

def is_terminal(subscription: AddonSubscription) -> bool:
    return subscription.status in TERMINAL_STATUSES


def grants_access(subscription: AddonSubscription) -> bool:
    return subscription.status in ENTITLED_STATUSES


def is_in_grace(subscription: AddonSubscription, now: Optional[datetime] = None) -> bool:
    if subscription.status != AddonSubscriptionStatus.GRACE:
        return False
    if now is None or subscription.grace_period_ends_at is None:
        return True
    return now < subscription.grace_period_ends_at


def is_trial_active(subscription: AddonSubscription, now: datetime) -> bool:
    return (
        subscription.status == AddonSubscriptionStatus.TRIAL
        and subscription.trial_ends_at is not None
        and now < subscription.trial_ends_at
    )


def _days_until(deadline: Optional[datetime], now: datetime) -> Optional[int]:
    if deadline is None:
        return None
    seconds = (deadline - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def days_until_trial_end(subscription: AddonSubscription, now: datetime) -> Optional[int]:
    """Whole days left in the trial, rounded up; None outside a trial."""
    if subscription.status != AddonSubscriptionStatus.TRIAL:
        return None
    return _days_until(subscription.trial_ends_at, now)


def days_until_grace_end(subscription: AddonSubscription, now: datetime) -> Optional[int]:
    """Whole days left in the grace window, rounded up; None outside grace."""
    if subscription.status != AddonSubscriptionStatus.GRACE:
        return None
    return _days_until(subscription.grace_period_ends_at, now)


# =============================================================================
# ELIGIBILITY AND PRICING HELPERS
# =============================================================================

def is_trial_eligible(plan_tier: Union[PlanTier, str], trial_used: bool) -> bool:
    """Free-tier tenants and tenants who already used a trial get no add-on trial."""
    if trial_used:
        return False
    return PlanTier(plan_tier) != PlanTier.FREE


def recommend_pricing_tier(config: AddonCountryConfig, employee_count: int) -> Optional[PricingTier]:
    """
    Pick the cheapest tier whose employee cap covers the headcount.

    Tiers with max_employees=-1 cover any headcount. Returns None when no
    tier fits, which callers treat as a custom quote.
    """
    fitting = [
        tier for tier in config.pricing_tiers
        if tier.max_employees == -1 or employee_count <= tier.max_employees
    ]
    if not fitting:
        return None
    return min(fitting, key=lambda tier: tier.price)


def calculate_bundle_price(price: Decimal, discount_type: str, discount_value: Decimal) -> Decimal:
    """
    Apply a bundle discount to an add-on price.

    Args:
        price: Undiscounted price
        discount_type: "percentage" or "fixed"
        discount_value: Percent off or fixed amount off

    Returns:
        Discounted price, never below zero
    """
    if discount_type == "percentage":
        discounted = price - (price * discount_value / Decimal("100"))
    elif discount_type == "fixed":
        discounted = price - discount_value
    else:
        raise ValueError(f"Unknown discount type: {discount_type}")
    return max(Decimal("0"), discounted).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
