"""
PlanGate - Add-ons Router

Tenant add-on enablement and lifecycle events (payment webhooks, sweeps,
cancellation).
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, status

from plangate.config.catalog_config import get_currency_for_country
from plangate.config.settings import settings
from plangate.dependencies import (
    get_addon_config_store,
    get_addon_subscription_store,
    get_country_policy_store,
    get_plan_store,
)
from plangate.schemas.addon import (
    AddonEnableRequest,
    AddonEventRequest,
    AddonSubscriptionResponse,
)
from plangate.services.addon_lifecycle import (
    AddonSubscription,
    allowed_events,
    days_until_grace_end,
    days_until_trial_end,
    is_terminal,
    is_trial_eligible,
    recommend_pricing_tier,
    start_subscription,
    sweep,
    transition,
)
from plangate.services.rollout_policy import CountryRolloutPolicy, validate_addon_access
from plangate.services.stores import (
    AddonConfigStore,
    AddonSubscriptionStore,
    CountryPolicyStore,
    PlanStore,
)
from plangate.utils.error_handling import (
    ConflictException,
    NotFoundException,
    PlanNotFoundException,
    RolloutDeniedException,
    SubscriptionNotFoundException,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/addons", tags=["Add-ons"])


def _to_response(
    subscription: AddonSubscription,
    now: datetime,
    disclaimer: Optional[str] = None,
) -> AddonSubscriptionResponse:
    return AddonSubscriptionResponse(
        tenant_id=subscription.tenant_id,
        addon_id=subscription.addon_id,
        status=subscription.status.value,
        addon_tier=subscription.addon_tier,
        employee_count=subscription.employee_count,
        monthly_amount=float(subscription.monthly_amount),
        currency_code=subscription.currency_code,
        trial_ends_at=subscription.trial_ends_at,
        activated_at=subscription.activated_at,
        grace_period_ends_at=subscription.grace_period_ends_at,
        cancelled_at=subscription.cancelled_at,
        days_until_trial_end=days_until_trial_end(subscription, now),
        days_until_grace_end=days_until_grace_end(subscription, now),
        allowed_events=[event.value for event in allowed_events(subscription)],
        disclaimer=disclaimer,
    )


@router.post(
    "/{tenant_id}/{addon_id}/enable",
    response_model=AddonSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enable_addon(
    tenant_id: str,
    addon_id: str,
    request: AddonEnableRequest,
    plan_store: PlanStore = Depends(get_plan_store),
    policy_store: CountryPolicyStore = Depends(get_country_policy_store),
    config_store: AddonConfigStore = Depends(get_addon_config_store),
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """
    Enable an add-on for a tenant.

    Starts a trial when the country configures one and the tenant is
    eligible, otherwise the subscription starts active pending payment.
    """
    now = datetime.now(timezone.utc)
    country = request.country_code.upper()

    policy = await policy_store.get(country) or CountryRolloutPolicy.not_configured(country)
    access = validate_addon_access(policy, addon_id, tenant_id)
    if not access.allowed:
        raise RolloutDeniedException(access.code.value, access.message, access.disclaimer)

    plan = await plan_store.get_by_code(request.plan_code)
    if plan is None:
        raise PlanNotFoundException(request.plan_code)

    config = await config_store.get(addon_id, country)
    if config is None or not config.is_live:
        raise NotFoundException("AddonCountryConfig", f"{addon_id}/{country}")

    existing = await subscription_store.get(tenant_id, addon_id)
    if existing is not None and not is_terminal(existing):
        raise ConflictException(
            f"Add-on '{addon_id}' is already {existing.status.value} for this tenant",
            resource_type="AddonSubscription",
        )

    if request.pricing_tier_id:
        pricing_tier = config.tier(request.pricing_tier_id)
        if pricing_tier is None:
            raise NotFoundException("PricingTier", request.pricing_tier_id)
    else:
        pricing_tier = recommend_pricing_tier(config, request.employee_count) or config.default_tier()

    trial_used = existing.trial_used if existing is not None else False
    subscription = start_subscription(
        tenant_id=tenant_id,
        addon_id=addon_id,
        now=now,
        trial_days=config.trial_days,
        addon_tier=pricing_tier.id if pricing_tier else None,
        employee_count=request.employee_count,
        monthly_amount=pricing_tier.price if pricing_tier else Decimal("0"),
        currency_code=pricing_tier.currency if pricing_tier else get_currency_for_country(country),
        trial_eligible=is_trial_eligible(plan.tier, trial_used),
        trial_used=trial_used,
    )
    saved = await subscription_store.save(subscription)
    logger.info("Tenant %s enabled add-on %s in %s", tenant_id, addon_id, saved.status.value)
    return _to_response(saved, now, access.disclaimer)


@router.get("/{tenant_id}/{addon_id}", response_model=AddonSubscriptionResponse)
async def get_addon_subscription(
    tenant_id: str,
    addon_id: str,
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """Get a tenant's add-on subscription with its derived views."""
    subscription = await subscription_store.get(tenant_id, addon_id)
    if subscription is None:
        raise SubscriptionNotFoundException(tenant_id, addon_id)
    return _to_response(subscription, datetime.now(timezone.utc))


@router.post("/{tenant_id}/{addon_id}/events", response_model=AddonSubscriptionResponse)
async def apply_addon_event(
    tenant_id: str,
    addon_id: str,
    request: AddonEventRequest,
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """
    Apply a lifecycle event to a tenant's add-on subscription.

    Illegal events for the current status are rejected with 409.
    """
    subscription = await subscription_store.get(tenant_id, addon_id)
    if subscription is None:
        raise SubscriptionNotFoundException(tenant_id, addon_id)

    now = request.occurred_at or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    updated = transition(
        subscription,
        request.event,
        now,
        grace_period_days=settings.addon_grace_period_days,
    )
    saved = await subscription_store.save(updated)
    return _to_response(saved, now)


@router.post("/{tenant_id}/{addon_id}/sweep", response_model=AddonSubscriptionResponse)
async def sweep_addon_subscription(
    tenant_id: str,
    addon_id: str,
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """Expire an elapsed trial or grace window; a no-op otherwise."""
    subscription = await subscription_store.get(tenant_id, addon_id)
    if subscription is None:
        raise SubscriptionNotFoundException(tenant_id, addon_id)

    now = datetime.now(timezone.utc)
    updated = sweep(subscription, now)
    if updated is not subscription:
        subscription = await subscription_store.save(updated)
    return _to_response(subscription, now)
