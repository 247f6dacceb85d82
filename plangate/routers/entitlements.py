"""
PlanGate - Entitlements Router

Resolves a tenant's effective features and limits and diffs plan changes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from plangate.config.settings import settings
from plangate.dependencies import (
    get_addon_subscription_store,
    get_country_policy_store,
    get_plan_store,
)
from plangate.schemas.entitlement import (
    EntitlementResponse,
    PlanDiffRequest,
    PlanDiffResponse,
)
from plangate.services.entitlement_resolver import ResolvedEntitlement, resolve_entitlement
from plangate.services.limit_values import LimitValue
from plangate.services.plan_diff import diff_entitlements, diff_plan_change
from plangate.services.stores import (
    AddonSubscriptionStore,
    CountryPolicyStore,
    PlanStore,
)
from plangate.utils.error_handling import PlanNotFoundException, ValidationException


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/entitlements", tags=["Entitlements"])


def _snapshot_to_entitlement(features, limits) -> ResolvedEntitlement:
    try:
        parsed = {key: LimitValue.from_wire(value) for key, value in limits.items()}
    except (TypeError, ValueError) as exc:
        raise ValidationException(str(exc), field="limits")
    return ResolvedEntitlement(features=features, limits=parsed)


@router.get("/{tenant_id}", response_model=EntitlementResponse)
async def get_tenant_entitlement(
    tenant_id: str,
    plan_code: str = Query(..., description="The tenant's current plan"),
    country_code: Optional[str] = Query(None, min_length=2, max_length=2),
    plan_store: PlanStore = Depends(get_plan_store),
    policy_store: CountryPolicyStore = Depends(get_country_policy_store),
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """
    Resolve the effective entitlement for a tenant.

    An unknown plan or unconfigured country resolves to the most
    restrictive entitlement rather than an error.
    """
    plan = await plan_store.get_by_code(plan_code)
    if plan is None:
        logger.warning("Resolving entitlement for tenant %s with unknown plan %s", tenant_id, plan_code)

    country = (country_code or (plan.country_code if plan else settings.default_country_code)).upper()
    policy = await policy_store.get(country)
    subscriptions = await subscription_store.list_for_tenant(tenant_id)

    entitlement = resolve_entitlement(plan, policy, subscriptions, tenant_id=tenant_id)
    return EntitlementResponse(
        tenant_id=tenant_id,
        plan_code=plan_code,
        country_code=country,
        **entitlement.to_dict(),
    )


@router.post("/diff", response_model=PlanDiffResponse)
async def diff_entitlement_change(
    request: PlanDiffRequest,
    plan_store: PlanStore = Depends(get_plan_store),
    policy_store: CountryPolicyStore = Depends(get_country_policy_store),
    subscription_store: AddonSubscriptionStore = Depends(get_addon_subscription_store),
):
    """
    Report lost/gained features and reduced/increased limits for a plan change.
    """
    current = _snapshot_to_entitlement(request.current.features, request.current.limits)

    if request.target is not None:
        target = _snapshot_to_entitlement(request.target.features, request.target.limits)
    elif request.target_plan_code:
        plan = await plan_store.get_by_code(request.target_plan_code)
        if plan is None:
            raise PlanNotFoundException(request.target_plan_code)
        country = (request.country_code or plan.country_code).upper()
        policy = await policy_store.get(country)
        subscriptions = []
        if request.tenant_id:
            subscriptions = await subscription_store.list_for_tenant(request.tenant_id)
        plan_diff = diff_plan_change(current, plan, policy, subscriptions, request.tenant_id)
        return PlanDiffResponse(**plan_diff.to_dict())
    else:
        raise ValidationException(
            "Either target or target_plan_code is required",
            field="target_plan_code",
        )

    return PlanDiffResponse(**diff_entitlements(current, target).to_dict())
