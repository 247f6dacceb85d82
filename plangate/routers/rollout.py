"""
PlanGate - Rollout Router

Country availability checks for signup, billing and add-ons.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from plangate.dependencies import get_country_policy_store
from plangate.schemas.rollout import RolloutCheckResponse
from plangate.services.rollout_policy import (
    resolve_rollout_policy,
    validate_addon_access,
    validate_billing,
    validate_signup,
)
from plangate.services.stores import CountryPolicyStore


router = APIRouter(prefix="/rollout", tags=["Rollout"])


@router.get("/{country_code}/signup", response_model=RolloutCheckResponse)
async def check_signup(
    country_code: str,
    business_type: Optional[str] = Query(None, max_length=64),
    store: CountryPolicyStore = Depends(get_country_policy_store),
):
    """Check whether a business of the given type may register in a country."""
    policy = resolve_rollout_policy(country_code, await store.list_all())
    result = validate_signup(policy, business_type)
    return RolloutCheckResponse(country_code=policy.country_code, **result.to_dict())


@router.get("/{country_code}/billing", response_model=RolloutCheckResponse)
async def check_billing(
    country_code: str,
    store: CountryPolicyStore = Depends(get_country_policy_store),
):
    """Check whether paid plans can be purchased in a country."""
    policy = resolve_rollout_policy(country_code, await store.list_all())
    result = validate_billing(policy)
    return RolloutCheckResponse(country_code=policy.country_code, **result.to_dict())


@router.get("/{country_code}/addons/{addon_key}", response_model=RolloutCheckResponse)
async def check_addon(
    country_code: str,
    addon_key: str,
    tenant_id: Optional[str] = Query(None),
    store: CountryPolicyStore = Depends(get_country_policy_store),
):
    """Check whether a tenant may enable an add-on, including beta cohort gating."""
    policy = resolve_rollout_policy(country_code, await store.list_all())
    result = validate_addon_access(policy, addon_key, tenant_id)
    return RolloutCheckResponse(country_code=policy.country_code, **result.to_dict())
