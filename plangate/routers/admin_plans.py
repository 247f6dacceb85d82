"""
PlanGate - Admin Plans Router

Plan listing and validation of plan definitions before they are saved by
the admin console.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from plangate.config.catalog_config import get_tier_display_name
from plangate.dependencies import get_plan_store
from plangate.schemas.plan import (
    PlanSummaryResponse,
    PlanValidationRequest,
    PlanValidationResponse,
)
from plangate.services.plan_validator import validate_plan
from plangate.services.stores import PlanStore, serialize_limits


router = APIRouter(prefix="/admin/plans", tags=["Admin Plans"])


@router.get("", response_model=List[PlanSummaryResponse])
async def list_plans(
    country_code: str = Query(..., min_length=2, max_length=2),
    plan_store: PlanStore = Depends(get_plan_store),
):
    """List active plans for a country in display order."""
    plans = await plan_store.list_for_country(country_code)
    return [
        PlanSummaryResponse(
            code=plan.code,
            name=plan.name,
            tier=plan.tier.value,
            tier_display_name=get_tier_display_name(plan.tier),
            country_code=plan.country_code,
            currency_code=plan.currency_code,
            base_price=float(plan.base_price),
            enabled_cycles=[cycle.value for cycle in plan.enabled_cycles()],
            feature_flags=dict(plan.feature_flags),
            limits=serialize_limits(plan.limits),
            is_recommended=plan.is_recommended,
            included_addons=sorted(plan.included_addons),
        )
        for plan in plans
    ]


@router.post("/validate", response_model=PlanValidationResponse)
async def validate_plan_definition(request: PlanValidationRequest):
    """
    Validate a candidate plan.

    Always returns 200: an invalid plan is reported through valid=false and
    the full list of errors, so the console can show every problem at once.
    """
    billing_cycles = None
    if request.billing_cycles is not None:
        billing_cycles = {
            cycle_id: config.model_dump() for cycle_id, config in request.billing_cycles.items()
        }

    result = validate_plan(
        tier=request.tier,
        country_code=request.country_code,
        currency_code=request.currency_code,
        base_price=request.base_price,
        feature_flags=request.feature_flags,
        limits=request.limits,
        is_super_admin_override=request.is_super_admin_override,
        billing_cycles=billing_cycles,
    )
    return PlanValidationResponse(**result.to_dict())
