"""
PlanGate - Billing Router

Price quotes with automatic offers and coupons, and cycle savings.
"""

from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from plangate.config.catalog_config import get_cycle_months
from plangate.dependencies import (
    get_country_policy_store,
    get_plan_store,
    get_promotion_store,
)
from plangate.schemas.billing import QuoteRequest, QuoteResponseSchema, SavingsSchema
from plangate.services.quote_calculator import (
    CouponRejectedError,
    UnknownPlanError,
    calculate_savings,
    compute_quote,
    find_coupon,
    parse_billing_cycle,
    select_best_offer,
)
from plangate.services.rollout_policy import CountryRolloutPolicy, validate_billing
from plangate.services.stores import CountryPolicyStore, PlanStore, PromotionStore
from plangate.utils.error_handling import RolloutDeniedException


router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/quote", response_model=QuoteResponseSchema)
async def create_quote(
    request: QuoteRequest,
    plan_store: PlanStore = Depends(get_plan_store),
    policy_store: CountryPolicyStore = Depends(get_country_policy_store),
    promotion_store: PromotionStore = Depends(get_promotion_store),
):
    """
    Compute the price for a plan on a billing cycle.

    For an identified tenant the best automatic offer is applied first,
    then the coupon (if any). Anonymous quotes get the coupon only.
    """
    plan = await plan_store.get_by_code(request.plan_code)
    if plan is None:
        raise UnknownPlanError(request.plan_code)

    cycle = parse_billing_cycle(request.billing_cycle)
    country = (request.country_code or plan.country_code).upper()

    policy = await policy_store.get(country) or CountryRolloutPolicy.not_configured(country)
    billing_check = validate_billing(policy)
    if not billing_check.allowed:
        raise RolloutDeniedException(billing_check.code.value, billing_check.message)

    now = datetime.now(timezone.utc)
    promotions = await promotion_store.list_for(plan.code)

    coupon = None
    if request.coupon_code:
        coupon = find_coupon(promotions, request.coupon_code)
        if coupon is None:
            raise CouponRejectedError(request.coupon_code, "coupon code not recognised")

    offer = None
    redemptions = {}
    if request.tenant_id:
        redemptions = await promotion_store.redemption_counts(request.tenant_id)
        base_config = plan.cycle_config(cycle)
        subtotal = base_config.price if base_config is not None else Decimal("0")
        offer = select_best_offer(
            promotions, plan.code, cycle, country, now, subtotal, tenant_redemptions=redemptions
        )

    quote = compute_quote(
        plan,
        cycle,
        coupon=coupon,
        offer=offer,
        country_code=country,
        now=now,
        tenant_redemptions=redemptions,
    )
    return QuoteResponseSchema(**quote.to_dict())


@router.get("/savings", response_model=SavingsSchema)
async def get_cycle_savings(
    monthly_price: Decimal = Query(..., ge=0),
    cycle_price: Decimal = Query(..., ge=0),
    billing_cycle: str = Query("yearly"),
):
    """Compare a cycle price with paying monthly for the same period."""
    cycle = parse_billing_cycle(billing_cycle)
    return SavingsSchema(**calculate_savings(monthly_price, cycle_price, get_cycle_months(cycle)))
