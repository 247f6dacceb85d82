"""
PlanGate - Quote Calculator

Computes the price a tenant pays for a plan on a billing cycle, after the
best automatic offer and an optional coupon.

Structural request errors (unknown plan, unknown or disabled cycle) raise
QuoteRequestError subclasses. A coupon the customer can fix or drop raises
CouponRejectedError instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from plangate.config.catalog_config import (
    BillingCycle,
    OfferType,
    format_money,
    get_currency_for_country,
    get_cycle_months,
)
from plangate.services.records import Plan, Promotion

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


# =============================================================================
# ERRORS
# =============================================================================

class QuoteRequestError(Exception):
    """A structurally invalid quote request (a caller error)."""


class UnknownPlanError(QuoteRequestError):
    def __init__(self, plan_code: str):
        self.plan_code = plan_code
        super().__init__(f"Unknown plan: {plan_code}")


class UnknownBillingCycleError(QuoteRequestError):
    def __init__(self, billing_cycle: str):
        self.billing_cycle = billing_cycle
        super().__init__(f"Unknown billing cycle: {billing_cycle}")


class CycleUnavailableError(QuoteRequestError):
    def __init__(self, plan_code: str, billing_cycle: BillingCycle):
        self.plan_code = plan_code
        self.billing_cycle = billing_cycle
        super().__init__(f"Billing cycle '{billing_cycle.value}' is not available for plan {plan_code}")


class CouponRejectedError(Exception):
    """The coupon cannot be applied to this request; the customer can correct it."""

    def __init__(self, code: str, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(f"Coupon {code} cannot be applied: {reason}")


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class QuoteResponse:
    """Derived price quote; never persisted."""
    plan_code: str
    billing_cycle: BillingCycle
    cycle_months: int
    currency_code: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    base_price: Decimal
    cycle_price: Decimal
    offer_discount: Decimal
    coupon_discount: Decimal
    discount_description: Optional[str]
    effective_price_per_month: Decimal
    amount_in_minor_units: int
    applied_offer: Optional[str] = None
    applied_coupon: Optional[str] = None
    savings: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_code": self.plan_code,
            "billing_cycle": self.billing_cycle.value,
            "cycle_months": self.cycle_months,
            "currency_code": self.currency_code,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "breakdown": {
                "base_price": self.base_price,
                "cycle_price": self.cycle_price,
                "offer_discount": self.offer_discount,
                "coupon_discount": self.coupon_discount,
                "discount_description": self.discount_description,
            },
            "effective_price_per_month": self.effective_price_per_month,
            "amount_in_minor_units": self.amount_in_minor_units,
            "applied_offer": self.applied_offer,
            "applied_coupon": self.applied_coupon,
            "savings": dict(self.savings),
        }


# =============================================================================
# DISCOUNTS
# =============================================================================

def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_billing_cycle(billing_cycle: Union[BillingCycle, str]) -> BillingCycle:
    try:
        return BillingCycle(billing_cycle)
    except ValueError:
        raise UnknownBillingCycleError(str(billing_cycle)) from None


def calculate_discount(promotion: Promotion, amount: Decimal) -> Decimal:
    """
    Discount a promotion gives on an amount.

    PERCENT: amount * value / 100, rounded half-up to cents.
    FLAT: value, capped at the amount.
    A non-positive value gives no discount.
    """
    value = Decimal(str(promotion.value))
    if amount <= 0 or value <= 0:
        return ZERO.quantize(CENT)
    if promotion.type == OfferType.PERCENT:
        return _money(amount * value / Decimal("100")).min(amount)
    return _money(min(value, amount))


def _describe(promotion: Promotion, currency_code: str) -> str:
    if promotion.type == OfferType.PERCENT:
        amount = f"{Decimal(str(promotion.value)).normalize():f}% off"
    else:
        amount = f"{format_money(_money(promotion.value), currency_code)} off"
    label = promotion.code or promotion.name
    return f"{label} ({amount})"


def select_best_offer(
    promotions: Iterable[Promotion],
    plan_code: str,
    billing_cycle: Union[BillingCycle, str],
    country_code: Optional[str],
    now: datetime,
    subtotal: Decimal,
    tenant_redemptions: Optional[Mapping[str, int]] = None,
) -> Optional[Promotion]:
    """
    Pick the automatic offer (no coupon code) giving the largest discount.

    Only redeemable offers scoped to the plan, cycle and country qualify.
    Offers the tenant has used up (per tenant_redemptions, keyed by
    promotion id) are skipped. Ties keep the first offer in input order.
    """
    cycle = parse_billing_cycle(billing_cycle)
    used = tenant_redemptions or {}
    best = None
    best_discount = ZERO
    for promotion in promotions:
        if promotion.is_coupon or not promotion.is_redeemable(now, used.get(promotion.id, 0)):
            continue
        if not (
            promotion.applies_to_plan(plan_code)
            and promotion.applies_to_cycle(cycle)
            and promotion.applies_to_country(country_code)
        ):
            continue
        discount = calculate_discount(promotion, subtotal)
        if best is None or discount > best_discount:
            best = promotion
            best_discount = discount
    return best


def find_coupon(promotions: Iterable[Promotion], code: str) -> Optional[Promotion]:
    """Find a coupon by code, case-insensitively."""
    wanted = code.strip().upper()
    for promotion in promotions:
        if promotion.is_coupon and promotion.code.upper() == wanted:
            return promotion
    return None


def check_coupon_scope(
    coupon: Promotion,
    plan_code: str,
    billing_cycle: BillingCycle,
    country_code: Optional[str],
    now: datetime,
    tenant_redemptions: int = 0,
) -> None:
    """
    Raise CouponRejectedError if the coupon cannot be used for this request.
    """
    code = coupon.code or coupon.id
    if coupon.per_tenant_limit is not None and tenant_redemptions >= coupon.per_tenant_limit:
        raise CouponRejectedError(code, "coupon has already been used by this tenant")
    if not coupon.is_redeemable(now):
        raise CouponRejectedError(code, "coupon is expired or no longer available")
    if not coupon.applies_to_country(country_code):
        raise CouponRejectedError(code, f"coupon is not valid in {country_code or 'this country'}")
    if not coupon.applies_to_plan(plan_code):
        raise CouponRejectedError(code, f"coupon is not valid for plan {plan_code}")
    if not coupon.applies_to_cycle(billing_cycle):
        raise CouponRejectedError(code, f"coupon is not valid for {billing_cycle.value} billing")


# =============================================================================
# SAVINGS
# =============================================================================

def calculate_savings(monthly_price: Any, cycle_price: Any, cycle_months: int) -> Dict[str, Any]:
    """
    Compare a cycle price with paying monthly for the same period.

    Returns:
        {"amount": Decimal, "percent": int}; both 0 when the cycle is not cheaper
    """
    monthly = Decimal(str(monthly_price))
    actual = Decimal(str(cycle_price))
    expected = monthly * cycle_months
    saved = expected - actual
    if expected <= 0 or saved <= 0:
        return {"amount": ZERO.quantize(CENT), "percent": 0}
    percent = (saved / expected * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return {"amount": _money(saved), "percent": int(percent)}


# =============================================================================
# QUOTE
# =============================================================================

def compute_quote(
    plan: Optional[Plan],
    billing_cycle: Union[BillingCycle, str],
    coupon: Optional[Promotion] = None,
    offer: Optional[Promotion] = None,
    country_code: Optional[str] = None,
    now: Optional[datetime] = None,
    tenant_redemptions: Optional[Mapping[str, int]] = None,
) -> QuoteResponse:
    """
    Compute a quote for a plan on a billing cycle.

    The offer is applied first; the coupon is applied to the post-offer
    subtotal. The total never goes below zero. An offer that is not
    redeemable, or is scoped away from the plan, cycle or country, is skipped.

    Raises:
        UnknownPlanError: plan is None
        UnknownBillingCycleError: billing_cycle is not a known cycle
        CycleUnavailableError: the plan does not sell this cycle
        CouponRejectedError: the coupon is out of scope or not redeemable
    """
    if plan is None:
        raise UnknownPlanError("<none>")

    cycle = parse_billing_cycle(billing_cycle)
    config = plan.cycle_config(cycle)
    if config is None or not config.enabled:
        raise CycleUnavailableError(plan.code, cycle)

    now = now or datetime.now(timezone.utc)
    country = country_code or plan.country_code
    currency_code = plan.currency_code or get_currency_for_country(country)
    months = get_cycle_months(cycle)

    cycle_price = _money(config.price)
    subtotal = cycle_price

    offer_discount = ZERO.quantize(CENT)
    applied_offer = None
    descriptions = []
    used = tenant_redemptions or {}
    if offer is not None:
        if not offer.is_redeemable(now, used.get(offer.id, 0)):
            logger.debug("Offer %s is not redeemable at %s; skipped", offer.id, now.isoformat())
        elif not offer.applies_to_country(country):
            logger.debug("Offer %s is not valid in %s; skipped", offer.id, country)
        elif offer.applies_to_plan(plan.code) and offer.applies_to_cycle(cycle):
            offer_discount = calculate_discount(offer, subtotal)
            applied_offer = offer.id
            descriptions.append(_describe(offer, currency_code))
        else:
            logger.debug("Offer %s does not apply to %s/%s; skipped", offer.id, plan.code, cycle.value)

    coupon_discount = ZERO.quantize(CENT)
    applied_coupon = None
    if coupon is not None:
        check_coupon_scope(coupon, plan.code, cycle, country, now, used.get(coupon.id, 0))
        coupon_discount = calculate_discount(coupon, subtotal - offer_discount)
        applied_coupon = coupon.code
        descriptions.append(_describe(coupon, currency_code))

    discount = offer_discount + coupon_discount
    total = max(ZERO, subtotal - discount).quantize(CENT)

    # Savings are measured against the monthly price, or the base price when
    # the plan has no priced monthly cycle.
    monthly_config = plan.cycle_config(BillingCycle.MONTHLY)
    if monthly_config is not None and monthly_config.price > 0:
        monthly_price = monthly_config.price
    else:
        monthly_price = plan.base_price
    if cycle != BillingCycle.MONTHLY and monthly_price > 0:
        savings = calculate_savings(monthly_price, cycle_price, months)
    else:
        savings = {"amount": ZERO.quantize(CENT), "percent": 0}

    return QuoteResponse(
        plan_code=plan.code,
        billing_cycle=cycle,
        cycle_months=months,
        currency_code=currency_code,
        subtotal=subtotal,
        discount=discount,
        total=total,
        base_price=_money(plan.base_price),
        cycle_price=cycle_price,
        offer_discount=offer_discount,
        coupon_discount=coupon_discount,
        discount_description=" + ".join(descriptions) or None,
        effective_price_per_month=(total / months).quantize(CENT, rounding=ROUND_HALF_UP),
        amount_in_minor_units=int((total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        applied_offer=applied_offer,
        applied_coupon=applied_coupon,
        savings=savings,
    )
