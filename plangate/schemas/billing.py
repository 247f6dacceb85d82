"""
PlanGate - Billing Schemas

Pydantic schemas for price quotes and savings.
"""

from typing import Optional

from pydantic import BaseModel, Field

from plangate.config.catalog_config import BillingCycle


class QuoteRequest(BaseModel):
    """Schema for requesting a price quote."""
    plan_code: str = Field(..., min_length=1, max_length=64)
    billing_cycle: str = Field(..., description="monthly, quarterly, half_yearly or yearly")
    coupon_code: Optional[str] = Field(None, max_length=64)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)
    tenant_id: Optional[str] = Field(
        None, max_length=64, description="Quoting tenant; automatic offers apply only when set"
    )


class QuoteBreakdownSchema(BaseModel):
    base_price: float
    cycle_price: float
    offer_discount: float
    coupon_discount: float
    discount_description: Optional[str] = None


class SavingsSchema(BaseModel):
    amount: float
    percent: int


class QuoteResponseSchema(BaseModel):
    """Response schema for a price quote."""
    plan_code: str
    billing_cycle: BillingCycle
    cycle_months: int
    currency_code: str
    subtotal: float
    discount: float
    total: float
    breakdown: QuoteBreakdownSchema
    effective_price_per_month: float
    amount_in_minor_units: int
    applied_offer: Optional[str] = None
    applied_coupon: Optional[str] = None
    savings: SavingsSchema
