"""
PlanGate - Plan Schemas

Pydantic schemas for plan validation requests.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class BillingCycleConfigSchema(BaseModel):
    """Price and availability of one billing cycle."""
    price: Decimal = Field(..., description="Cycle price in major units")
    enabled: bool = True
    badge: Optional[str] = Field(None, max_length=50)


class PlanValidationRequest(BaseModel):
    """Schema for validating a candidate plan definition."""
    tier: str = Field(..., description="free, starter, basic, pro or enterprise")
    country_code: str = Field(..., min_length=2, max_length=2)
    currency_code: str = Field(..., min_length=3, max_length=3)
    base_price: Decimal
    # Values are checked by the validator, not coerced here
    feature_flags: Optional[Dict[str, Any]] = None
    limits: Optional[Dict[str, Any]] = None
    billing_cycles: Optional[Dict[str, BillingCycleConfigSchema]] = None
    is_super_admin_override: bool = False


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class PlanValidationResponse(BaseModel):
    """Accumulated validation outcome."""
    valid: bool
    errors: List[str]


class PlanSummaryResponse(BaseModel):
    """A plan as listed in the admin console."""
    code: str
    name: str
    tier: str
    tier_display_name: str
    country_code: str
    currency_code: str
    base_price: float
    enabled_cycles: List[str]
    feature_flags: Dict[str, bool]
    limits: Dict[str, int]
    is_recommended: bool
    included_addons: List[str]
