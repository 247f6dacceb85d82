"""
PlanGate - Add-on Schemas

Pydantic schemas for add-on enablement and lifecycle events.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from plangate.services.addon_lifecycle import AddonEvent


class AddonEnableRequest(BaseModel):
    """Schema for a tenant enabling an add-on."""
    country_code: str = Field(..., min_length=2, max_length=2)
    plan_code: str = Field(..., min_length=1, max_length=64)
    employee_count: int = Field(0, ge=0)
    pricing_tier_id: Optional[str] = None


class AddonEventRequest(BaseModel):
    """Schema for applying a lifecycle event (payment webhook or sweep)."""
    event: AddonEvent
    occurred_at: Optional[datetime] = None


class AddonSubscriptionResponse(BaseModel):
    """Response schema for an add-on subscription."""
    tenant_id: str
    addon_id: str
    status: str
    addon_tier: Optional[str] = None
    employee_count: int
    monthly_amount: float
    currency_code: str
    trial_ends_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    days_until_trial_end: Optional[int] = None
    days_until_grace_end: Optional[int] = None
    allowed_events: List[str] = Field(default_factory=list)
    disclaimer: Optional[str] = None
