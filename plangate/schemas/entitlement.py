"""
PlanGate - Entitlement Schemas

Pydantic schemas for resolved entitlements and plan diffs.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class EntitlementResponse(BaseModel):
    """Effective features and wire limits (-1 unlimited, 0 unavailable)."""
    tenant_id: str
    plan_code: str
    country_code: str
    features: Dict[str, bool]
    limits: Dict[str, int]


class EntitlementSnapshot(BaseModel):
    """A feature/limit snapshot supplied by the caller."""
    features: Dict[str, bool] = Field(default_factory=dict)
    limits: Dict[str, int] = Field(default_factory=dict)


class PlanDiffRequest(BaseModel):
    """
    Diff a tenant's current entitlement against a target.

    Either target_plan_code (resolved for the tenant's country) or an
    explicit target snapshot must be given.
    """
    current: EntitlementSnapshot
    target: Optional[EntitlementSnapshot] = None
    target_plan_code: Optional[str] = None
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)
    tenant_id: Optional[str] = None


class FeatureChangeSchema(BaseModel):
    key: str
    label: str
    description: Optional[str] = None


class LimitChangeSchema(BaseModel):
    key: str
    label: str
    from_: str = Field(..., alias="from")
    to: str

    model_config = {"populate_by_name": True}


class PlanDiffResponse(BaseModel):
    lost_features: List[FeatureChangeSchema]
    gained_features: List[FeatureChangeSchema]
    reduced_limits: List[LimitChangeSchema]
    increased_limits: List[LimitChangeSchema]
    is_downgrade: bool
