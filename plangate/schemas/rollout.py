"""
PlanGate - Rollout Schemas
"""

from typing import Optional

from pydantic import BaseModel


class RolloutCheckResponse(BaseModel):
    """Outcome of a country rollout check."""
    country_code: str
    allowed: bool
    code: Optional[str] = None
    message: Optional[str] = None
    is_beta: bool = False
    disclaimer: Optional[str] = None
