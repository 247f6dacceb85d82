"""
PlanGate - Country Rollout Models

Per-country rollout policy and per-country add-on pricing.
"""

from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String, Text, Integer, Boolean,
    Enum as SQLEnum, JSON, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from plangate.models.base import BaseModel
from plangate.config.catalog_config import CountryStatus, AddonConfigStatus


class CountryRollout(BaseModel):
    """
    Super-admin controlled availability of the platform in a country.
    """
    __tablename__ = "country_rollouts"

    country_code: Mapped[str] = mapped_column(String(2), unique=True, index=True, nullable=False)

    status: Mapped[CountryStatus] = mapped_column(
        SQLEnum(CountryStatus, values_callable=lambda x: [e.value for e in x]),
        default=CountryStatus.COMING_SOON,
        nullable=False,
    )

    registration_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    billing_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Empty list means every business type is allowed
    enabled_business_types: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    disabled_features: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    enabled_addons: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    enabled_modules: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # {"payroll": {"status": "beta", "cohort_tenant_ids": [...], "disclaimer_text": "..."}}
    addon_policies: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Cohort-gated add-on rollout per add-on key"
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AddonCountryPricing(BaseModel):
    """
    Pricing tiers and trial length for an add-on in a country.
    """
    __tablename__ = "addon_country_pricing"
    __table_args__ = (
        UniqueConstraint("addon_id", "country_code", name="uq_addon_country_pricing_addon_country"),
    )

    addon_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)

    status: Mapped[AddonConfigStatus] = mapped_column(
        SQLEnum(AddonConfigStatus, values_callable=lambda x: [e.value for e in x]),
        default=AddonConfigStatus.HIDDEN,
        nullable=False,
    )
    trial_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # [{"id": "starter", "name": "Starter", "pricing_type": "flat", "price": "20.00",
    #   "currency": "MYR", "is_default": true, "max_employees": 5}, ...]
    pricing_tiers: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)
