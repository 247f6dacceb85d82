"""
PlanGate - Plan and Offer Models

Persisted plan definitions and promotional offers/coupons.
Limits are stored in wire form: -1 unlimited, 0 unavailable, n > 0 cap.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String, Text, Integer, Boolean, DateTime,
    Numeric, Enum as SQLEnum, JSON, ForeignKey,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from plangate.models.base import BaseModel
from plangate.config.catalog_config import PlanTier, OfferType


class PricingPlan(BaseModel):
    """
    A purchasable plan for one country and currency.
    """
    __tablename__ = "pricing_plans"

    code: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    tier: Mapped[PlanTier] = mapped_column(
        SQLEnum(PlanTier, values_callable=lambda x: [e.value for e in x]),
        default=PlanTier.FREE,
        nullable=False,
    )

    country_code: Mapped[str] = mapped_column(String(2), index=True, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    # {"monthly": {"price": "99.00", "enabled": true, "badge": null}, ...}
    billing_cycles: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Per-cycle price, enabled flag and badge"
    )

    # {"feature_key": true/false}
    feature_flags: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # {"limit_key": -1 | 0 | n}
    limits: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    max_users: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_recommended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Add-on ids bundled with the plan, e.g. ["payroll"]
    included_addons: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    gst_applicable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<PricingPlan(code={self.code}, tier={self.tier}, country={self.country_code})>"


class BillingOffer(BaseModel):
    """
    A promotional discount. Offers without a code apply automatically;
    offers with a code are coupons.
    """
    __tablename__ = "billing_offers"

    code: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    offer_type: Mapped[OfferType] = mapped_column(
        SQLEnum(OfferType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Scope lists; empty or null means any
    applicable_plans: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    applicable_cycles: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    applicable_countries: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    max_redemptions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    redemption_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Redemptions allowed per tenant; null means no per-tenant cap
    per_tenant_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class OfferRedemption(BaseModel):
    """
    One use of an offer or coupon by a tenant.
    """
    __tablename__ = "offer_redemptions"

    offer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("billing_offers.id", ondelete="CASCADE"), index=True, nullable=False
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
