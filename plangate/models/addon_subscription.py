"""
PlanGate - Tenant Add-on Subscription Model

One row per tenant per add-on, carrying the lifecycle status.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Integer, Boolean, DateTime,
    Numeric, Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from plangate.models.base import BaseModel
from plangate.config.catalog_config import AddonSubscriptionStatus


class TenantAddonSubscription(BaseModel):
    """
    A tenant's purchase of an add-on (e.g. payroll).
    """
    __tablename__ = "tenant_addon_subscriptions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "addon_id", name="uq_tenant_addon_subscriptions_tenant_addon"),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True, nullable=False)
    addon_id: Mapped[str] = mapped_column(String(64), nullable=False)
    addon_tier: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    employee_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    monthly_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[AddonSubscriptionStatus] = mapped_column(
        SQLEnum(AddonSubscriptionStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    grace_period_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
