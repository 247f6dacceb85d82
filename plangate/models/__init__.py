"""
PlanGate - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from plangate.models.base import BaseModel, TimestampMixin
from plangate.models.plan import PricingPlan, BillingOffer, OfferRedemption
from plangate.models.rollout import CountryRollout, AddonCountryPricing
from plangate.models.addon_subscription import TenantAddonSubscription

# Enums shared with the policy engine
from plangate.config.catalog_config import (
    PlanTier,
    BillingCycle,
    CountryStatus,
    AddonConfigStatus,
    AddonSubscriptionStatus,
    OfferType,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "PricingPlan",
    "BillingOffer",
    "OfferRedemption",
    "CountryRollout",
    "AddonCountryPricing",
    "TenantAddonSubscription",
    "PlanTier",
    "BillingCycle",
    "CountryStatus",
    "AddonConfigStatus",
    "AddonSubscriptionStatus",
    "OfferType",
]
