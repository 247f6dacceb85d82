"""
PlanGate - FastAPI Dependencies

Shared dependencies providing database-backed stores to the routers.
Tests override these providers with in-memory stores.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from plangate.database import get_async_session
from plangate.services.stores import (
    AddonConfigStore,
    AddonSubscriptionStore,
    CountryPolicyStore,
    PlanStore,
    PromotionStore,
)


async def get_plan_store(db: AsyncSession = Depends(get_async_session)) -> PlanStore:
    return PlanStore(db)


async def get_country_policy_store(db: AsyncSession = Depends(get_async_session)) -> CountryPolicyStore:
    return CountryPolicyStore(db)


async def get_addon_config_store(db: AsyncSession = Depends(get_async_session)) -> AddonConfigStore:
    return AddonConfigStore(db)


async def get_addon_subscription_store(
    db: AsyncSession = Depends(get_async_session),
) -> AddonSubscriptionStore:
    return AddonSubscriptionStore(db)


async def get_promotion_store(db: AsyncSession = Depends(get_async_session)) -> PromotionStore:
    return PromotionStore(db)
