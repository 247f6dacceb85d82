"""
PlanGate - API Routers Package
"""

from plangate.routers import admin_plans, entitlements, billing, rollout, addons

__all__ = ["admin_plans", "entitlements", "billing", "rollout", "addons"]
