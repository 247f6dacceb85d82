"""
PlanGate - Catalog Configuration

Central configuration for the plan catalog: feature keys, limit keys,
add-on contributions, country currencies and billing cycles.
Limits use -1 for unlimited and 0 for unavailable on the wire.
"""

from decimal import Decimal
from typing import Dict, Any, FrozenSet, Optional
from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# ENUMS (defined here to avoid circular imports)
# These are also exported from plangate.models for the ORM layer
# =============================================================================

class PlanTier(str, Enum):
    """Commercial plan tiers, cheapest first."""
    FREE = "free"
    STARTER = "starter"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class BillingCycle(str, Enum):
    """Billing cycles a plan can be sold on."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"


class FeatureGroup(str, Enum):
    """Groups used to organize the feature catalog."""
    CORE_MODULES = "core_modules"
    NOTIFICATIONS = "notifications"
    ANALYTICS = "analytics"
    SUPPORT = "support"


class Feature(str, Enum):
    """All features that can be gated by a plan."""
    # Core modules
    INVOICING = "invoicing"
    INVENTORY = "inventory"
    PROJECTS = "projects"
    PAYROLL = "payroll"
    HRMS = "hrms"
    CUSTOM_ROLES = "custom_roles"
    API_ACCESS = "api_access"
    # Notifications
    EMAIL_NOTIFICATIONS = "email_notifications"
    SMS_NOTIFICATIONS = "sms_notifications"
    WHATSAPP_AUTOMATION = "whatsapp_automation"
    # Analytics
    ANALYTICS_BASIC = "analytics_basic"
    ANALYTICS_ADVANCED = "analytics_advanced"
    # Support
    PRIORITY_SUPPORT = "priority_support"
    DEDICATED_MANAGER = "dedicated_manager"


class LimitKey(str, Enum):
    """Numeric usage limits a plan can cap."""
    USERS = "users"
    CUSTOMERS = "customers"
    RECORDS = "records"
    PROJECTS = "projects"
    INVOICES_PER_MONTH = "invoices_per_month"
    STORAGE_GB = "storage_gb"
    EMPLOYEES = "employees"
    BRANCHES = "branches"
    API_CALLS_PER_DAY = "api_calls_per_day"


class CountryStatus(str, Enum):
    """Rollout status of a country."""
    ENABLED = "enabled"
    DISABLED = "disabled"
    MAINTENANCE = "maintenance"
    COMING_SOON = "coming_soon"


class AddonRolloutStatus(str, Enum):
    """Rollout status of an add-on inside a country."""
    DISABLED = "disabled"
    BETA = "beta"
    LIVE = "live"


class AddonConfigStatus(str, Enum):
    """Visibility of an add-on's country pricing configuration."""
    LIVE = "live"
    HIDDEN = "hidden"


class AddonSubscriptionStatus(str, Enum):
    """Lifecycle status of a tenant's add-on subscription."""
    TRIAL = "trial"
    ACTIVE = "active"
    GRACE = "grace"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class OfferType(str, Enum):
    """Discount types for offers and coupons."""
    PERCENT = "PERCENT"
    FLAT = "FLAT"


class PricingType(str, Enum):
    """How an add-on pricing tier is charged."""
    FLAT = "flat"
    PER_EMPLOYEE = "per_employee"


# =============================================================================
# FEATURE CATALOG
# =============================================================================

FEATURE_DEFINITIONS: Dict[Feature, Dict[str, Any]] = {
    Feature.INVOICING: {
        "label": "Invoicing",
        "description": "Create, send and track invoices and quotations",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": False,
    },
    Feature.INVENTORY: {
        "label": "Inventory",
        "description": "Stock tracking with low-stock alerts",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": False,
    },
    Feature.PROJECTS: {
        "label": "Projects",
        "description": "Project tracking with time and expense allocation",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": False,
    },
    Feature.PAYROLL: {
        "label": "Payroll",
        "description": "Monthly payroll runs, payslips and statutory deductions",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": True,
    },
    Feature.HRMS: {
        "label": "HRMS",
        "description": "Employee records, leave and attendance management",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": True,
    },
    Feature.CUSTOM_ROLES: {
        "label": "Custom roles",
        "description": "Define custom roles with granular permissions",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": True,
    },
    Feature.API_ACCESS: {
        "label": "API access",
        "description": "Programmatic access through the public REST API",
        "group": FeatureGroup.CORE_MODULES,
        "restricted_on_free": True,
    },
    Feature.EMAIL_NOTIFICATIONS: {
        "label": "Email notifications",
        "description": "Invoice and reminder emails to customers",
        "group": FeatureGroup.NOTIFICATIONS,
        "restricted_on_free": False,
    },
    Feature.SMS_NOTIFICATIONS: {
        "label": "SMS notifications",
        "description": "Payment reminders over SMS",
        "group": FeatureGroup.NOTIFICATIONS,
        "restricted_on_free": False,
    },
    Feature.WHATSAPP_AUTOMATION: {
        "label": "WhatsApp automation",
        "description": "Automated invoice delivery and reminders over WhatsApp",
        "group": FeatureGroup.NOTIFICATIONS,
        "restricted_on_free": True,
    },
    Feature.ANALYTICS_BASIC: {
        "label": "Basic analytics",
        "description": "Sales and expense dashboards",
        "group": FeatureGroup.ANALYTICS,
        "restricted_on_free": False,
    },
    Feature.ANALYTICS_ADVANCED: {
        "label": "Advanced analytics",
        "description": "Cohort, cash-flow and profitability reports",
        "group": FeatureGroup.ANALYTICS,
        "restricted_on_free": True,
    },
    Feature.PRIORITY_SUPPORT: {
        "label": "Priority support",
        "description": "Faster response times from the support team",
        "group": FeatureGroup.SUPPORT,
        "restricted_on_free": True,
    },
    Feature.DEDICATED_MANAGER: {
        "label": "Dedicated account manager",
        "description": "A named account manager for onboarding and reviews",
        "group": FeatureGroup.SUPPORT,
        "restricted_on_free": True,
    },
}


# =============================================================================
# LIMIT CATALOG (-1 = unlimited, 0 = unavailable)
# =============================================================================

LIMIT_DEFINITIONS: Dict[LimitKey, Dict[str, Any]] = {
    LimitKey.USERS: {
        "label": "Users",
        "description": "Team members who can sign in",
        "default_value": 1,
    },
    LimitKey.CUSTOMERS: {
        "label": "Customers",
        "description": "Customer records in the address book",
        "default_value": 25,
    },
    LimitKey.RECORDS: {
        "label": "Records",
        "description": "Transactions, invoices and other business records",
        "default_value": 50,
    },
    LimitKey.PROJECTS: {
        "label": "Projects",
        "description": "Active projects",
        "default_value": 1,
    },
    LimitKey.INVOICES_PER_MONTH: {
        "label": "Invoices per month",
        "description": "Invoices that can be issued in a calendar month",
        "default_value": 10,
    },
    LimitKey.STORAGE_GB: {
        "label": "Storage (GB)",
        "description": "Attachment and document storage",
        "default_value": 1,
    },
    LimitKey.EMPLOYEES: {
        "label": "Employees",
        "description": "Employees covered by payroll and HRMS",
        "default_value": 0,
    },
    LimitKey.BRANCHES: {
        "label": "Branches",
        "description": "Business locations",
        "default_value": 1,
    },
    LimitKey.API_CALLS_PER_DAY: {
        "label": "API calls per day",
        "description": "Requests to the public REST API per day",
        "default_value": 0,
    },
}


# =============================================================================
# COUNTRY PRICING RULES
# =============================================================================

COUNTRY_CURRENCY: Dict[str, str] = {
    "IN": "INR",
    "GB": "GBP",
    "AE": "AED",
    "SG": "SGD",
    "MY": "MYR",
    "US": "USD",
}

DEFAULT_CURRENCY = "USD"

# India plans may only be sold at these price points without a super-admin override
INDIA_ALLOWED_PRICE_POINTS: FrozenSet[Decimal] = frozenset(
    {Decimal("0"), Decimal("99"), Decimal("199")}
)

CYCLE_MONTHS: Dict[BillingCycle, int] = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.HALF_YEARLY: 6,
    BillingCycle.YEARLY: 12,
}


# =============================================================================
# ADD-ON CATALOG
# =============================================================================

DEFAULT_GRACE_PERIOD_DAYS = 7


@dataclass
class AddonDefinition:
    """Entitlements an add-on contributes when it is active."""
    addon_id: str
    name: str
    features: FrozenSet[str]
    default_tier: str
    # addon tier -> limit key -> wire value
    tier_limits: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def limits_for_tier(self, addon_tier: Optional[str]) -> Dict[str, int]:
        """Return the wire limits for a tier, falling back to the default tier."""
        if addon_tier and addon_tier in self.tier_limits:
            return self.tier_limits[addon_tier]
        return self.tier_limits.get(self.default_tier, {})


ADDON_DEFINITIONS: Dict[str, AddonDefinition] = {
    "payroll": AddonDefinition(
        addon_id="payroll",
        name="Payroll",
        features=frozenset({Feature.PAYROLL.value}),
        default_tier="starter",
        tier_limits={
            "starter": {LimitKey.EMPLOYEES.value: 5},
            "growth": {LimitKey.EMPLOYEES.value: 20},
            "scale": {LimitKey.EMPLOYEES.value: 50},
            "unlimited": {LimitKey.EMPLOYEES.value: -1},
        },
    ),
    "hrms": AddonDefinition(
        addon_id="hrms",
        name="HRMS",
        features=frozenset({Feature.HRMS.value}),
        default_tier="standard",
        tier_limits={
            "standard": {LimitKey.EMPLOYEES.value: 25},
            "plus": {LimitKey.EMPLOYEES.value: -1, LimitKey.BRANCHES.value: -1},
        },
    ),
    "whatsapp": AddonDefinition(
        addon_id="whatsapp",
        name="WhatsApp Automation",
        features=frozenset({Feature.WHATSAPP_AUTOMATION.value}),
        default_tier="standard",
    ),
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_currency_for_country(country_code: Optional[str]) -> str:
    """Get the billing currency for a country, USD when unmapped."""
    if not country_code:
        return DEFAULT_CURRENCY
    return COUNTRY_CURRENCY.get(country_code.upper(), DEFAULT_CURRENCY)


def get_cycle_months(cycle: BillingCycle) -> int:
    """Get the number of months covered by a billing cycle."""
    return CYCLE_MONTHS[cycle]


def get_addon_definition(addon_id: str) -> Optional[AddonDefinition]:
    """Get an add-on definition by id."""
    return ADDON_DEFINITIONS.get(addon_id)


def format_money(amount: Decimal, currency_code: str) -> str:
    """Format an amount as '<CUR> 1,234.00'."""
    return f"{currency_code} {amount:,.2f}"


def get_tier_display_name(tier: PlanTier) -> str:
    """Get display name for a plan tier."""
    names = {
        PlanTier.FREE: "Free",
        PlanTier.STARTER: "Starter",
        PlanTier.BASIC: "Basic",
        PlanTier.PRO: "Pro",
        PlanTier.ENTERPRISE: "Enterprise",
    }
    return names.get(tier, tier.value.title())
