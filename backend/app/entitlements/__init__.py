"""Entitlements domain: plan catalog, subscription records, and limit resolution."""

from .catalog import (
    DEFAULT_PLAN_DEFINITIONS,
    FREE_PLAN_CODE,
    PLAN_RANK,
    PlanCatalog,
    PlanDefinition,
    PlanRepository,
    analytics_label,
    format_limit,
    is_paid_plan,
    next_plan,
    plan_label,
)
from .exceptions import EntitlementError, NoSubscriptionError, PlanNotFoundError
from .lifecycle import can_transition, is_trialing, map_provider_status, trial_days_left
from .models import (
    BillingOverview,
    Plan,
    PlanCode,
    PlanLimits,
    ResourceType,
    SubscriptionRecord,
    SubscriptionStatus,
    UsageSnapshot,
    UsageSummary,
)
from .service import DEFAULT_TRIAL_DAYS, EntitlementService, SubscriptionRepository
from .usage import ResourceCounter, UsageCounter

__all__ = [
    "DEFAULT_PLAN_DEFINITIONS",
    "DEFAULT_TRIAL_DAYS",
    "FREE_PLAN_CODE",
    "PLAN_RANK",
    "BillingOverview",
    "EntitlementError",
    "EntitlementService",
    "NoSubscriptionError",
    "Plan",
    "PlanCatalog",
    "PlanCode",
    "PlanDefinition",
    "PlanLimits",
    "PlanNotFoundError",
    "PlanRepository",
    "ResourceCounter",
    "ResourceType",
    "SubscriptionRecord",
    "SubscriptionRepository",
    "SubscriptionStatus",
    "UsageCounter",
    "UsageSnapshot",
    "UsageSummary",
    "analytics_label",
    "can_transition",
    "format_limit",
    "is_paid_plan",
    "is_trialing",
    "map_provider_status",
    "next_plan",
    "plan_label",
    "trial_days_left",
]
