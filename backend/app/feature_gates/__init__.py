"""Feature gating utilities coordinating entitlement enforcement."""
from .enforcement import EntitlementGuard
from .exceptions import FeatureGateError
from .quota import (
    LimitDecision,
    NO_SUBSCRIPTION,
    PLAN_LIMIT_REACHED,
    PLAN_NOT_FOUND,
    evaluate_resource_limit,
    usage_ratio,
    within_limit,
)

__all__ = [
    "EntitlementGuard",
    "FeatureGateError",
    "LimitDecision",
    "NO_SUBSCRIPTION",
    "PLAN_LIMIT_REACHED",
    "PLAN_NOT_FOUND",
    "evaluate_resource_limit",
    "usage_ratio",
    "within_limit",
]
