"""Resource limit evaluation utilities for feature gating."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..entitlements.catalog import next_plan, plan_label
from ..entitlements.models import PlanCode, ResourceType

ALLOWED = "allowed"
PLAN_LIMIT_REACHED = "plan_limit_reached"
NO_SUBSCRIPTION = "no_subscription"
PLAN_NOT_FOUND = "plan_not_found"


@dataclass(frozen=True)
class LimitDecision:
    """Outcome of an entitlement check for one resource creation."""

    allowed: bool
    resource_type: ResourceType
    code: str = ALLOWED
    reason: Optional[str] = None
    plan_code: Optional[PlanCode] = None
    limit: Optional[int] = None
    usage: Optional[int] = None
    upgrade_plan_code: Optional[PlanCode] = None

    @classmethod
    def allow(
        cls,
        resource_type: ResourceType,
        *,
        plan_code: Optional[PlanCode] = None,
        limit: Optional[int] = None,
        usage: Optional[int] = None,
    ) -> "LimitDecision":
        return cls(
            allowed=True,
            resource_type=resource_type,
            plan_code=plan_code,
            limit=limit,
            usage=usage,
        )

    @classmethod
    def deny(cls, resource_type: ResourceType, *, code: str, reason: str, **kwargs) -> "LimitDecision":
        return cls(allowed=False, resource_type=resource_type, code=code, reason=reason, **kwargs)


def limit_reached_message(plan_name: str, resource_type: ResourceType, upgrade_plan_code: Optional[PlanCode]) -> str:
    if upgrade_plan_code is None:
        return (
            f"{plan_name} plan: you reached the {resource_type.value} limit. "
            "Contact support to raise it."
        )
    return (
        f"{plan_name} plan: you reached the {resource_type.value} limit. "
        f"Upgrade to {plan_label(upgrade_plan_code)} to keep growing."
    )


def evaluate_resource_limit(
    *,
    resource_type: ResourceType,
    usage: int,
    limit: Optional[int],
    plan_code: PlanCode,
    plan_name: str,
) -> LimitDecision:
    """Decide whether one more resource fits under ``limit``.

    Only ``None`` is unlimited. A ceiling of ``0`` denies every creation.
    """

    if limit is None:
        return LimitDecision.allow(resource_type, plan_code=plan_code, usage=usage)

    if usage >= limit:
        upgrade = next_plan(plan_code)
        return LimitDecision.deny(
            resource_type,
            code=PLAN_LIMIT_REACHED,
            reason=limit_reached_message(plan_name, resource_type, upgrade),
            plan_code=plan_code,
            limit=limit,
            usage=usage,
            upgrade_plan_code=upgrade,
        )

    return LimitDecision.allow(resource_type, plan_code=plan_code, limit=limit, usage=usage)


def within_limit(usage: int, limit: Optional[int]) -> bool:
    if limit is None:
        return True
    return usage <= limit


def usage_ratio(usage: int, limit: Optional[int]) -> int:
    """Percentage of the ceiling in use, capped at 100; ``0`` when unlimited."""

    if limit is None:
        return 0
    if limit <= 0:
        return 100
    return min(100, round(usage / limit * 100))
