"""Helpers for enforcing plan ceilings before resources are created."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..entitlements.exceptions import NoSubscriptionError, PlanNotFoundError
from ..entitlements.models import ResourceType
from ..entitlements.service import EntitlementService
from ..entitlements.usage import UsageCounter
from .exceptions import FeatureGateError
from .quota import NO_SUBSCRIPTION, PLAN_NOT_FOUND, LimitDecision, evaluate_resource_limit

logger = logging.getLogger(__name__)


@dataclass
class EntitlementGuard:
    """Answers whether a tenant may create one more resource of a type.

    Any failure to resolve the tenant's limits is a denial. The check is a
    read followed by the caller's insert, so two concurrent creations can
    both pass at ``usage == limit - 1``.
    """

    entitlements: EntitlementService
    usage_counter: UsageCounter

    def check_allowed(
        self,
        store_id: Optional[str],
        tenant_id: str,
        resource_type: ResourceType,
    ) -> LimitDecision:
        try:
            limits = self.entitlements.resolve_limits(tenant_id)
        except PlanNotFoundError as exc:
            logger.error(
                "Plan %s for tenant %s is not in the catalog; denying %s",
                exc.plan_code,
                tenant_id,
                resource_type.value,
            )
            return LimitDecision.deny(
                resource_type,
                code=PLAN_NOT_FOUND,
                reason="Your plan could not be resolved. Contact support.",
            )
        except NoSubscriptionError:
            logger.info("No subscription for tenant %s; denying %s", tenant_id, resource_type.value)
            return LimitDecision.deny(
                resource_type,
                code=NO_SUBSCRIPTION,
                reason="No active subscription was found for your account.",
            )

        limit = limits.limit_for(resource_type)
        if limit is None:
            return LimitDecision.allow(resource_type, plan_code=limits.plan_code)

        usage = self.usage_counter.count(store_id, resource_type)
        decision = evaluate_resource_limit(
            resource_type=resource_type,
            usage=usage,
            limit=limit,
            plan_code=limits.plan_code,
            plan_name=limits.plan_name,
        )
        if not decision.allowed:
            logger.info(
                "Plan limit reached tenant=%s store=%s resource=%s usage=%s limit=%s",
                tenant_id,
                store_id,
                resource_type.value,
                usage,
                limit,
                extra={"tenant_id": tenant_id, "plan_code": limits.plan_code.value},
            )
        return decision

    def require_allowed(
        self,
        store_id: Optional[str],
        tenant_id: str,
        resource_type: ResourceType,
    ) -> LimitDecision:
        """Like :meth:`check_allowed` but raises :class:`FeatureGateError` on denial."""

        decision = self.check_allowed(store_id, tenant_id, resource_type)
        if not decision.allowed:
            raise FeatureGateError.from_decision(decision)
        return decision


__all__ = ["EntitlementGuard"]
