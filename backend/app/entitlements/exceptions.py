"""Errors raised while resolving a tenant's entitlements."""
from __future__ import annotations


class EntitlementError(LookupError):
    """Base class for entitlement resolution failures."""


class NoSubscriptionError(EntitlementError):
    """Raised when a tenant's subscription can neither be found nor created."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"No subscription found for tenant={tenant_id}")


class PlanNotFoundError(EntitlementError):
    """Raised when a plan code does not resolve to a stored plan.

    This points at missing seed data or a stale plan reference and is never
    silently replaced by a default plan.
    """

    def __init__(self, plan_code: str) -> None:
        self.plan_code = plan_code
        super().__init__(f"Unknown plan code: {plan_code}")
