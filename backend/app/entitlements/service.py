"""Service resolving a tenant's subscription into plan limits and usage views."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol
from uuid import uuid4

from ..db import DuplicateKeyError
from .catalog import PlanCatalog
from .exceptions import NoSubscriptionError
from .lifecycle import trial_days_left
from .models import (
    BillingOverview,
    PlanCode,
    PlanLimits,
    SubscriptionRecord,
    SubscriptionStatus,
    UsageSummary,
)
from .usage import UsageCounter

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_DAYS = 30


class SubscriptionRepository(Protocol):
    """Data access layer for tenant subscription records."""

    def get_by_tenant(self, tenant_id: str) -> Optional[SubscriptionRecord]:
        ...

    def get_by_billing_customer(self, customer_id: str) -> Optional[SubscriptionRecord]:
        ...

    def insert(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        ...

    def save(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        ...

    def set_billing_customer_if_absent(self, tenant_id: str, customer_id: str) -> Optional[SubscriptionRecord]:
        ...


@dataclass
class EntitlementService:
    """Joins subscriptions with the plan catalog. Every call re-reads storage."""

    plan_catalog: PlanCatalog
    subscriptions: SubscriptionRepository
    usage_counter: UsageCounter
    clock: Optional[Callable[[], datetime]] = None
    trial_days: int = DEFAULT_TRIAL_DAYS
    default_plan_code: PlanCode = PlanCode.PRO

    def _now(self) -> datetime:
        if self.clock is None:
            return datetime.now(timezone.utc)
        value = self.clock()
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def get_or_create_subscription(self, tenant_id: str) -> SubscriptionRecord:
        """Return the tenant's subscription, creating a trial on first access.

        Concurrent first access is settled by the unique constraint on the
        tenant id: the loser of the insert race re-reads the winner's row.
        """

        existing = self.subscriptions.get_by_tenant(tenant_id)
        if existing is not None:
            return existing

        now = self._now()
        candidate = SubscriptionRecord(
            id=str(uuid4()),
            tenant_id=tenant_id,
            plan_code=self.default_plan_code.value,
            status=SubscriptionStatus.TRIALING,
            trial_started_at=now,
            trial_ends_at=now + timedelta(days=self.trial_days),
            created_at=now,
            updated_at=now,
        )
        try:
            created = self.subscriptions.insert(candidate)
        except DuplicateKeyError:
            logger.debug("Subscription for tenant %s created concurrently; re-reading", tenant_id)
            current = self.subscriptions.get_by_tenant(tenant_id)
            if current is None:
                raise NoSubscriptionError(tenant_id)
            return current

        logger.info(
            "Started %s-day %s trial for tenant %s",
            self.trial_days,
            created.plan_code,
            tenant_id,
        )
        return created

    def resolve_limits(self, tenant_id: str) -> PlanLimits:
        """Return the tenant's ceilings. ``None`` ceilings mean unlimited.

        Raises :class:`NoSubscriptionError` or :class:`PlanNotFoundError`;
        neither is ever turned into a default plan here.
        """

        subscription = self.get_or_create_subscription(tenant_id)
        plan = self.plan_catalog.get_plan(subscription.plan_code)
        return PlanLimits(
            plan_code=plan.code,
            plan_name=plan.name,
            status=subscription.status,
            max_products=plan.max_products,
            max_catalogs=plan.max_catalogs,
        )

    def get_usage_summary(self, tenant_id: str) -> UsageSummary:
        subscription = self.get_or_create_subscription(tenant_id)
        plan = self.plan_catalog.get_plan(subscription.plan_code)
        _, usage = self.usage_counter.snapshot_for_tenant(tenant_id)
        return UsageSummary(
            plan_code=plan.code,
            plan_name=plan.name,
            max_products=plan.max_products,
            max_catalogs=plan.max_catalogs,
            products_used=usage.products,
            catalogs_used=usage.catalogs,
        )

    def get_billing_overview(
        self,
        tenant_id: str,
        *,
        subscription: Optional[SubscriptionRecord] = None,
    ) -> BillingOverview:
        current = subscription or self.get_or_create_subscription(tenant_id)
        plan = self.plan_catalog.get_plan(current.plan_code)
        store_id, usage = self.usage_counter.snapshot_for_tenant(tenant_id)
        return BillingOverview(
            subscription=current,
            plan=plan,
            usage=usage,
            trial_days_left=trial_days_left(current, self._now()),
            store_id=store_id,
        )


__all__ = ["DEFAULT_TRIAL_DAYS", "EntitlementService", "SubscriptionRepository"]
