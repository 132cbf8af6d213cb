"""Applies billing provider lifecycle events to tenant subscriptions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from ..entitlements.catalog import FREE_PLAN_CODE
from ..entitlements.lifecycle import can_transition, map_provider_status
from ..entitlements.models import SubscriptionRecord, SubscriptionStatus
from ..entitlements.service import SubscriptionRepository
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    BillingWebhookEvent,
    BillingWebhookEventType,
    CheckoutCompletedEvent,
    ReconciliationOutcome,
    ReconciliationResult,
    SubscriptionChangeEvent,
)
from .prices import PriceMap

logger = logging.getLogger("billing")


class BillingEventLogger(Protocol):
    """Audit sink for billing events."""

    def log(self, event: BillingAuditEvent) -> None:
        ...


class WebhookEventStore(Protocol):
    """Remembers processed provider event ids."""

    def is_recorded(self, event_id: str) -> bool:
        ...

    def record_webhook_event(self, event: BillingWebhookEvent) -> bool:
        ...


def apply_checkout_completed(current: SubscriptionRecord, event: CheckoutCompletedEvent) -> SubscriptionRecord:
    update = {"billing_customer_id": event.customer_id}
    if event.subscription_id:
        update["billing_subscription_id"] = event.subscription_id
    return current.model_copy(update=update)


def apply_subscription_change(
    current: SubscriptionRecord,
    event: SubscriptionChangeEvent,
    price_map: PriceMap,
) -> SubscriptionRecord:
    """Overwrite provider-owned fields. An unmappable price keeps the stored plan."""

    mapped_plan = price_map.plan_for_price(event.price_id)
    plan_code = mapped_plan.value if mapped_plan else current.plan_code
    return current.model_copy(
        update={
            "plan_code": plan_code,
            "status": map_provider_status(event.status),
            "billing_subscription_id": event.subscription_id or current.billing_subscription_id,
            "billing_price_id": event.price_id,
            "cancel_at_period_end": event.cancel_at_period_end,
            "current_period_starts_at": event.current_period_starts_at,
            "current_period_ends_at": event.current_period_ends_at,
            "canceled_at": event.canceled_at,
        }
    )


def _is_reset_to_free(record: SubscriptionRecord) -> bool:
    return (
        record.plan_code == FREE_PLAN_CODE.value
        and record.status == SubscriptionStatus.ACTIVE
        and record.billing_subscription_id is None
        and record.billing_price_id is None
        and not record.cancel_at_period_end
        and record.current_period_starts_at is None
        and record.current_period_ends_at is None
        and record.canceled_at is not None
    )


def apply_subscription_deleted(current: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
    """Drop the tenant onto the free plan, immediately usable.

    A record that is already reset keeps its original ``canceled_at`` so that
    redelivery converges on an identical record.
    """

    if _is_reset_to_free(current):
        return current
    return current.model_copy(
        update={
            "plan_code": FREE_PLAN_CODE.value,
            "status": SubscriptionStatus.ACTIVE,
            "billing_subscription_id": None,
            "billing_price_id": None,
            "cancel_at_period_end": False,
            "current_period_starts_at": None,
            "current_period_ends_at": None,
            "canceled_at": now,
        }
    )


def _same_state(left: SubscriptionRecord, right: SubscriptionRecord) -> bool:
    return left.model_dump(exclude={"updated_at"}) == right.model_dump(exclude={"updated_at"})


@dataclass
class BillingEventReconciler:
    """Consumes checkout and subscription events; never creates subscriptions."""

    subscriptions: SubscriptionRepository
    events: WebhookEventStore
    price_map: PriceMap
    event_logger: BillingEventLogger
    clock: Optional[Callable[[], datetime]] = None

    def _now(self) -> datetime:
        if self.clock is None:
            return datetime.now(timezone.utc)
        return self.clock()

    def reconcile(self, event: BillingWebhookEvent) -> ReconciliationResult:
        if self.events.is_recorded(event.event_id):
            logger.debug("Skipping already processed billing event %s", event.event_id)
            return ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.DUPLICATE,
            )

        kind = event.kind
        if kind == BillingWebhookEventType.CHECKOUT_COMPLETED:
            result = self._handle_checkout_completed(event)
        elif kind in {
            BillingWebhookEventType.SUBSCRIPTION_CREATED,
            BillingWebhookEventType.SUBSCRIPTION_UPDATED,
        }:
            result = self._handle_subscription_change(event)
        elif kind == BillingWebhookEventType.SUBSCRIPTION_DELETED:
            result = self._handle_subscription_deleted(event)
        else:
            result = ReconciliationResult(
                event_id=event.event_id,
                event_type=event.event_type,
                outcome=ReconciliationOutcome.IGNORED,
            )

        # Only recorded once handling succeeded, so a failed delivery is retried.
        self.events.record_webhook_event(event)
        return result

    def _drop(self, event: BillingWebhookEvent, customer_id: Optional[str], reason: str) -> ReconciliationResult:
        logger.warning(
            "Dropped billing event %s (%s) customer=%s: %s",
            event.event_id,
            event.event_type,
            customer_id,
            reason,
            extra={"billing_event_id": event.event_id, "billing_customer_id": customer_id},
        )
        self.event_logger.log(
            BillingAuditEvent(
                event_type=BillingAuditEventType.EVENT_DROPPED,
                provider_event_id=event.event_id,
                metadata={"reason": reason, "customer_id": customer_id or ""},
            )
        )
        return ReconciliationResult(
            event_id=event.event_id,
            event_type=event.event_type,
            outcome=ReconciliationOutcome.DROPPED,
            reason=reason,
        )

    def _persist(
        self,
        event: BillingWebhookEvent,
        current: SubscriptionRecord,
        updated: SubscriptionRecord,
        audit_type: BillingAuditEventType,
    ) -> ReconciliationResult:
        if not can_transition(current.status, updated.status):
            logger.info(
                "Billing event %s moves tenant %s from %s to %s outside the usual lifecycle",
                event.event_id,
                current.tenant_id,
                current.status.value,
                updated.status.value,
            )

        stored = current
        if not _same_state(current, updated):
            stored = self.subscriptions.save(updated.model_copy(update={"updated_at": self._now()}))
            self.event_logger.log(
                BillingAuditEvent(
                    event_type=audit_type,
                    tenant_id=stored.tenant_id,
                    provider_event_id=event.event_id,
                    metadata={"plan_code": stored.plan_code, "status": stored.status.value},
                )
            )
        return ReconciliationResult(
            event_id=event.event_id,
            event_type=event.event_type,
            outcome=ReconciliationOutcome.APPLIED,
            tenant_id=stored.tenant_id,
            subscription=stored,
        )

    def _handle_checkout_completed(self, event: BillingWebhookEvent) -> ReconciliationResult:
        checkout = CheckoutCompletedEvent.from_payload(event.payload)
        if not checkout.customer_id:
            return self._drop(event, None, "checkout carries no customer reference")

        current = None
        if checkout.tenant_id:
            current = self.subscriptions.get_by_tenant(checkout.tenant_id)
        if current is None:
            current = self.subscriptions.get_by_billing_customer(checkout.customer_id)
        if current is None:
            return self._drop(event, checkout.customer_id, "no subscription matches tenant or customer")

        updated = apply_checkout_completed(current, checkout)
        return self._persist(event, current, updated, BillingAuditEventType.CUSTOMER_LINKED)

    def _handle_subscription_change(self, event: BillingWebhookEvent) -> ReconciliationResult:
        change = SubscriptionChangeEvent.from_payload(event.payload)
        current = self.subscriptions.get_by_billing_customer(change.customer_id) if change.customer_id else None
        if current is None:
            return self._drop(event, change.customer_id, "no subscription for customer")

        if change.price_id and self.price_map.plan_for_price(change.price_id) is None:
            logger.warning(
                "Price %s maps to no plan; keeping plan %s for tenant %s",
                change.price_id,
                current.plan_code,
                current.tenant_id,
            )
        updated = apply_subscription_change(current, change, self.price_map)
        return self._persist(event, current, updated, BillingAuditEventType.SUBSCRIPTION_UPDATED)

    def _handle_subscription_deleted(self, event: BillingWebhookEvent) -> ReconciliationResult:
        change = SubscriptionChangeEvent.from_payload(event.payload)
        current = self.subscriptions.get_by_billing_customer(change.customer_id) if change.customer_id else None
        if current is None:
            return self._drop(event, change.customer_id, "no subscription for customer")

        updated = apply_subscription_deleted(current, self._now())
        return self._persist(event, current, updated, BillingAuditEventType.SUBSCRIPTION_CANCELED)


__all__ = [
    "BillingEventLogger",
    "BillingEventReconciler",
    "WebhookEventStore",
    "apply_checkout_completed",
    "apply_subscription_change",
    "apply_subscription_deleted",
]
