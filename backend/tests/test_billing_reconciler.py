from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend.app.billing import (
    BillingAuditEventType,
    BillingEventReconciler,
    BillingWebhookEvent,
    ReconciliationOutcome,
)
from backend.app.entitlements import PlanCode, SubscriptionStatus

PERIOD_START = 1_714_521_600  # 2024-05-01T00:00:00Z
PERIOD_END = 1_717_200_000  # 2024-06-01T00:00:00Z


@pytest.fixture
def reconciler(subscriptions, event_store, price_map, event_logger, clock) -> BillingEventReconciler:
    return BillingEventReconciler(
        subscriptions=subscriptions,
        events=event_store,
        price_map=price_map,
        event_logger=event_logger,
        clock=clock,
    )


def _event(event_id: str, event_type: str, payload: dict) -> BillingWebhookEvent:
    return BillingWebhookEvent(event_id=event_id, event_type=event_type, payload=payload)


def _subscription_payload(*, price: str = "price_growth", status: str = "active", **extra) -> dict:
    payload = {
        "id": "sub_123",
        "customer": "cus_123",
        "status": status,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "items": {"data": [{"price": {"id": price}}]},
    }
    payload.update(extra)
    return payload


def test_checkout_completed_links_customer_by_tenant_metadata(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1")

    result = reconciler.reconcile(
        _event(
            "evt_1",
            "checkout.session.completed",
            {"customer": "cus_123", "subscription": "sub_123", "metadata": {"tenant_id": "tenant-1"}},
        )
    )

    record = subscriptions.records["tenant-1"]
    assert result.outcome == ReconciliationOutcome.APPLIED
    assert record.billing_customer_id == "cus_123"
    assert record.billing_subscription_id == "sub_123"


def test_checkout_completed_falls_back_to_customer_match(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")

    result = reconciler.reconcile(
        _event(
            "evt_1",
            "checkout.session.completed",
            {"customer": "cus_123", "subscription": {"id": "sub_999"}, "metadata": {"tenant_id": "unknown"}},
        )
    )

    assert result.outcome == ReconciliationOutcome.APPLIED
    assert subscriptions.records["tenant-1"].billing_subscription_id == "sub_999"


def test_checkout_without_match_is_dropped(reconciler, event_logger, event_store) -> None:
    result = reconciler.reconcile(
        _event("evt_1", "checkout.session.completed", {"customer": "cus_nobody", "metadata": {}})
    )

    assert result.outcome == ReconciliationOutcome.DROPPED
    assert event_logger.events[-1].event_type == BillingAuditEventType.EVENT_DROPPED
    assert event_store.is_recorded("evt_1")


def test_subscription_updated_applies_plan_status_and_period(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", plan_code="pro", status="trialing", billing_customer_id="cus_123")

    result = reconciler.reconcile(
        _event("evt_2", "customer.subscription.updated", _subscription_payload(cancel_at_period_end=True))
    )

    record = subscriptions.records["tenant-1"]
    assert result.outcome == ReconciliationOutcome.APPLIED
    assert record.plan_code == PlanCode.GROWTH.value
    assert record.status == SubscriptionStatus.ACTIVE
    assert record.billing_price_id == "price_growth"
    assert record.billing_subscription_id == "sub_123"
    assert record.cancel_at_period_end is True
    assert record.current_period_starts_at == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert record.current_period_ends_at == datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_subscription_created_is_handled_like_updated(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")

    reconciler.reconcile(_event("evt_2", "customer.subscription.created", _subscription_payload(price="price_pro")))

    assert subscriptions.records["tenant-1"].plan_code == PlanCode.PRO.value


def test_unmapped_price_keeps_plan_but_updates_status(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", plan_code="growth", billing_customer_id="cus_123")

    reconciler.reconcile(
        _event("evt_3", "customer.subscription.updated", _subscription_payload(price="price_legacy", status="past_due"))
    )

    record = subscriptions.records["tenant-1"]
    assert record.plan_code == PlanCode.GROWTH.value
    assert record.status == SubscriptionStatus.PAST_DUE
    assert record.billing_price_id == "price_legacy"
    assert record.current_period_ends_at == datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_unknown_upstream_status_folds_to_canceled(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")

    reconciler.reconcile(
        _event("evt_4", "customer.subscription.updated", _subscription_payload(status="incomplete_expired"))
    )

    assert subscriptions.records["tenant-1"].status == SubscriptionStatus.CANCELED


def test_period_bounds_fall_back_to_subscription_item(reconciler, make_subscription, subscriptions) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")
    payload = _subscription_payload()
    del payload["current_period_start"]
    del payload["current_period_end"]
    payload["items"] = {
        "data": [
            {
                "price": {"id": "price_growth"},
                "current_period_start": PERIOD_START,
                "current_period_end": PERIOD_END,
            }
        ]
    }

    reconciler.reconcile(_event("evt_5", "customer.subscription.updated", payload))

    assert subscriptions.records["tenant-1"].current_period_starts_at == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_update_without_subscription_is_dropped_not_created(reconciler, subscriptions) -> None:
    result = reconciler.reconcile(_event("evt_6", "customer.subscription.updated", _subscription_payload()))

    assert result.outcome == ReconciliationOutcome.DROPPED
    assert subscriptions.records == {}


def test_subscription_deleted_resets_to_free_active(reconciler, make_subscription, subscriptions, clock) -> None:
    make_subscription(
        "tenant-1",
        plan_code="pro",
        billing_customer_id="cus_123",
        billing_subscription_id="sub_123",
        billing_price_id="price_pro",
        cancel_at_period_end=True,
        current_period_starts_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        current_period_ends_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )

    reconciler.reconcile(_event("evt_7", "customer.subscription.deleted", {"id": "sub_123", "customer": "cus_123"}))

    record = subscriptions.records["tenant-1"]
    assert record.plan_code == PlanCode.STARTER.value
    assert record.status == SubscriptionStatus.ACTIVE
    assert record.billing_subscription_id is None
    assert record.billing_price_id is None
    assert record.cancel_at_period_end is False
    assert record.current_period_starts_at is None
    assert record.current_period_ends_at is None
    assert record.canceled_at == clock.now
    assert record.billing_customer_id == "cus_123"


def test_subscription_deleted_redelivery_is_idempotent(reconciler, make_subscription, subscriptions, clock) -> None:
    make_subscription("tenant-1", plan_code="growth", billing_customer_id="cus_123", billing_subscription_id="sub_123")
    payload = {"id": "sub_123", "customer": "cus_123"}

    reconciler.reconcile(_event("evt_8", "customer.subscription.deleted", payload))
    after_first = subscriptions.records["tenant-1"]
    clock.advance(hours=2)
    # Redelivered under a fresh id so the event-id dedup does not short-circuit it.
    reconciler.reconcile(_event("evt_8b", "customer.subscription.deleted", payload))
    after_second = subscriptions.records["tenant-1"]

    assert after_second == after_first


def test_same_event_id_is_processed_once(reconciler, make_subscription, subscriptions, event_logger) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")
    event = _event("evt_9", "customer.subscription.updated", _subscription_payload())

    first = reconciler.reconcile(event)
    second = reconciler.reconcile(event)

    assert first.outcome == ReconciliationOutcome.APPLIED
    assert second.outcome == ReconciliationOutcome.DUPLICATE
    assert len(event_logger.events) == 1


def test_unknown_event_kind_is_ignored(reconciler, event_store) -> None:
    result = reconciler.reconcile(_event("evt_10", "invoice.paid", {"customer": "cus_123"}))

    assert result.outcome == ReconciliationOutcome.IGNORED
    assert event_store.is_recorded("evt_10")


def test_failed_handler_leaves_event_unrecorded(reconciler, make_subscription, subscriptions, event_store) -> None:
    make_subscription("tenant-1", billing_customer_id="cus_123")

    def broken_save(_record):
        raise RuntimeError("database unavailable")

    subscriptions.save = broken_save

    with pytest.raises(RuntimeError):
        reconciler.reconcile(_event("evt_11", "customer.subscription.updated", _subscription_payload()))

    assert not event_store.is_recorded("evt_11")


def test_provider_event_envelope_is_unwrapped() -> None:
    event = BillingWebhookEvent.from_provider_event(
        {
            "id": "evt_1",
            "type": "customer.subscription.deleted",
            "created": PERIOD_START,
            "data": {"object": {"id": "sub_1", "customer": "cus_1"}},
        }
    )

    assert event.payload == {"id": "sub_1", "customer": "cus_1"}
    assert event.received_at == datetime(2024, 5, 1, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        BillingWebhookEvent.from_provider_event({"id": "evt_2", "type": "x", "data": {}})
