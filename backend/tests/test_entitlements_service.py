from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from backend.app.db import DuplicateKeyError
from backend.app.entitlements import (
    EntitlementService,
    NoSubscriptionError,
    PlanCode,
    PlanNotFoundError,
    ResourceType,
    SubscriptionStatus,
)


def test_first_access_creates_pro_trial(entitlement_service: EntitlementService, subscriptions, clock) -> None:
    limits = entitlement_service.resolve_limits("tenant-1")

    record = subscriptions.records["tenant-1"]
    assert limits.plan_code == PlanCode.PRO
    assert limits.status == SubscriptionStatus.TRIALING
    assert limits.max_products is None
    assert record.trial_started_at == clock.now
    assert record.trial_ends_at == clock.now + timedelta(days=30)


def test_existing_subscription_is_reused(entitlement_service: EntitlementService, subscriptions) -> None:
    first = entitlement_service.get_or_create_subscription("tenant-1")
    second = entitlement_service.get_or_create_subscription("tenant-1")

    assert first.id == second.id
    assert subscriptions.insert_attempts == 1


def test_concurrent_first_access_creates_one_subscription(entitlement_service: EntitlementService, subscriptions) -> None:
    barrier = threading.Barrier(2, timeout=5)
    subscriptions.before_insert = barrier.wait
    results = []
    errors = []

    def resolve() -> None:
        try:
            results.append(entitlement_service.get_or_create_subscription("tenant-race"))
        except Exception as exc:  # pragma: no cover - surfaced through the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=resolve) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert subscriptions.insert_attempts == 2
    assert len(subscriptions.records) == 1
    assert {record.id for record in results} == {subscriptions.records["tenant-race"].id}


def test_lost_race_without_winner_row_raises_no_subscription(entitlement_service: EntitlementService, subscriptions) -> None:
    def vanish() -> None:
        raise DuplicateKeyError("subscriptions_tenant_id_key")

    subscriptions.before_insert = vanish

    with pytest.raises(NoSubscriptionError):
        entitlement_service.resolve_limits("tenant-ghost")


def test_unknown_plan_code_is_not_defaulted(entitlement_service: EntitlementService, make_subscription) -> None:
    make_subscription("tenant-1", plan_code="legacy-gold")

    with pytest.raises(PlanNotFoundError):
        entitlement_service.resolve_limits("tenant-1")


def test_limits_pass_through_from_plan(entitlement_service: EntitlementService, make_subscription) -> None:
    make_subscription("tenant-1", plan_code="growth")

    limits = entitlement_service.resolve_limits("tenant-1")

    assert limits.limit_for(ResourceType.PRODUCTS) == 200
    assert limits.limit_for(ResourceType.CATALOGS) == 10


def test_trial_is_not_expired_in_process(entitlement_service: EntitlementService, clock) -> None:
    entitlement_service.resolve_limits("tenant-1")

    clock.advance(days=31)
    limits = entitlement_service.resolve_limits("tenant-1")
    overview = entitlement_service.get_billing_overview("tenant-1")

    assert limits.status == SubscriptionStatus.TRIALING
    assert overview.trial_days_left == 0


def test_usage_summary_without_store_is_zero(entitlement_service: EntitlementService, make_subscription) -> None:
    make_subscription("tenant-1", plan_code="starter")

    summary = entitlement_service.get_usage_summary("tenant-1")

    assert (summary.products_used, summary.catalogs_used) == (0, 0)
    assert (summary.max_products, summary.max_catalogs) == (20, 2)
    assert summary.plan_name == "Starter"


def test_billing_overview_counts_store_resources(
    entitlement_service: EntitlementService,
    resource_store,
    make_subscription,
) -> None:
    make_subscription("tenant-1", plan_code="growth")
    resource_store.add_store("tenant-1", "store-1")
    resource_store.seed("store-1", ResourceType.PRODUCTS, 7)
    resource_store.seed("store-1", ResourceType.CATALOGS, 2)

    overview = entitlement_service.get_billing_overview("tenant-1")

    assert overview.store_id == "store-1"
    assert (overview.usage.products, overview.usage.catalogs) == (7, 2)
    assert overview.plan.code == PlanCode.GROWTH
    assert overview.trial_days_left == 30
