"""Shared in-memory collaborators for entitlement, billing and resource tests."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Set
from uuid import uuid4

import pytest

from backend.app.billing import BillingAuditEvent, BillingWebhookEvent, PriceMap
from backend.app.db import DuplicateKeyError
from backend.app.entitlements import (
    EntitlementService,
    Plan,
    PlanCatalog,
    PlanCode,
    PlanRepository,
    ResourceType,
    SubscriptionRecord,
    SubscriptionRepository,
    UsageCounter,
)
from backend.app.feature_gates import EntitlementGuard


class FakeClock:
    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryPlanRepository(PlanRepository):
    def __init__(self) -> None:
        self.plans: Dict[PlanCode, Plan] = {}

    def get_plan(self, code: PlanCode) -> Optional[Plan]:
        return self.plans.get(code)

    def list_plans(self) -> List[Plan]:
        return list(self.plans.values())

    def insert_plan_if_absent(self, plan: Plan) -> bool:
        if plan.code in self.plans:
            return False
        self.plans[plan.code] = plan
        return True

    def put(self, plan: Plan) -> None:
        self.plans[plan.code] = plan


class InMemorySubscriptionRepository(SubscriptionRepository):
    """Enforces one record per tenant the way the unique index does."""

    def __init__(self) -> None:
        self.records: Dict[str, SubscriptionRecord] = {}
        self.insert_attempts = 0
        self.before_insert: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    def get_by_tenant(self, tenant_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            return self.records.get(tenant_id)

    def get_by_billing_customer(self, customer_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            for record in self.records.values():
                if record.billing_customer_id == customer_id:
                    return record
        return None

    def insert(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        if self.before_insert is not None:
            self.before_insert()
        with self._lock:
            self.insert_attempts += 1
            if subscription.tenant_id in self.records:
                raise DuplicateKeyError("subscriptions_tenant_id_key")
            self.records[subscription.tenant_id] = subscription
            return subscription

    def save(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        with self._lock:
            if subscription.tenant_id not in self.records:
                raise LookupError(f"Subscription not found for tenant={subscription.tenant_id}")
            self.records[subscription.tenant_id] = subscription
            return subscription

    def set_billing_customer_if_absent(self, tenant_id: str, customer_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            record = self.records.get(tenant_id)
            if record is None:
                return None
            if record.billing_customer_id is None:
                record = record.model_copy(update={"billing_customer_id": customer_id})
                self.records[tenant_id] = record
            return record

    def put(self, subscription: SubscriptionRecord) -> None:
        with self._lock:
            self.records[subscription.tenant_id] = subscription


class InMemoryResourceStore:
    """Stores, products and catalogs with per-store unique slugs."""

    def __init__(self) -> None:
        self.stores: Dict[str, str] = {}
        self.rows: Dict[ResourceType, List[Dict[str, Any]]] = {
            ResourceType.PRODUCTS: [],
            ResourceType.CATALOGS: [],
        }

    def add_store(self, tenant_id: str, store_id: str) -> str:
        self.stores[store_id] = tenant_id
        return store_id

    def seed(self, store_id: str, resource_type: ResourceType, count: int) -> None:
        for index in range(count):
            self.rows[resource_type].append(
                {"id": str(uuid4()), "store_id": store_id, "slug": f"seed-{resource_type.value}-{index}"}
            )

    def rows_for(self, store_id: str, resource_type: ResourceType) -> List[Dict[str, Any]]:
        return [row for row in self.rows[resource_type] if row["store_id"] == store_id]

    def find_store_id(self, tenant_id: str) -> Optional[str]:
        for store_id, owner in self.stores.items():
            if owner == tenant_id:
                return store_id
        return None

    def store_belongs_to(self, store_id: str, tenant_id: str) -> bool:
        return self.stores.get(store_id) == tenant_id

    def count(self, store_id: str, resource_type: ResourceType) -> int:
        return len(self.rows_for(store_id, resource_type))

    def list_catalog_ids_by_slug(self, store_id: str) -> Dict[str, str]:
        return {row["slug"].lower(): row["id"] for row in self.rows_for(store_id, ResourceType.CATALOGS)}

    def list_product_slugs(self, store_id: str) -> Set[str]:
        return {row["slug"] for row in self.rows_for(store_id, ResourceType.PRODUCTS)}

    def insert(self, resource_type: ResourceType, store_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        if any(row["slug"] == fields["slug"] for row in self.rows_for(store_id, resource_type)):
            raise DuplicateKeyError(f"{resource_type.value}_store_id_slug_key")
        row = {"id": str(uuid4()), "store_id": store_id, **fields}
        self.rows[resource_type].append(row)
        return row


class RecordingEventLogger:
    def __init__(self) -> None:
        self.events: List[BillingAuditEvent] = []

    def log(self, event: BillingAuditEvent) -> None:
        self.events.append(event)


class InMemoryWebhookEventStore:
    def __init__(self) -> None:
        self.events: Dict[str, BillingWebhookEvent] = {}

    def is_recorded(self, event_id: str) -> bool:
        return event_id in self.events

    def record_webhook_event(self, event: BillingWebhookEvent) -> bool:
        if event.event_id in self.events:
            return False
        self.events[event.event_id] = event
        return True


class FakePaymentProvider:
    def __init__(self) -> None:
        self.customers: List[Dict[str, Any]] = []
        self.checkout_calls: List[Dict[str, Any]] = []
        self.portal_calls: List[Dict[str, Any]] = []

    def create_customer(
        self,
        *,
        tenant_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, object]:
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "tenant_id": tenant_id, "email": email})
        return {"id": customer_id}

    def create_checkout_session(self, **kwargs: Any) -> Dict[str, object]:
        self.checkout_calls.append(kwargs)
        session_id = f"cs_{len(self.checkout_calls)}"
        return {"id": session_id, "url": f"https://pay.example/{session_id}"}

    def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, object]:
        self.portal_calls.append({"customer_id": customer_id, "return_url": return_url})
        return {"id": "ps_1", "url": f"https://portal.example/{customer_id}"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def plan_repository() -> InMemoryPlanRepository:
    return InMemoryPlanRepository()


@pytest.fixture
def plan_catalog(plan_repository: InMemoryPlanRepository) -> PlanCatalog:
    catalog = PlanCatalog(plan_repository)
    catalog.ensure_seeded()
    return catalog


@pytest.fixture
def subscriptions() -> InMemorySubscriptionRepository:
    return InMemorySubscriptionRepository()


@pytest.fixture
def resource_store() -> InMemoryResourceStore:
    return InMemoryResourceStore()


@pytest.fixture
def usage_counter(resource_store: InMemoryResourceStore) -> UsageCounter:
    return UsageCounter(resource_store)


@pytest.fixture
def entitlement_service(
    plan_catalog: PlanCatalog,
    subscriptions: InMemorySubscriptionRepository,
    usage_counter: UsageCounter,
    clock: FakeClock,
) -> EntitlementService:
    return EntitlementService(
        plan_catalog=plan_catalog,
        subscriptions=subscriptions,
        usage_counter=usage_counter,
        clock=clock,
    )


@pytest.fixture
def guard(entitlement_service: EntitlementService, usage_counter: UsageCounter) -> EntitlementGuard:
    return EntitlementGuard(entitlements=entitlement_service, usage_counter=usage_counter)


@pytest.fixture
def price_map() -> PriceMap:
    return PriceMap({PlanCode.GROWTH: "price_growth", PlanCode.PRO: "price_pro"})


@pytest.fixture
def make_subscription(clock: FakeClock, subscriptions: InMemorySubscriptionRepository):
    """Store a subscription for ``tenant_id`` with the given field overrides."""

    def _make(tenant_id: str = "tenant-1", **overrides: Any) -> SubscriptionRecord:
        now = clock()
        fields: Dict[str, Any] = {
            "id": str(uuid4()),
            "tenant_id": tenant_id,
            "plan_code": PlanCode.STARTER.value,
            "status": "active",
            "trial_started_at": now,
            "trial_ends_at": now + timedelta(days=30),
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        record = SubscriptionRecord(**fields)
        subscriptions.put(record)
        return record

    return _make


@pytest.fixture
def event_logger() -> RecordingEventLogger:
    return RecordingEventLogger()


@pytest.fixture
def event_store() -> InMemoryWebhookEventStore:
    return InMemoryWebhookEventStore()


@pytest.fixture
def provider() -> FakePaymentProvider:
    return FakePaymentProvider()
