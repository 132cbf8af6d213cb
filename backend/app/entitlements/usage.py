"""Usage counting for plan-capped store resources."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from .models import ResourceType, UsageSnapshot


class ResourceCounter(Protocol):
    """Read access to the store resources owned by tenants."""

    def find_store_id(self, tenant_id: str) -> Optional[str]:
        ...

    def count(self, store_id: str, resource_type: ResourceType) -> int:
        ...


@dataclass(frozen=True)
class UsageCounter:
    """Counts committed resources at call time. Nothing is cached."""

    counter: ResourceCounter

    def count(self, store_id: Optional[str], resource_type: ResourceType) -> int:
        if not store_id:
            return 0
        return int(self.counter.count(store_id, resource_type) or 0)

    def count_products(self, store_id: Optional[str]) -> int:
        return self.count(store_id, ResourceType.PRODUCTS)

    def count_catalogs(self, store_id: Optional[str]) -> int:
        return self.count(store_id, ResourceType.CATALOGS)

    def snapshot(self, store_id: Optional[str]) -> UsageSnapshot:
        return UsageSnapshot(
            products=self.count_products(store_id),
            catalogs=self.count_catalogs(store_id),
        )

    def snapshot_for_tenant(self, tenant_id: str) -> Tuple[Optional[str], UsageSnapshot]:
        """Return the tenant's store id (if any) and its usage; zero without a store."""

        store_id = self.counter.find_store_id(tenant_id)
        return store_id, self.snapshot(store_id)
