"""Application wiring for guarded resource creation."""
from __future__ import annotations

from functools import lru_cache

from ..resources import BulkImportOrchestrator, ResourceService
from ..resources.repository import PostgresResourceStore
from .billing import get_entitlement_guard


@lru_cache(maxsize=1)
def get_resource_store() -> PostgresResourceStore:
    return PostgresResourceStore()


@lru_cache(maxsize=1)
def get_resource_service() -> ResourceService:
    return ResourceService(store=get_resource_store(), guard=get_entitlement_guard())


@lru_cache(maxsize=1)
def get_bulk_importer() -> BulkImportOrchestrator:
    return BulkImportOrchestrator(store=get_resource_store(), guard=get_entitlement_guard())


__all__ = ["get_bulk_importer", "get_resource_service", "get_resource_store"]
