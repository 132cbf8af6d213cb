"""Single-resource creation guarded by the tenant's plan ceilings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Set

from pydantic import BaseModel, ValidationError

from ..db import DuplicateKeyError
from ..entitlements.models import ResourceType
from ..feature_gates.enforcement import EntitlementGuard
from .exceptions import ResourceConflictError, ResourceValidationError, StoreAccessError
from .models import CatalogCreate, ProductCreate

logger = logging.getLogger(__name__)


class ResourceStore(Protocol):
    """Store-scoped reads and inserts for products and catalogs."""

    def find_store_id(self, tenant_id: str) -> Optional[str]:
        ...

    def store_belongs_to(self, store_id: str, tenant_id: str) -> bool:
        ...

    def count(self, store_id: str, resource_type: ResourceType) -> int:
        ...

    def list_catalog_ids_by_slug(self, store_id: str) -> Dict[str, str]:
        ...

    def list_product_slugs(self, store_id: str) -> Set[str]:
        ...

    def insert(self, resource_type: ResourceType, store_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...


def first_validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid data"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def validate_fields(model: type[BaseModel], fields: Mapping[str, Any]) -> BaseModel:
    try:
        return model.model_validate(dict(fields))
    except ValidationError as exc:
        raise ResourceValidationError(first_validation_message(exc)) from exc


@dataclass
class ResourceService:
    """Creates products and catalogs one at a time.

    Order of checks: store ownership, plan ceiling, field validation, insert.
    Ownership comes first so a foreign store never reports its usage.
    """

    store: ResourceStore
    guard: EntitlementGuard

    def create_product(self, store_id: str, tenant_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self._create(ResourceType.PRODUCTS, ProductCreate, store_id, tenant_id, fields)

    def create_catalog(self, store_id: str, tenant_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return self._create(ResourceType.CATALOGS, CatalogCreate, store_id, tenant_id, fields)

    def _create(
        self,
        resource_type: ResourceType,
        model: type[BaseModel],
        store_id: str,
        tenant_id: str,
        fields: Mapping[str, Any],
    ) -> Dict[str, Any]:
        if not self.store.store_belongs_to(store_id, tenant_id):
            raise StoreAccessError(f"Store {store_id} is not owned by tenant {tenant_id}")
        self.guard.require_allowed(store_id, tenant_id, resource_type)
        validated = validate_fields(model, fields)
        try:
            created = self.store.insert(resource_type, store_id, validated.to_fields())
        except DuplicateKeyError as exc:
            raise ResourceConflictError(validated.slug) from exc
        logger.info("Created %s %s in store %s", resource_type.value, validated.slug, store_id)
        return created


__all__ = ["ResourceService", "ResourceStore", "first_validation_message", "validate_fields"]
