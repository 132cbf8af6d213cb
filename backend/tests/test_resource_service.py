from __future__ import annotations

import pytest

from backend.app.entitlements import ResourceType
from backend.app.feature_gates import PLAN_LIMIT_REACHED, FeatureGateError
from backend.app.resources import (
    ResourceConflictError,
    ResourceService,
    ResourceValidationError,
    StoreAccessError,
)


@pytest.fixture
def service(resource_store, guard) -> ResourceService:
    return ResourceService(store=resource_store, guard=guard)


@pytest.fixture
def starter_store(make_subscription, resource_store) -> str:
    make_subscription("tenant-1", plan_code="starter")
    return resource_store.add_store("tenant-1", "store-1")


def test_create_product_inserts_validated_fields(service, starter_store, resource_store) -> None:
    created = service.create_product(starter_store, "tenant-1", {"name": "Blue mug", "slug": "blue-mug", "stock": 4})

    assert created["slug"] == "blue-mug"
    assert created["status"] == "active"
    assert resource_store.count(starter_store, ResourceType.PRODUCTS) == 1


def test_create_catalog_at_ceiling_is_denied_before_validation(service, starter_store, resource_store) -> None:
    resource_store.seed(starter_store, ResourceType.CATALOGS, 2)

    with pytest.raises(FeatureGateError) as exc:
        service.create_catalog(starter_store, "tenant-1", {"name": "x"})

    assert exc.value.code == PLAN_LIMIT_REACHED
    assert resource_store.count(starter_store, ResourceType.CATALOGS) == 2


def test_invalid_fields_raise_validation_error(service, starter_store) -> None:
    with pytest.raises(ResourceValidationError) as exc:
        service.create_product(starter_store, "tenant-1", {"name": "Mug", "slug": "Not A Slug"})

    assert "slug" in str(exc.value)


def test_duplicate_slug_is_a_conflict(service, starter_store) -> None:
    service.create_catalog(starter_store, "tenant-1", {"name": "Kitchen", "slug": "kitchen"})

    with pytest.raises(ResourceConflictError):
        service.create_catalog(starter_store, "tenant-1", {"name": "Kitchen 2", "slug": "kitchen"})


def test_foreign_store_is_rejected(service, starter_store, resource_store) -> None:
    resource_store.add_store("tenant-2", "store-2")

    with pytest.raises(StoreAccessError):
        service.create_product("store-2", "tenant-1", {"name": "Mug", "slug": "mug"})

    assert resource_store.count("store-2", ResourceType.PRODUCTS) == 0


def test_foreign_store_over_ceiling_is_rejected_without_usage(service, starter_store, resource_store) -> None:
    resource_store.add_store("tenant-2", "store-2")
    resource_store.seed("store-2", ResourceType.PRODUCTS, 25)

    with pytest.raises(StoreAccessError):
        service.create_product("store-2", "tenant-1", {"name": "Mug", "slug": "mug"})

    assert resource_store.count("store-2", ResourceType.PRODUCTS) == 25
