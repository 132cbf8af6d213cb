"""Store resources (products, catalogs) created under plan ceilings."""

from .exceptions import ResourceConflictError, ResourceError, ResourceValidationError, StoreAccessError
from .importer import BulkImportOrchestrator, parse_stock
from .models import (
    CatalogCreate,
    ImportReport,
    ImportRowError,
    ProductCreate,
    ProductImportRow,
)
from .service import ResourceService, ResourceStore
from .slugs import extract_slug_from_url, generate_slug

__all__ = [
    "BulkImportOrchestrator",
    "CatalogCreate",
    "ImportReport",
    "ImportRowError",
    "ProductCreate",
    "ProductImportRow",
    "ResourceConflictError",
    "ResourceError",
    "ResourceService",
    "ResourceStore",
    "ResourceValidationError",
    "StoreAccessError",
    "extract_slug_from_url",
    "generate_slug",
    "parse_stock",
]
