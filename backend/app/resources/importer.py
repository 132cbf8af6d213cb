"""Bulk product import that re-checks the plan ceiling between rows."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from ..db import DuplicateKeyError
from ..entitlements.models import ResourceType
from ..feature_gates.enforcement import EntitlementGuard
from ..feature_gates.quota import LimitDecision
from .exceptions import ResourceValidationError, StoreAccessError
from .models import ImportReport, ImportRowError, ProductCreate, ProductImportRow
from .service import ResourceStore, validate_fields
from .slugs import extract_slug_from_url, generate_slug

logger = logging.getLogger(__name__)


def parse_stock(raw: Optional[Union[int, float, str]]) -> int:
    """Blank means 0; thousands separators are accepted; fractions are floored."""

    if raw is None:
        return 0
    if isinstance(raw, str):
        text = raw.replace(",", "").strip()
        if not text:
            return 0
        try:
            value = float(text)
        except ValueError as exc:
            raise ResourceValidationError("Invalid stock") from exc
    else:
        value = float(raw)
    if not math.isfinite(value) or value < 0:
        raise ResourceValidationError("Invalid stock")
    return math.floor(value)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


@dataclass
class BulkImportOrchestrator:
    """Imports rows strictly in order.

    The ceiling is checked once before the first row and again after every
    successful insert, so an import stops exactly at the limit. Bad rows only
    fail themselves; a denial fails every row that was not attempted yet.
    """

    store: ResourceStore
    guard: EntitlementGuard

    def import_products(
        self,
        store_id: str,
        tenant_id: str,
        rows: Sequence[ProductImportRow],
    ) -> ImportReport:
        if not self.store.store_belongs_to(store_id, tenant_id):
            raise StoreAccessError(f"Store {store_id} is not owned by tenant {tenant_id}")

        numbered = [(row.row_number if row.row_number is not None else index + 2, row) for index, row in enumerate(rows)]
        if not numbered:
            return ImportReport()

        errors: List[ImportRowError] = []
        imported = 0

        decision = self.guard.check_allowed(store_id, tenant_id, ResourceType.PRODUCTS)
        if not decision.allowed:
            return self._halt(numbered, 0, decision, errors, imported)

        catalogs = self.store.list_catalog_ids_by_slug(store_id)
        used_slugs = self.store.list_product_slugs(store_id)

        for position, (row_number, row) in enumerate(numbered):
            try:
                product = self._build_product(row, catalogs, used_slugs)
                self.store.insert(ResourceType.PRODUCTS, store_id, product.to_fields())
            except ResourceValidationError as exc:
                errors.append(ImportRowError(row_number=row_number, message=str(exc)))
                continue
            except DuplicateKeyError:
                errors.append(ImportRowError(row_number=row_number, message="A product with this slug already exists"))
                continue

            used_slugs.add(product.slug)
            imported += 1

            if position + 1 < len(numbered):
                decision = self.guard.check_allowed(store_id, tenant_id, ResourceType.PRODUCTS)
                if not decision.allowed:
                    return self._halt(numbered, position + 1, decision, errors, imported)

        logger.info("Imported %s of %s products into store %s", imported, len(numbered), store_id)
        return ImportReport(imported=imported, failed=len(errors), errors=errors)

    def _halt(
        self,
        numbered: Sequence[Tuple[int, ProductImportRow]],
        start: int,
        decision: LimitDecision,
        errors: List[ImportRowError],
        imported: int,
    ) -> ImportReport:
        reason = decision.reason or "Plan limit reached"
        remaining = numbered[start:]
        errors.extend(ImportRowError(row_number=row_number, message=reason) for row_number, _ in remaining)
        halted_at = remaining[0][0] if remaining else None
        logger.info(
            "Product import halted at row %s after %s inserts: %s",
            halted_at,
            imported,
            decision.code,
        )
        return ImportReport(imported=imported, failed=len(errors), errors=errors, halted_at_row=halted_at)

    def _build_product(
        self,
        row: ProductImportRow,
        catalogs: Dict[str, str],
        used_slugs: Set[str],
    ) -> ProductCreate:
        name = _clean(row.name)
        if not name:
            raise ResourceValidationError("Name is required")

        explicit_slug = _clean(row.slug)
        url = _clean(row.url)
        candidate = (extract_slug_from_url(url) if url else "") or explicit_slug or ""
        slug = generate_slug(candidate) if candidate else ""
        slug = slug or generate_slug(name)
        if not slug:
            raise ResourceValidationError("Could not generate a slug")

        if explicit_slug:
            if slug in used_slugs:
                raise ResourceValidationError(f'The slug "{slug}" already exists')
        else:
            base = slug
            counter = 1
            while slug in used_slugs:
                slug = f"{base}-{counter}"
                counter += 1

        catalog_id = None
        catalog_slug = _clean(row.catalog_slug)
        if catalog_slug:
            catalog_id = catalogs.get(catalog_slug.lower())
            if catalog_id is None:
                raise ResourceValidationError(f'Catalog "{catalog_slug.lower()}" not found')

        fields = {
            "name": name,
            "slug": slug,
            "description": _clean(row.description),
            "price_text": _clean(row.price_text),
            "stock": parse_stock(row.stock),
            "catalog_id": catalog_id,
        }
        return validate_fields(ProductCreate, fields)


__all__ = ["BulkImportOrchestrator", "parse_stock"]
