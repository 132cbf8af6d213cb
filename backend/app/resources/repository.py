"""PostgreSQL access to stores, products and catalogs."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Set
from uuid import uuid4

from ..db import PostgresRepository
from ..entitlements.models import ResourceType

_COUNT_SQL = {
    ResourceType.PRODUCTS: "SELECT COUNT(*) AS total FROM products WHERE store_id = %s",
    ResourceType.CATALOGS: "SELECT COUNT(*) AS total FROM catalogs WHERE store_id = %s",
}

_INSERT_PRODUCT_SQL = """
    INSERT INTO products (
        id,
        store_id,
        catalog_id,
        name,
        slug,
        description,
        price_text,
        status,
        stock,
        out_of_stock_behavior,
        cta_override,
        payment_url,
        whatsapp_message,
        contact_url,
        sort_order
    )
    VALUES (%(id)s, %(store_id)s, %(catalog_id)s, %(name)s, %(slug)s, %(description)s,
            %(price_text)s, %(status)s, %(stock)s, %(out_of_stock_behavior)s, %(cta_override)s,
            %(payment_url)s, %(whatsapp_message)s, %(contact_url)s, %(sort_order)s)
    RETURNING *
"""

_INSERT_CATALOG_SQL = """
    INSERT INTO catalogs (id, store_id, name, slug, visible, sort_order)
    VALUES (%(id)s, %(store_id)s, %(name)s, %(slug)s, %(visible)s, %(sort_order)s)
    RETURNING *
"""


class PostgresResourceStore(PostgresRepository):
    """Counts and inserts the resources a plan caps."""

    def find_store_id(self, tenant_id: str) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id
                FROM stores
                WHERE owner_id = %s
                LIMIT 1
                """,
                (tenant_id,),
            )
            row = cursor.fetchone()
            return str(row["id"]) if row else None

    def store_belongs_to(self, store_id: str, tenant_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM stores WHERE id = %s AND owner_id = %s LIMIT 1",
                (store_id, tenant_id),
            )
            return cursor.fetchone() is not None

    def count(self, store_id: str, resource_type: ResourceType) -> int:
        with self._cursor() as cursor:
            cursor.execute(_COUNT_SQL[resource_type], (store_id,))
            row = cursor.fetchone()
            return int(row["total"]) if row else 0

    def list_catalog_ids_by_slug(self, store_id: str) -> Dict[str, str]:
        """Map lowercased catalog slug to catalog id."""

        with self._cursor() as cursor:
            cursor.execute("SELECT id, slug FROM catalogs WHERE store_id = %s", (store_id,))
            rows = cursor.fetchall() or []
            return {str(row["slug"]).lower(): str(row["id"]) for row in rows if row.get("slug")}

    def list_product_slugs(self, store_id: str) -> Set[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT slug FROM products WHERE store_id = %s", (store_id,))
            rows = cursor.fetchall() or []
            return {str(row["slug"]) for row in rows}

    def insert(self, resource_type: ResourceType, store_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert one resource; a slug collision raises ``DuplicateKeyError``."""

        params: Dict[str, Any] = {"id": str(uuid4()), "store_id": store_id, **fields}
        query = _INSERT_PRODUCT_SQL if resource_type == ResourceType.PRODUCTS else _INSERT_CATALOG_SQL
        with self._cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            if not row:
                raise RuntimeError(f"Failed to persist {resource_type.value} row")
            return dict(row)


__all__ = ["PostgresResourceStore"]
