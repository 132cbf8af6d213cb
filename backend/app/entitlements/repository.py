"""PostgreSQL persistence for plans and tenant subscriptions."""
from __future__ import annotations

from typing import List, Optional

from ..db import PostgresRepository
from .catalog import PLAN_RANK
from .models import Plan, PlanCode, SubscriptionRecord, SubscriptionStatus


def _row_to_plan(row: dict) -> Plan:
    return Plan(
        code=PlanCode(row["code"]),
        name=row["name"],
        monthly_price_mxn=int(row["monthly_price_mxn"]),
        max_products=row.get("max_products"),
        max_catalogs=row.get("max_catalogs"),
        branding_visible=bool(row.get("branding_visible", True)),
        analytics_level=int(row.get("analytics_level") or 1),
        created_at=row.get("created_at"),
    )


def _row_to_subscription(row: dict) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=str(row["id"]),
        tenant_id=row["tenant_id"],
        plan_code=row["plan_code"],
        status=SubscriptionStatus(row["status"]),
        trial_started_at=row["trial_started_at"],
        trial_ends_at=row["trial_ends_at"],
        current_period_starts_at=row.get("current_period_starts_at"),
        current_period_ends_at=row.get("current_period_ends_at"),
        billing_customer_id=row.get("billing_customer_id"),
        billing_subscription_id=row.get("billing_subscription_id"),
        billing_price_id=row.get("billing_price_id"),
        cancel_at_period_end=bool(row.get("cancel_at_period_end")),
        canceled_at=row.get("canceled_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresPlanRepository(PostgresRepository):
    """Stores plans keyed by their unique code."""

    def get_plan(self, code: PlanCode) -> Optional[Plan]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM plans
                WHERE code = %s
                LIMIT 1
                """,
                (code.value,),
            )
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def list_plans(self) -> List[Plan]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM plans
                WHERE code = ANY(%s)
                """,
                ([code.value for code in PLAN_RANK],),
            )
            rows = cursor.fetchall() or []
            return [_row_to_plan(row) for row in rows]

    def insert_plan_if_absent(self, plan: Plan) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO plans (
                    code,
                    name,
                    monthly_price_mxn,
                    max_products,
                    max_catalogs,
                    branding_visible,
                    analytics_level
                )
                VALUES (%(code)s, %(name)s, %(monthly_price_mxn)s, %(max_products)s,
                        %(max_catalogs)s, %(branding_visible)s, %(analytics_level)s)
                ON CONFLICT (code) DO NOTHING
                """,
                {
                    "code": plan.code.value,
                    "name": plan.name,
                    "monthly_price_mxn": plan.monthly_price_mxn,
                    "max_products": plan.max_products,
                    "max_catalogs": plan.max_catalogs,
                    "branding_visible": plan.branding_visible,
                    "analytics_level": plan.analytics_level,
                },
            )
            return cursor.rowcount > 0


class PostgresSubscriptionRepository(PostgresRepository):
    """Stores one subscription row per tenant (unique ``tenant_id``)."""

    def get_by_tenant(self, tenant_id: str) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM subscriptions
                WHERE tenant_id = %s
                LIMIT 1
                """,
                (tenant_id,),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None

    def get_by_billing_customer(self, customer_id: str) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM subscriptions
                WHERE billing_customer_id = %s
                ORDER BY created_at
                LIMIT 1
                """,
                (customer_id,),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None

    def insert(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        """Insert a new record; raises ``DuplicateKeyError`` if the tenant already has one."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO subscriptions (
                    id,
                    tenant_id,
                    plan_code,
                    status,
                    trial_started_at,
                    trial_ends_at,
                    created_at,
                    updated_at
                )
                VALUES (%(id)s, %(tenant_id)s, %(plan_code)s, %(status)s,
                        %(trial_started_at)s, %(trial_ends_at)s, %(created_at)s, %(updated_at)s)
                RETURNING *
                """,
                {
                    "id": subscription.id,
                    "tenant_id": subscription.tenant_id,
                    "plan_code": subscription.plan_code,
                    "status": subscription.status.value,
                    "trial_started_at": subscription.trial_started_at,
                    "trial_ends_at": subscription.trial_ends_at,
                    "created_at": subscription.created_at,
                    "updated_at": subscription.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist subscription")
            return _row_to_subscription(row)

    def save(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        """Overwrite the mutable fields of an existing record (last write wins)."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE subscriptions
                SET plan_code = %(plan_code)s,
                    status = %(status)s,
                    current_period_starts_at = %(current_period_starts_at)s,
                    current_period_ends_at = %(current_period_ends_at)s,
                    billing_customer_id = %(billing_customer_id)s,
                    billing_subscription_id = %(billing_subscription_id)s,
                    billing_price_id = %(billing_price_id)s,
                    cancel_at_period_end = %(cancel_at_period_end)s,
                    canceled_at = %(canceled_at)s,
                    updated_at = %(updated_at)s
                WHERE tenant_id = %(tenant_id)s
                RETURNING *
                """,
                {
                    "tenant_id": subscription.tenant_id,
                    "plan_code": subscription.plan_code,
                    "status": subscription.status.value,
                    "current_period_starts_at": subscription.current_period_starts_at,
                    "current_period_ends_at": subscription.current_period_ends_at,
                    "billing_customer_id": subscription.billing_customer_id,
                    "billing_subscription_id": subscription.billing_subscription_id,
                    "billing_price_id": subscription.billing_price_id,
                    "cancel_at_period_end": subscription.cancel_at_period_end,
                    "canceled_at": subscription.canceled_at,
                    "updated_at": subscription.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise LookupError(f"Subscription not found for tenant={subscription.tenant_id}")
            return _row_to_subscription(row)

    def set_billing_customer_if_absent(self, tenant_id: str, customer_id: str) -> Optional[SubscriptionRecord]:
        """Store ``customer_id`` unless another writer stored one first."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE subscriptions
                SET billing_customer_id = COALESCE(billing_customer_id, %s),
                    updated_at = NOW()
                WHERE tenant_id = %s
                RETURNING *
                """,
                (customer_id, tenant_id),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None


__all__ = ["PostgresPlanRepository", "PostgresSubscriptionRepository"]
