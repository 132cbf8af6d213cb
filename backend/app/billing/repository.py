"""Persistence layer for billing webhook bookkeeping."""
from __future__ import annotations

import psycopg2.extras

from ..db import PostgresRepository
from .models import BillingWebhookEvent


class PostgresBillingRepository(PostgresRepository):
    """Stores processed webhook deliveries keyed by provider event id."""

    def is_recorded(self, event_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT 1
                FROM billing_webhook_events
                WHERE event_id = %s
                LIMIT 1
                """,
                (event_id,),
            )
            return cursor.fetchone() is not None

    def record_webhook_event(self, event: BillingWebhookEvent) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO billing_webhook_events (
                    event_id,
                    event_type,
                    payload,
                    received_at,
                    processed_at
                )
                VALUES (%s, %s, %s, %s, NOW())
                ON CONFLICT (event_id) DO NOTHING
                """,
                (
                    event.event_id,
                    event.event_type,
                    psycopg2.extras.Json(event.payload),
                    event.received_at,
                ),
            )
            return cursor.rowcount > 0


__all__ = ["PostgresBillingRepository"]
