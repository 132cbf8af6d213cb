"""Domain models for the billing system."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import PlanCode, SubscriptionRecord


class BillingWebhookEventType(str, Enum):
    """Webhook event types that the application reacts to."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class ReconciliationOutcome(str, Enum):
    """What the reconciler did with one delivered event."""

    APPLIED = "applied"
    DROPPED = "dropped"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"


def _epoch_to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _reference_id(value: Any) -> Optional[str]:
    """Provider references arrive either as a bare id or an expanded object."""

    if value is None:
        return None
    if isinstance(value, Mapping):
        nested = value.get("id")
        return str(nested) if nested else None
    text = str(value).strip()
    return text or None


class BillingWebhookEvent(BaseModel):
    """Verified webhook delivery; ``payload`` is the event's ``data.object``."""

    event_id: str
    event_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def kind(self) -> Optional[BillingWebhookEventType]:
        try:
            return BillingWebhookEventType(self.event_type)
        except ValueError:
            return None

    @classmethod
    def from_provider_event(cls, event: Mapping[str, Any]) -> "BillingWebhookEvent":
        """Build from a decoded provider event (``{"id", "type", "data": {"object"}}``)."""

        event_id = event.get("id")
        event_type = event.get("type")
        if not event_id or not event_type:
            raise ValueError("webhook event is missing id or type")
        data = event.get("data") or {}
        payload = data.get("object") if isinstance(data, Mapping) else None
        if not isinstance(payload, Mapping):
            raise ValueError("webhook event is missing data.object")
        created = event.get("created")
        received_at = _epoch_to_datetime(created) or datetime.now(timezone.utc)
        return cls(
            event_id=str(event_id),
            event_type=str(event_type),
            payload=dict(payload),
            received_at=received_at,
        )


class CheckoutCompletedEvent(BaseModel):
    """A completed checkout that links a billing customer and subscription."""

    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    tenant_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CheckoutCompletedEvent":
        metadata = payload.get("metadata") or {}
        tenant_id = metadata.get("tenant_id") if isinstance(metadata, Mapping) else None
        return cls(
            customer_id=_reference_id(payload.get("customer")),
            subscription_id=_reference_id(payload.get("subscription")),
            tenant_id=str(tenant_id) if tenant_id else None,
        )


class SubscriptionChangeEvent(BaseModel):
    """Provider-side subscription state carried by created/updated/deleted events."""

    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    price_id: Optional[str] = None
    status: Optional[str] = None
    current_period_starts_at: Optional[datetime] = None
    current_period_ends_at: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SubscriptionChangeEvent":
        first_item: Mapping[str, Any] = {}
        items = payload.get("items")
        if isinstance(items, Mapping):
            data = items.get("data") or []
            if data and isinstance(data[0], Mapping):
                first_item = data[0]

        price = first_item.get("price") if first_item else None
        price_id = _reference_id(price)

        # Newer API versions moved the period bounds onto the subscription item.
        period_start = payload.get("current_period_start", first_item.get("current_period_start"))
        period_end = payload.get("current_period_end", first_item.get("current_period_end"))

        return cls(
            customer_id=_reference_id(payload.get("customer")),
            subscription_id=_reference_id(payload.get("id")),
            price_id=price_id,
            status=payload.get("status"),
            current_period_starts_at=_epoch_to_datetime(period_start),
            current_period_ends_at=_epoch_to_datetime(period_end),
            cancel_at_period_end=bool(payload.get("cancel_at_period_end")),
            canceled_at=_epoch_to_datetime(payload.get("canceled_at")),
        )


class ReconciliationResult(BaseModel):
    """Outcome of processing one webhook delivery."""

    event_id: str
    event_type: str
    outcome: ReconciliationOutcome
    tenant_id: Optional[str] = None
    subscription: Optional[SubscriptionRecord] = None
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class BillingAuditEventType(str, Enum):
    """Audit event categories emitted by the billing subsystem."""

    CUSTOMER_LINKED = "customer_linked"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    EVENT_DROPPED = "event_dropped"


class BillingAuditEvent(BaseModel):
    """Structured audit event for analytics and notifications."""

    event_type: BillingAuditEventType
    tenant_id: Optional[str] = None
    provider_event_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckoutSession(BaseModel):
    """Return value of a checkout session creation request."""

    session_id: str
    checkout_url: str
    plan_code: PlanCode

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PortalSession(BaseModel):
    """Hosted billing portal link."""

    url: str

    model_config = ConfigDict(frozen=True)
