"""Billing domain package."""

from .exceptions import (
    BillingError,
    BillingProviderError,
    BillingWebhookError,
    CheckoutNotAllowedError,
)
from .models import (
    BillingAuditEvent,
    BillingAuditEventType,
    BillingWebhookEvent,
    BillingWebhookEventType,
    CheckoutCompletedEvent,
    CheckoutSession,
    PortalSession,
    ReconciliationOutcome,
    ReconciliationResult,
    SubscriptionChangeEvent,
)
from .prices import PriceMap
from .reconciler import (
    BillingEventLogger,
    BillingEventReconciler,
    WebhookEventStore,
    apply_checkout_completed,
    apply_subscription_change,
    apply_subscription_deleted,
)
from .service import BillingService, PaymentProvider

__all__ = [
    "BillingAuditEvent",
    "BillingAuditEventType",
    "BillingError",
    "BillingEventLogger",
    "BillingEventReconciler",
    "BillingProviderError",
    "BillingService",
    "BillingWebhookError",
    "BillingWebhookEvent",
    "BillingWebhookEventType",
    "CheckoutCompletedEvent",
    "CheckoutNotAllowedError",
    "CheckoutSession",
    "PaymentProvider",
    "PortalSession",
    "PriceMap",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "SubscriptionChangeEvent",
    "WebhookEventStore",
    "apply_checkout_completed",
    "apply_subscription_change",
    "apply_subscription_deleted",
]
