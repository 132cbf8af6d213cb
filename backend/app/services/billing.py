"""Application wiring for the billing and entitlement services."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Dict, Optional
from uuid import uuid4

from ..billing import (
    BillingAuditEvent,
    BillingEventLogger,
    BillingEventReconciler,
    BillingService,
    PaymentProvider,
    PriceMap,
)
from ..billing.repository import PostgresBillingRepository
from ..billing.stripe_provider import StripePaymentProvider
from ..config import BillingConfig, load_billing_config
from ..entitlements import EntitlementService, PlanCatalog, UsageCounter
from ..entitlements.repository import PostgresPlanRepository, PostgresSubscriptionRepository
from ..feature_gates import EntitlementGuard
from ..resources.repository import PostgresResourceStore


logger = logging.getLogger("billing")


class LoggingBillingEventLogger(BillingEventLogger):
    """Simple event logger forwarding billing audit events to logging."""

    def log(self, event: BillingAuditEvent) -> None:
        logger.info(
            "Billing event %s tenant=%s provider_event=%s metadata=%s",
            event.event_type.value,
            event.tenant_id,
            event.provider_event_id,
            event.metadata,
        )


class LocalSandboxPaymentProvider(PaymentProvider):
    """Minimal provider implementation for local development and tests."""

    def create_customer(
        self,
        *,
        tenant_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, object]:
        return {"id": f"cus_local_{uuid4().hex[:16]}", "metadata": {"tenant_id": tenant_id}}

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        client_reference_id: str,
        metadata: Dict[str, str],
        subscription_metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, object]:
        session_id = f"cs_{uuid4().hex}"
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=30)
        url = f"https://billing.local/checkout/{session_id}"
        return {
            "id": session_id,
            "url": url,
            "expires_at": expires_at,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }

    def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, object]:
        session_id = f"ps_{uuid4().hex}"
        url = f"https://billing.local/portal/{customer_id}"
        return {"id": session_id, "url": url, "return_url": return_url}


@lru_cache(maxsize=1)
def get_billing_config() -> BillingConfig:
    return load_billing_config()


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    return PlanCatalog(PostgresPlanRepository())


@lru_cache(maxsize=1)
def get_usage_counter() -> UsageCounter:
    return UsageCounter(PostgresResourceStore())


@lru_cache(maxsize=1)
def get_entitlement_service() -> EntitlementService:
    config = get_billing_config()
    return EntitlementService(
        plan_catalog=get_plan_catalog(),
        subscriptions=PostgresSubscriptionRepository(),
        usage_counter=get_usage_counter(),
        trial_days=config.trial_days,
        default_plan_code=config.default_trial_plan,
    )


@lru_cache(maxsize=1)
def get_entitlement_guard() -> EntitlementGuard:
    return EntitlementGuard(entitlements=get_entitlement_service(), usage_counter=get_usage_counter())


def _build_payment_provider(config: BillingConfig) -> PaymentProvider:
    if config.uses_sandbox_provider:
        logger.warning("STRIPE_SECRET_KEY is not set; using the local sandbox payment provider")
        return LocalSandboxPaymentProvider()
    return StripePaymentProvider(config.stripe_secret_key)


@lru_cache(maxsize=1)
def get_billing_service() -> BillingService:
    config = get_billing_config()
    entitlements = get_entitlement_service()
    price_map = PriceMap.from_config(config)
    reconciler = BillingEventReconciler(
        subscriptions=entitlements.subscriptions,
        events=PostgresBillingRepository(),
        price_map=price_map,
        event_logger=LoggingBillingEventLogger(),
    )
    service = BillingService(
        entitlements=entitlements,
        plan_catalog=get_plan_catalog(),
        provider=_build_payment_provider(config),
        reconciler=reconciler,
        price_map=price_map,
        app_base_url=config.app_base_url,
    )
    return service


__all__ = [
    "LocalSandboxPaymentProvider",
    "LoggingBillingEventLogger",
    "get_billing_config",
    "get_billing_service",
    "get_entitlement_guard",
    "get_entitlement_service",
    "get_plan_catalog",
    "get_usage_counter",
]
