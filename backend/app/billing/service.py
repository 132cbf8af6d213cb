"""Core service coordinating billing flows with external providers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from ..entitlements.catalog import PlanCatalog, coerce_plan_code, is_paid_plan
from ..entitlements.exceptions import PlanNotFoundError
from ..entitlements.models import BillingOverview, Plan, SubscriptionRecord
from ..entitlements.service import EntitlementService
from .exceptions import BillingProviderError, CheckoutNotAllowedError
from .models import BillingWebhookEvent, CheckoutSession, PortalSession, ReconciliationResult
from .prices import PriceMap
from .reconciler import BillingEventReconciler

logger = logging.getLogger("billing")

DEFAULT_APP_BASE_URL = "http://localhost:3000"


class PaymentProvider(Protocol):
    """External payment processor integration."""

    def create_customer(
        self,
        *,
        tenant_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, object]:
        ...

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
        ...

    def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, object]:
        ...


@dataclass
class BillingService:
    """Coordinates billing customers, checkout, portal access and webhooks."""

    entitlements: EntitlementService
    plan_catalog: PlanCatalog
    provider: PaymentProvider
    reconciler: BillingEventReconciler
    price_map: PriceMap
    app_base_url: str = DEFAULT_APP_BASE_URL

    def _url(self, path: str) -> str:
        return f"{self.app_base_url.rstrip('/')}{path}"

    def ensure_billing_customer(
        self,
        subscription: SubscriptionRecord,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> SubscriptionRecord:
        """Return ``subscription`` with a billing customer, creating one if absent.

        When two requests race, the first stored reference wins and the
        other provider customer is simply left unused.
        """

        if subscription.billing_customer_id:
            return subscription

        customer = self.provider.create_customer(tenant_id=subscription.tenant_id, email=email, name=name)
        customer_id = customer.get("id")
        if not customer_id:
            raise BillingProviderError("Billing provider returned a customer without an id")

        stored = self.entitlements.subscriptions.set_billing_customer_if_absent(
            subscription.tenant_id, str(customer_id)
        )
        if stored is None:
            return subscription.model_copy(update={"billing_customer_id": str(customer_id)})
        if stored.billing_customer_id != customer_id:
            logger.debug(
                "Tenant %s already linked to customer %s; discarding %s",
                subscription.tenant_id,
                stored.billing_customer_id,
                customer_id,
            )
        return stored

    def get_billing_overview(
        self,
        tenant_id: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> BillingOverview:
        subscription = self.entitlements.get_or_create_subscription(tenant_id)
        subscription = self.ensure_billing_customer(subscription, email=email, name=name)
        return self.entitlements.get_billing_overview(tenant_id, subscription=subscription)

    def list_plans(self) -> List[Plan]:
        return self.plan_catalog.list_plans()

    def create_checkout_session(
        self,
        tenant_id: str,
        plan_code: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> CheckoutSession:
        try:
            target = self.plan_catalog.get_plan(coerce_plan_code(plan_code))
        except PlanNotFoundError as exc:
            raise CheckoutNotAllowedError("Plan not available") from exc

        if not is_paid_plan(target.code):
            raise CheckoutNotAllowedError("The free plan does not require payment")

        price_id = self.price_map.price_for_plan(target.code)
        if not price_id:
            raise CheckoutNotAllowedError(f"No billing price configured for plan {target.code.value}")

        subscription = self.entitlements.get_or_create_subscription(tenant_id)
        subscription = self.ensure_billing_customer(subscription, email=email, name=name)

        session = self.provider.create_checkout_session(
            customer_id=str(subscription.billing_customer_id),
            price_id=price_id,
            client_reference_id=subscription.id,
            metadata={
                "tenant_id": tenant_id,
                "target_plan_code": target.code.value,
                "current_plan_code": subscription.plan_code,
            },
            subscription_metadata={"tenant_id": tenant_id, "plan_code": target.code.value},
            success_url=self._url("/billing?status=success"),
            cancel_url=self._url("/billing"),
        )
        url = session.get("url")
        if not url:
            raise BillingProviderError("Billing provider returned a checkout session without a url")
        logger.info("Checkout session created tenant=%s plan=%s", tenant_id, target.code.value)
        return CheckoutSession(
            session_id=str(session.get("id") or ""),
            checkout_url=str(url),
            plan_code=target.code,
        )

    def create_portal_session(
        self,
        tenant_id: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> PortalSession:
        subscription = self.entitlements.get_or_create_subscription(tenant_id)
        subscription = self.ensure_billing_customer(subscription, email=email, name=name)
        session = self.provider.create_billing_portal_session(
            customer_id=str(subscription.billing_customer_id),
            return_url=self._url("/billing"),
        )
        url = session.get("url")
        if not url:
            raise BillingProviderError("Billing provider returned a portal session without a url")
        return PortalSession(url=str(url))

    def handle_webhook(self, event: BillingWebhookEvent) -> ReconciliationResult:
        return self.reconciler.reconcile(event)


__all__ = ["BillingService", "DEFAULT_APP_BASE_URL", "PaymentProvider"]
