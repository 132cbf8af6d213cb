"""Stripe-backed payment provider and webhook verification."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe

from .exceptions import BillingProviderError, BillingWebhookError
from .models import BillingWebhookEvent

logger = logging.getLogger("billing")


class StripePaymentProvider:
    """Creates customers and hosted sessions through the Stripe API."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("Stripe secret key is required")
        self._secret_key = secret_key

    def create_customer(
        self,
        *,
        tenant_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, object]:
        params: Dict[str, Any] = {"metadata": {"tenant_id": tenant_id}}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        try:
            customer = stripe.Customer.create(api_key=self._secret_key, **params)
        except stripe.StripeError as exc:
            logger.error("Stripe customer creation failed tenant=%s: %s", tenant_id, exc)
            raise BillingProviderError(str(exc), provider_code=getattr(exc, "code", None)) from exc
        return {"id": customer.id}

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
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                mode="subscription",
                customer=customer_id,
                allow_promotion_codes=True,
                client_reference_id=client_reference_id,
                metadata=metadata,
                subscription_data={"metadata": subscription_metadata},
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session failed customer=%s: %s", customer_id, exc)
            raise BillingProviderError(str(exc), provider_code=getattr(exc, "code", None)) from exc
        return {"id": session.id, "url": session.url}

    def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> Dict[str, object]:
        try:
            session = stripe.billing_portal.Session.create(
                api_key=self._secret_key,
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe portal session failed customer=%s: %s", customer_id, exc)
            raise BillingProviderError(str(exc), provider_code=getattr(exc, "code", None)) from exc
        return {"id": session.id, "url": session.url}


def verify_webhook(payload: bytes, signature: Optional[str], secret: str) -> BillingWebhookEvent:
    """Check the ``Stripe-Signature`` header and decode the delivery."""

    if not signature:
        raise BillingWebhookError("Missing signature")
    try:
        verified = stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as exc:
        raise BillingWebhookError(f"Invalid signature: {exc}") from exc
    except ValueError as exc:
        raise BillingWebhookError(f"Invalid payload: {exc}") from exc

    try:
        return BillingWebhookEvent.from_provider_event(verified.to_dict())
    except ValueError as exc:
        raise BillingWebhookError(f"Invalid payload: {exc}") from exc


__all__ = ["StripePaymentProvider", "verify_webhook"]
