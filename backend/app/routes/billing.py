"""API routes exposing billing functionality."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Callable, NoReturn, Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from ..billing import BillingProviderError, BillingWebhookError, CheckoutNotAllowedError
from ..billing.stripe_provider import verify_webhook
from ..entitlements import NoSubscriptionError, PlanNotFoundError
from ..schemas.billing import (
    BillingOverviewResponse,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PlanListResponse,
    PlanResponse,
    PortalSessionResponse,
    UsageSummaryResponse,
    WebhookAckResponse,
)
from ..services.billing import get_billing_config, get_billing_service, get_entitlement_service

logger = logging.getLogger("billing")


def _resolve_get_current_user() -> Callable[..., Any]:  # pragma: no cover
    try:
        from backend.main import get_current_user as resolved
    except ModuleNotFoundError as exc:
        if exc.name != "backend":
            raise
        from ...main import get_current_user as resolved  # type: ignore[no-redef]
    return resolved


@lru_cache(maxsize=1)
def _get_current_user_callable() -> Callable[..., Any]:
    return _resolve_get_current_user()


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    resolved = _get_current_user_callable()
    return resolved(session_token=session_token)


def raise_entitlement_http_error(exc: LookupError) -> NoReturn:
    """Map resolution failures to responses that keep them distinguishable."""

    if isinstance(exc, PlanNotFoundError):
        logger.error("Plan %s referenced by a subscription is missing", exc.plan_code)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "plan_not_found", "message": str(exc)},
        ) from exc
    if isinstance(exc, NoSubscriptionError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "no_subscription", "message": str(exc)},
        ) from exc
    raise exc


router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.get("/plans", response_model=PlanListResponse)
def list_plans() -> PlanListResponse:
    service = get_billing_service()
    return PlanListResponse(plans=[PlanResponse.from_plan(plan) for plan in service.list_plans()])


@router.get("/overview", response_model=BillingOverviewResponse)
def get_overview(*, current_user=Depends(_get_current_user)) -> BillingOverviewResponse:
    service = get_billing_service()
    try:
        overview = service.get_billing_overview(
            str(current_user.id),
            email=getattr(current_user, "email", None),
        )
    except (NoSubscriptionError, PlanNotFoundError) as exc:
        raise_entitlement_http_error(exc)
    except BillingProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return BillingOverviewResponse.from_overview(overview)


@router.get("/usage", response_model=UsageSummaryResponse)
def get_usage(*, current_user=Depends(_get_current_user)) -> UsageSummaryResponse:
    service = get_entitlement_service()
    try:
        summary = service.get_usage_summary(str(current_user.id))
    except (NoSubscriptionError, PlanNotFoundError) as exc:
        raise_entitlement_http_error(exc)
    return UsageSummaryResponse.from_summary(summary)


@router.post("/checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    payload: CheckoutSessionRequest,
    *,
    current_user=Depends(_get_current_user),
) -> CheckoutSessionResponse:
    service = get_billing_service()
    try:
        session = service.create_checkout_session(
            str(current_user.id),
            payload.plan_code,
            email=getattr(current_user, "email", None),
        )
    except CheckoutNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (NoSubscriptionError, PlanNotFoundError) as exc:
        raise_entitlement_http_error(exc)
    except BillingProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return CheckoutSessionResponse.from_checkout(session)


@router.post("/portal-session", response_model=PortalSessionResponse)
def create_portal_session(*, current_user=Depends(_get_current_user)) -> PortalSessionResponse:
    service = get_billing_service()
    try:
        session = service.create_portal_session(
            str(current_user.id),
            email=getattr(current_user, "email", None),
        )
    except (NoSubscriptionError, PlanNotFoundError) as exc:
        raise_entitlement_http_error(exc)
    except BillingProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return PortalSessionResponse(url=session.url)


@router.post("/webhook", response_model=WebhookAckResponse)
async def receive_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
) -> WebhookAckResponse:
    config = get_billing_config()
    if not config.stripe_webhook_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhook secret not configured")

    body = await request.body()
    try:
        event = verify_webhook(body, stripe_signature, config.stripe_webhook_secret)
    except BillingWebhookError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    service = get_billing_service()
    try:
        result = await run_in_threadpool(service.handle_webhook, event)
    except Exception as exc:
        logger.exception("Billing webhook handler failed for event %s (%s)", event.event_id, event.event_type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
        ) from exc
    return WebhookAckResponse.from_result(result)
