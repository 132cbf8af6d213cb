"""API schemas for billing endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import CheckoutSession, ReconciliationResult
from ..entitlements import (
    BillingOverview,
    Plan,
    PlanCode,
    SubscriptionRecord,
    SubscriptionStatus,
    UsageSummary,
    analytics_label,
    format_limit,
    is_trialing,
)
from ..feature_gates import usage_ratio, within_limit


class PlanResponse(BaseModel):
    code: PlanCode
    name: str
    monthly_price_mxn: int = Field(alias="monthlyPriceMxn")
    max_products: Optional[int] = Field(alias="maxProducts", default=None)
    max_catalogs: Optional[int] = Field(alias="maxCatalogs", default=None)
    max_products_label: str = Field(alias="maxProductsLabel")
    max_catalogs_label: str = Field(alias="maxCatalogsLabel")
    branding_visible: bool = Field(alias="brandingVisible")
    analytics_level: int = Field(alias="analyticsLevel")
    analytics_label: str = Field(alias="analyticsLabel")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            code=plan.code,
            name=plan.name,
            monthly_price_mxn=plan.monthly_price_mxn,
            max_products=plan.max_products,
            max_catalogs=plan.max_catalogs,
            max_products_label=format_limit(plan.max_products),
            max_catalogs_label=format_limit(plan.max_catalogs),
            branding_visible=plan.branding_visible,
            analytics_level=plan.analytics_level,
            analytics_label=analytics_label(plan),
        )


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class SubscriptionResponse(BaseModel):
    plan_code: str = Field(alias="planCode")
    status: SubscriptionStatus
    trial_started_at: datetime = Field(alias="trialStartedAt")
    trial_ends_at: datetime = Field(alias="trialEndsAt")
    current_period_starts_at: Optional[datetime] = Field(alias="currentPeriodStartsAt", default=None)
    current_period_ends_at: Optional[datetime] = Field(alias="currentPeriodEndsAt", default=None)
    cancel_at_period_end: bool = Field(alias="cancelAtPeriodEnd", default=False)
    canceled_at: Optional[datetime] = Field(alias="canceledAt", default=None)
    has_billing_customer: bool = Field(alias="hasBillingCustomer", default=False)
    is_trialing: bool = Field(alias="isTrialing", default=False)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: SubscriptionRecord) -> "SubscriptionResponse":
        return cls(
            plan_code=record.plan_code,
            status=record.status,
            trial_started_at=record.trial_started_at,
            trial_ends_at=record.trial_ends_at,
            current_period_starts_at=record.current_period_starts_at,
            current_period_ends_at=record.current_period_ends_at,
            cancel_at_period_end=record.cancel_at_period_end,
            canceled_at=record.canceled_at,
            has_billing_customer=bool(record.billing_customer_id),
            is_trialing=is_trialing(record),
        )


class UsageSummaryResponse(BaseModel):
    plan_code: PlanCode = Field(alias="planCode")
    plan_name: str = Field(alias="planName")
    max_products: Optional[int] = Field(alias="maxProducts", default=None)
    max_catalogs: Optional[int] = Field(alias="maxCatalogs", default=None)
    products_used: int = Field(alias="productsUsed")
    catalogs_used: int = Field(alias="catalogsUsed")
    products_ratio: int = Field(alias="productsRatio")
    catalogs_ratio: int = Field(alias="catalogsRatio")
    products_within_limit: bool = Field(alias="productsWithinLimit")
    catalogs_within_limit: bool = Field(alias="catalogsWithinLimit")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_summary(cls, summary: UsageSummary) -> "UsageSummaryResponse":
        return cls(
            plan_code=summary.plan_code,
            plan_name=summary.plan_name,
            max_products=summary.max_products,
            max_catalogs=summary.max_catalogs,
            products_used=summary.products_used,
            catalogs_used=summary.catalogs_used,
            products_ratio=usage_ratio(summary.products_used, summary.max_products),
            catalogs_ratio=usage_ratio(summary.catalogs_used, summary.max_catalogs),
            products_within_limit=within_limit(summary.products_used, summary.max_products),
            catalogs_within_limit=within_limit(summary.catalogs_used, summary.max_catalogs),
        )


class UsageCounts(BaseModel):
    products: int
    catalogs: int


class BillingOverviewResponse(BaseModel):
    subscription: SubscriptionResponse
    plan: PlanResponse
    usage: UsageCounts
    trial_days_left: int = Field(alias="trialDaysLeft")
    store_id: Optional[str] = Field(alias="storeId", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_overview(cls, overview: BillingOverview) -> "BillingOverviewResponse":
        return cls(
            subscription=SubscriptionResponse.from_record(overview.subscription),
            plan=PlanResponse.from_plan(overview.plan),
            usage=UsageCounts(products=overview.usage.products, catalogs=overview.usage.catalogs),
            trial_days_left=overview.trial_days_left,
            store_id=overview.store_id,
        )


class CheckoutSessionRequest(BaseModel):
    plan_code: str = Field(alias="planCode", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    checkout_url: str = Field(alias="checkoutUrl")
    plan_code: PlanCode = Field(alias="planCode")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, session: CheckoutSession) -> "CheckoutSessionResponse":
        return cls(
            session_id=session.session_id,
            checkout_url=session.checkout_url,
            plan_code=session.plan_code,
        )


class PortalSessionResponse(BaseModel):
    url: str


class WebhookAckResponse(BaseModel):
    received: bool = True
    outcome: str
    event_id: str = Field(alias="eventId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "WebhookAckResponse":
        return cls(outcome=result.outcome.value, event_id=result.event_id)
