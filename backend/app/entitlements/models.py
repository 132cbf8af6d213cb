"""Domain models for plans, subscriptions, and resolved plan limits."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanCode(str, Enum):
    """Canonical identifiers for subscription plans."""

    STARTER = "starter"
    GROWTH = "growth"
    PRO = "pro"


class SubscriptionStatus(str, Enum):
    """Lifecycle state for subscriptions."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class ResourceType(str, Enum):
    """Store resources whose creation is capped by the plan."""

    PRODUCTS = "products"
    CATALOGS = "catalogs"


class Plan(BaseModel):
    """Stored plan definition.

    ``None`` for a ceiling means the plan places no limit on that resource.
    ``0`` is a real ceiling that forbids the resource entirely.
    """

    code: PlanCode
    name: str
    monthly_price_mxn: int = Field(ge=0)
    max_products: Optional[int] = None
    max_catalogs: Optional[int] = None
    branding_visible: bool = True
    analytics_level: int = Field(default=1, ge=1, le=3)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("max_products", "max_catalogs")
    @classmethod
    def _non_negative_limit(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("plan limits must be >= 0 or null for unlimited")
        return value

    def limit_for(self, resource_type: ResourceType) -> Optional[int]:
        if resource_type == ResourceType.PRODUCTS:
            return self.max_products
        return self.max_catalogs


class SubscriptionRecord(BaseModel):
    """Per-tenant subscription state, one record per tenant.

    ``plan_code`` is kept as the raw stored string so a stale or corrupted
    reference can be detected at resolution time instead of at load time.
    """

    id: str
    tenant_id: str
    plan_code: str
    status: SubscriptionStatus
    trial_started_at: datetime
    trial_ends_at: datetime
    current_period_starts_at: Optional[datetime] = None
    current_period_ends_at: Optional[datetime] = None
    billing_customer_id: Optional[str] = None
    billing_subscription_id: Optional[str] = None
    billing_price_id: Optional[str] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE


class PlanLimits(BaseModel):
    """Resolved resource ceilings for a tenant."""

    plan_code: PlanCode
    plan_name: str
    status: SubscriptionStatus
    max_products: Optional[int] = None
    max_catalogs: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def limit_for(self, resource_type: ResourceType) -> Optional[int]:
        if resource_type == ResourceType.PRODUCTS:
            return self.max_products
        return self.max_catalogs


class UsageSnapshot(BaseModel):
    """Counts of resources currently owned by a store, computed on demand."""

    products: int = 0
    catalogs: int = 0

    model_config = ConfigDict(frozen=True)

    def count_for(self, resource_type: ResourceType) -> int:
        if resource_type == ResourceType.PRODUCTS:
            return self.products
        return self.catalogs


class UsageSummary(BaseModel):
    """Plan ceilings side by side with current usage."""

    plan_code: PlanCode
    plan_name: str
    max_products: Optional[int] = None
    max_catalogs: Optional[int] = None
    products_used: int = 0
    catalogs_used: int = 0

    model_config = ConfigDict(frozen=True)


class BillingOverview(BaseModel):
    """Everything the billing page shows for a tenant."""

    subscription: SubscriptionRecord
    plan: Plan
    usage: UsageSnapshot
    trial_days_left: int = 0
    store_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)
