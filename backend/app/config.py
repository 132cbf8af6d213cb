"""Billing and entitlement configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

from .entitlements.models import PlanCode


@dataclass(frozen=True)
class BillingConfig:
    """Configuration for plans, trials and the billing provider."""

    stripe_secret_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    stripe_price_growth: Optional[str]
    stripe_price_pro: Optional[str]
    app_base_url: str
    trial_days: int
    default_trial_plan: PlanCode

    @property
    def uses_sandbox_provider(self) -> bool:
        return not self.stripe_secret_key


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_plan_code(value: Optional[str], *, default: PlanCode) -> PlanCode:
    if value is None or not value.strip():
        return default
    try:
        return PlanCode(value.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown plan code {value!r}") from exc


def load_billing_config(env: Optional[Mapping[str, str]] = None) -> BillingConfig:
    """Load :class:`BillingConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    trial_days = _to_int(env_mapping.get("TRIAL_DAYS"), default=30)
    if trial_days < 0:
        raise ValueError("TRIAL_DAYS must be >= 0")

    app_base_url = env_mapping.get("APP_BASE_URL") or "http://localhost:3000"

    return BillingConfig(
        stripe_secret_key=env_mapping.get("STRIPE_SECRET_KEY") or None,
        stripe_webhook_secret=env_mapping.get("STRIPE_WEBHOOK_SECRET") or None,
        stripe_price_growth=env_mapping.get("STRIPE_PRICE_GROWTH") or None,
        stripe_price_pro=env_mapping.get("STRIPE_PRICE_PRO") or None,
        app_base_url=app_base_url.rstrip("/"),
        trial_days=trial_days,
        default_trial_plan=_to_plan_code(env_mapping.get("DEFAULT_TRIAL_PLAN"), default=PlanCode.PRO),
    )


__all__ = ["BillingConfig", "load_billing_config"]
