"""Subscription lifecycle transitions and trial arithmetic."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from .models import SubscriptionRecord, SubscriptionStatus

_SECONDS_PER_DAY = 86400

ALLOWED_TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    SubscriptionStatus.TRIALING: frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED}),
    SubscriptionStatus.ACTIVE: frozenset({SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED}),
    SubscriptionStatus.PAST_DUE: frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED}),
    # A new successful payment revives the same record.
    SubscriptionStatus.CANCELED: frozenset({SubscriptionStatus.ACTIVE}),
}

_PROVIDER_STATUS_MAP: Dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
}


def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    """Return whether ``current -> target`` is part of the lifecycle.

    Staying in the same state is always allowed so redelivered events converge.
    """

    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def map_provider_status(raw_status: Optional[str]) -> SubscriptionStatus:
    """Fold the billing provider's status vocabulary onto local statuses.

    Anything unrecognised (``unpaid``, ``incomplete``, ``paused``...) maps to
    ``canceled``.
    """

    if not raw_status:
        return SubscriptionStatus.CANCELED
    return _PROVIDER_STATUS_MAP.get(raw_status.strip().lower(), SubscriptionStatus.CANCELED)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def trial_days_left(subscription: Optional[SubscriptionRecord], now: datetime) -> int:
    """Whole days remaining in the trial, rounded up; ``0`` once it has ended."""

    if subscription is None or subscription.trial_ends_at is None:
        return 0
    remaining = (_as_aware(subscription.trial_ends_at) - _as_aware(now)).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / _SECONDS_PER_DAY)


def is_trialing(subscription: Optional[SubscriptionRecord]) -> bool:
    """Status-based check only. An expired trial keeps reading as trialing
    until a reconciliation event changes the status."""

    return (
        subscription is not None
        and subscription.status == SubscriptionStatus.TRIALING
        and subscription.trial_ends_at is not None
    )
