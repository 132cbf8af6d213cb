"""Errors raised by billing flows."""
from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """Base class for billing failures."""


class CheckoutNotAllowedError(BillingError, ValueError):
    """Raised when a checkout is requested for a plan that cannot be bought."""


class BillingProviderError(BillingError):
    """The external billing provider rejected or failed a request."""

    def __init__(self, message: str, *, provider_code: Optional[str] = None) -> None:
        self.provider_code = provider_code
        super().__init__(message)


class BillingWebhookError(BillingError):
    """A webhook delivery could not be verified or processed."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)
