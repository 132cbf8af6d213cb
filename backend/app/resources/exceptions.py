"""Errors raised while creating store resources."""
from __future__ import annotations


class ResourceError(Exception):
    """Base class for resource creation failures."""


class ResourceValidationError(ResourceError, ValueError):
    """Submitted fields do not satisfy the resource rules."""


class ResourceConflictError(ResourceError):
    """A resource with the same slug already exists in the store."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f'A resource with slug "{slug}" already exists')


class StoreAccessError(ResourceError, PermissionError):
    """The store does not exist or belongs to another tenant."""
