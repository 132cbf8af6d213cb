"""Denials raised when a tenant is required to stay within its plan."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional

from fastapi import HTTPException, status

from ..entitlements.models import PlanCode, ResourceType
from .quota import LimitDecision


def _plan_value(code: Optional[PlanCode]) -> Optional[str]:
    return code.value if code is not None else None


@dataclass
class FeatureGateError(Exception):
    """A denied creation, carrying what the upgrade prompt needs to render."""

    code: str
    message: str
    resource_type: ResourceType
    plan_code: Optional[PlanCode] = None
    limit: Optional[int] = None
    usage: Optional[int] = None
    upgrade_plan_code: Optional[PlanCode] = None

    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @classmethod
    def from_decision(cls, decision: LimitDecision) -> "FeatureGateError":
        if decision.allowed:
            raise ValueError("An allowed decision cannot become a denial")
        return cls(
            code=decision.code,
            message=decision.reason or "Not allowed.",
            resource_type=decision.resource_type,
            plan_code=decision.plan_code,
            limit=decision.limit,
            usage=decision.usage,
            upgrade_plan_code=decision.upgrade_plan_code,
        )

    @property
    def payload(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "resource_type": self.resource_type.value,
            "plan_code": _plan_value(self.plan_code),
            "limit": self.limit,
            "usage": self.usage,
            "upgrade_plan_code": _plan_value(self.upgrade_plan_code),
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)
