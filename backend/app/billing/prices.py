"""Mapping between paid plans and billing provider price identifiers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ..entitlements.catalog import FREE_PLAN_CODE
from ..entitlements.models import PlanCode


@dataclass(frozen=True)
class PriceMap:
    """Bidirectional plan <-> price lookup. The free plan never has a price."""

    prices: Mapping[PlanCode, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: Dict[PlanCode, str] = {
            code: price.strip()
            for code, price in self.prices.items()
            if code != FREE_PLAN_CODE and price and price.strip()
        }
        object.__setattr__(self, "prices", cleaned)

    @classmethod
    def from_config(cls, config) -> "PriceMap":
        return cls(
            {
                PlanCode.GROWTH: config.stripe_price_growth or "",
                PlanCode.PRO: config.stripe_price_pro or "",
            }
        )

    def price_for_plan(self, plan_code: PlanCode) -> Optional[str]:
        return self.prices.get(plan_code)

    def plan_for_price(self, price_id: Optional[str]) -> Optional[PlanCode]:
        if not price_id:
            return None
        for code, price in self.prices.items():
            if price == price_id:
                return code
        return None


__all__ = ["PriceMap"]
