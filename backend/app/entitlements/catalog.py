"""Plan catalog: canonical plan ranking, seed definitions, and lookups."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

from .exceptions import PlanNotFoundError
from .models import Plan, PlanCode

logger = logging.getLogger(__name__)

# Upgrade direction. Reordering plans only touches this tuple.
PLAN_RANK: Tuple[PlanCode, ...] = (PlanCode.STARTER, PlanCode.GROWTH, PlanCode.PRO)

FREE_PLAN_CODE = PlanCode.STARTER


@dataclass(frozen=True)
class PlanDefinition:
    """Seed values for a plan. Only used when the plan row is absent."""

    code: PlanCode
    display_name: str
    monthly_price_mxn: int
    max_products: Optional[int]
    max_catalogs: Optional[int]
    branding_visible: bool
    analytics_level: int

    def to_plan(self) -> Plan:
        return Plan(
            code=self.code,
            name=self.display_name,
            monthly_price_mxn=self.monthly_price_mxn,
            max_products=self.max_products,
            max_catalogs=self.max_catalogs,
            branding_visible=self.branding_visible,
            analytics_level=self.analytics_level,
        )


DEFAULT_PLAN_DEFINITIONS: Dict[PlanCode, PlanDefinition] = {
    PlanCode.STARTER: PlanDefinition(
        code=PlanCode.STARTER,
        display_name="Starter",
        monthly_price_mxn=0,
        max_products=20,
        max_catalogs=2,
        branding_visible=True,
        analytics_level=1,
    ),
    PlanCode.GROWTH: PlanDefinition(
        code=PlanCode.GROWTH,
        display_name="Growth",
        monthly_price_mxn=149,
        max_products=200,
        max_catalogs=10,
        branding_visible=True,
        analytics_level=2,
    ),
    PlanCode.PRO: PlanDefinition(
        code=PlanCode.PRO,
        display_name="Pro",
        monthly_price_mxn=299,
        max_products=None,
        max_catalogs=None,
        branding_visible=False,
        analytics_level=3,
    ),
}

_ANALYTICS_LABELS = {
    1: "Essential analytics",
    2: "Optimized analytics",
    3: "Advanced analytics",
}


def coerce_plan_code(code: Union[str, PlanCode]) -> PlanCode:
    """Return the enum member for ``code`` or raise :class:`PlanNotFoundError`."""

    try:
        return PlanCode(code)
    except ValueError as exc:
        raise PlanNotFoundError(str(code)) from exc


def plan_rank(code: PlanCode) -> int:
    return PLAN_RANK.index(code)


def next_plan(code: PlanCode) -> Optional[PlanCode]:
    """Return the plan one step up in canonical rank, or ``None`` at the top."""

    position = plan_rank(code)
    if position + 1 >= len(PLAN_RANK):
        return None
    return PLAN_RANK[position + 1]


def is_paid_plan(code: PlanCode) -> bool:
    return code != FREE_PLAN_CODE


def plan_label(code: PlanCode) -> str:
    definition = DEFAULT_PLAN_DEFINITIONS.get(code)
    return definition.display_name if definition else code.value


def format_limit(limit: Optional[int]) -> str:
    if limit is None:
        return "Unlimited"
    return f"{limit:,}"


def analytics_label(plan: Plan) -> str:
    return _ANALYTICS_LABELS.get(plan.analytics_level, _ANALYTICS_LABELS[1])


class PlanRepository(Protocol):
    """Persistence operations for stored plans."""

    def get_plan(self, code: PlanCode) -> Optional[Plan]:
        ...

    def list_plans(self) -> Sequence[Plan]:
        ...

    def insert_plan_if_absent(self, plan: Plan) -> bool:
        ...


class PlanCatalog:
    """Reads plans from storage and seeds missing ones."""

    def __init__(
        self,
        repository: PlanRepository,
        *,
        definitions: Optional[Dict[PlanCode, PlanDefinition]] = None,
    ) -> None:
        self._repository = repository
        self._definitions = definitions if definitions is not None else DEFAULT_PLAN_DEFINITIONS

    def get_plan(self, code: Union[str, PlanCode]) -> Plan:
        """Return the stored plan, seeding defaults once if a canonical row is missing."""

        plan_code = coerce_plan_code(code)
        plan = self._repository.get_plan(plan_code)
        if plan is None and plan_code in PLAN_RANK:
            logger.warning("Plan %s missing from storage; seeding defaults", plan_code.value)
            self.ensure_seeded()
            plan = self._repository.get_plan(plan_code)
        if plan is None:
            raise PlanNotFoundError(plan_code.value)
        return plan

    def list_plans(self) -> List[Plan]:
        """Return stored plans ordered by canonical rank rather than name."""

        plans = [plan for plan in self._repository.list_plans() if plan.code in PLAN_RANK]
        return sorted(plans, key=lambda plan: plan_rank(plan.code))

    def ensure_seeded(self) -> List[PlanCode]:
        """Insert default definitions for plans that are not stored yet.

        Existing rows are never touched, so hand-tuned limits survive any
        number of calls. Returns the codes inserted by this call.
        """

        existing = {plan.code for plan in self._repository.list_plans()}
        inserted: List[PlanCode] = []
        for code in PLAN_RANK:
            if code in existing:
                continue
            definition = self._definitions.get(code)
            if definition is None:
                continue
            if self._repository.insert_plan_if_absent(definition.to_plan()):
                inserted.append(code)
        if inserted:
            logger.info("Seeded plans %s", ", ".join(code.value for code in inserted))
        return inserted
