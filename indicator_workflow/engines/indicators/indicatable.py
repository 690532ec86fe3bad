"""
Resolution of a task's indicator and indicator-month.

A task points at either a success or a compliance indicator-month. Each
variant is described once by an IndicatableVariant; everything else works
on the resolved IndicatableMonth, which exposes the same capabilities for
both (target, parent_indicator, acceptance_check).
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.engines.indicators.achievement import is_achieved
from indicator_workflow.kernel.models.indicator import (
    IndicatorCompliance,
    IndicatorComplianceProgramme,
    IndicatorComplianceProgrammeMonth,
    IndicatorSuccess,
    IndicatorSuccessProgramme,
    IndicatorSuccessProgrammeMonth,
)
from indicator_workflow.kernel.models.task import IndicatableType, IndicatorTask

Indicator = Union[IndicatorSuccess, IndicatorCompliance]
IndicatorAssociation = Union[IndicatorSuccessProgramme, IndicatorComplianceProgramme]
IndicatorMonth = Union[IndicatorSuccessProgrammeMonth, IndicatorComplianceProgrammeMonth]


@dataclass(frozen=True)
class IndicatableVariant:
    """Tables backing one indicator variant."""

    kind: IndicatableType
    indicator_model: type
    association_model: type
    month_model: type
    association_indicator_column: str
    month_association_column: str


SUCCESS = IndicatableVariant(
    kind=IndicatableType.SUCCESS,
    indicator_model=IndicatorSuccess,
    association_model=IndicatorSuccessProgramme,
    month_model=IndicatorSuccessProgrammeMonth,
    association_indicator_column="indicator_success_id",
    month_association_column="indicator_success_programme_id",
)

COMPLIANCE = IndicatableVariant(
    kind=IndicatableType.COMPLIANCE,
    indicator_model=IndicatorCompliance,
    association_model=IndicatorComplianceProgramme,
    month_model=IndicatorComplianceProgrammeMonth,
    association_indicator_column="indicator_compliance_id",
    month_association_column="indicator_compliance_programme_id",
)

VARIANTS: Dict[IndicatableType, IndicatableVariant] = {
    SUCCESS.kind: SUCCESS,
    COMPLIANCE.kind: COMPLIANCE,
}


def variant_for(kind: Union[IndicatableType, str]) -> IndicatableVariant:
    return VARIANTS[IndicatableType(kind)]


def variant_of(indicator: Indicator) -> IndicatableVariant:
    for variant in VARIANTS.values():
        if isinstance(indicator, variant.indicator_model):
            return variant
    raise TypeError(f"Not an indicator: {indicator!r}")


@dataclass(frozen=True)
class IndicatableMonth:
    """A resolved indicator-month, regardless of variant."""

    variant: IndicatableVariant
    month: IndicatorMonth
    association: IndicatorAssociation
    indicator: Indicator

    @property
    def kind(self) -> IndicatableType:
        return self.variant.kind

    @property
    def programme_month(self) -> int:
        return self.month.programme_month

    @property
    def target(self) -> Optional[float]:
        return self.month.target_value

    @property
    def parent_indicator(self) -> Indicator:
        return self.indicator

    def acceptance_check(self, value: Any) -> bool:
        return is_achieved(
            self.indicator.response_format,
            self.indicator.acceptance_value,
            value,
        )


class IndicatableResolver:
    """Loads the indicator side of a task; soft-deleted rows do not resolve."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def indicator_for_task(self, task: IndicatorTask) -> Optional[Indicator]:
        return await self.get_indicator(task.indicatable_type, task.indicatable_id)

    async def get_indicator(
        self,
        kind: Union[IndicatableType, str],
        indicator_id: uuid.UUID,
    ) -> Optional[Indicator]:
        indicator = await self.session.get(variant_for(kind).indicator_model, indicator_id)
        if indicator is None or indicator.is_deleted:
            return None
        return indicator

    async def resolve_month(self, task: IndicatorTask) -> Optional[IndicatableMonth]:
        """The task's indicator-month, or None when the task is orphaned."""
        variant = variant_for(task.indicatable_month_type)
        month = await self.session.get(variant.month_model, task.indicatable_month_id)
        if month is None or month.is_deleted:
            return None
        association = await self.session.get(
            variant.association_model,
            getattr(month, variant.month_association_column),
        )
        if association is None:
            return None
        indicator = await self.get_indicator(
            variant.kind,
            getattr(association, variant.association_indicator_column),
        )
        if indicator is None:
            return None
        return IndicatableMonth(variant=variant, month=month, association=association, indicator=indicator)

    async def is_orphaned(self, task: IndicatorTask) -> bool:
        return await self.resolve_month(task) is None
