"""
Programme Indicator Service - attaches indicators to programmes, publishes
them and configures their collection months.

Month targets by indicator kind:

    compliance attendance-*     one target shared by every month 1..duration
    compliance element-progress independent per-month targets, non-decreasing;
                                blank months are skipped
    compliance other            chosen months, no target
    success                     chosen months, optional per-month targets

A published association is frozen, and so are the workflow fields of any
indicator published to at least one programme.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.engines.indicators.indicatable import (
    Indicator,
    IndicatableVariant,
    variant_for,
    variant_of,
)
from indicator_workflow.exceptions import (
    IndicatorAlreadyPublishedError,
    IndicatorImmutableError,
    IndicatorProgrammeAssociationNotFoundError,
    InvalidMonthTargetsError,
    InvalidProgrammeMonthError,
)
from indicator_workflow.kernel.events.unit_of_work import unit_of_work
from indicator_workflow.kernel.models.indicator import (
    ComplianceType,
    IndicatorMixin,
    ProgrammeIndicatorStatus,
)
from indicator_workflow.kernel.models.programme import Programme
from indicator_workflow.kernel.models.task import IndicatableType
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)

MonthTargets = Dict[int, Optional[float]]


class ProgrammeIndicatorService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def attach(self, indicator: Indicator, programme_id: uuid.UUID):
        """Link an indicator to a programme (pending); returns the existing link if present."""
        variant = variant_of(indicator)
        association = await self._find_association(variant, indicator.id, programme_id)
        if association is not None:
            return association

        async with unit_of_work(self.session):
            association = variant.association_model(
                **{variant.association_indicator_column: indicator.id},
                programme_id=programme_id,
                status=ProgrammeIndicatorStatus.PENDING,
            )
            self.session.add(association)
        return association

    async def publish(self, kind: Union[IndicatableType, str], association_id: uuid.UUID):
        """pending -> published; publishing a published association is a no-op."""
        variant = variant_for(kind)
        async with unit_of_work(self.session):
            association = await self._get_association(variant, association_id)
            if association.status == ProgrammeIndicatorStatus.PUBLISHED:
                return association
            association.status = ProgrammeIndicatorStatus.PUBLISHED
            logger.info(
                "Indicator published to programme",
                extra={"association_id": str(association.id), "programme_id": str(association.programme_id)},
            )
        return association

    async def configure_months(
        self,
        kind: Union[IndicatableType, str],
        association_id: uuid.UUID,
        *,
        months: Optional[Iterable[int]] = None,
        target: Optional[float] = None,
        month_targets: Optional[MonthTargets] = None,
    ) -> list:
        """
        Replace the association's months.

        Raises:
            IndicatorAlreadyPublishedError: association is published
            InvalidProgrammeMonthError: a month falls outside 1..duration
            InvalidMonthTargetsError: targets do not fit the indicator type
        """
        variant = variant_for(kind)
        async with unit_of_work(self.session):
            association = await self._get_association(variant, association_id)
            if association.status == ProgrammeIndicatorStatus.PUBLISHED:
                raise IndicatorAlreadyPublishedError(association.id)

            programme = await self.session.get(Programme, association.programme_id)
            indicator = await self.session.get(
                variant.indicator_model,
                getattr(association, variant.association_indicator_column),
            )
            targets = self._distribute_targets(
                indicator, programme.duration, months=months, target=target, month_targets=month_targets
            )
            for month in targets:
                if not 1 <= month <= programme.duration:
                    raise InvalidProgrammeMonthError(month, programme.duration)

            now = datetime.now(timezone.utc)
            for existing in await self.months_for(variant, association.id):
                existing.deleted_at = now

            rows = [
                variant.month_model(
                    **{variant.month_association_column: association.id},
                    programme_month=month,
                    target_value=value,
                )
                for month, value in sorted(targets.items())
            ]
            self.session.add_all(rows)
        return rows

    async def months_for(self, variant: IndicatableVariant, association_id: uuid.UUID) -> list:
        month_model = variant.month_model
        result = await self.session.execute(
            select(month_model)
            .where(
                getattr(month_model, variant.month_association_column) == association_id,
                month_model.deleted_at.is_(None),
            )
            .order_by(month_model.programme_month)
        )
        return list(result.scalars().all())

    async def is_published(self, indicator: Indicator) -> bool:
        variant = variant_of(indicator)
        model = variant.association_model
        result = await self.session.execute(
            select(model.id)
            .where(
                getattr(model, variant.association_indicator_column) == indicator.id,
                model.status == ProgrammeIndicatorStatus.PUBLISHED.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def ensure_indicator_mutable(self, indicator: Indicator, changed_fields: Iterable[str]) -> None:
        """Refuse changes to workflow fields of an indicator published to any programme."""
        frozen = sorted(set(changed_fields) & set(IndicatorMixin.WORKFLOW_FIELDS))
        if frozen and await self.is_published(indicator):
            raise IndicatorImmutableError(indicator.id, frozen)

    def _distribute_targets(
        self,
        indicator: Indicator,
        duration: int,
        *,
        months: Optional[Iterable[int]],
        target: Optional[float],
        month_targets: Optional[MonthTargets],
    ) -> MonthTargets:
        compliance_type = getattr(indicator, "type", None)
        if compliance_type is None:
            if month_targets is not None:
                return dict(month_targets)
            return {month: None for month in months or []}

        compliance_type = ComplianceType(compliance_type)
        if compliance_type.is_attendance:
            if target is None:
                raise InvalidMonthTargetsError("Attendance indicators require a target")
            return {month: target for month in range(1, duration + 1)}

        if compliance_type == ComplianceType.ELEMENT_PROGRESS:
            return self._element_progress_targets(month_targets or {})

        return {month: None for month in months or []}

    @staticmethod
    def _element_progress_targets(month_targets: MonthTargets) -> MonthTargets:
        targets: MonthTargets = {}
        previous: Optional[float] = None
        for month in sorted(month_targets):
            value = month_targets[month]
            if value is None or value == "":
                continue
            value = float(value)
            if previous is not None and value < previous:
                raise InvalidMonthTargetsError(
                    f"Target for month {month} ({value}) is lower than the previous month ({previous})",
                    month=month,
                )
            targets[month] = value
            previous = value
        if not targets:
            raise InvalidMonthTargetsError("Element progress indicators require at least one month target")
        return targets

    async def _find_association(self, variant: IndicatableVariant, indicator_id, programme_id):
        model = variant.association_model
        result = await self.session.execute(
            select(model).where(
                getattr(model, variant.association_indicator_column) == indicator_id,
                model.programme_id == programme_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_association(self, variant: IndicatableVariant, association_id: uuid.UUID):
        association = await self.session.get(variant.association_model, association_id)
        if association is None:
            raise IndicatorProgrammeAssociationNotFoundError(association_id)
        return association
