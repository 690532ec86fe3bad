"""
Task Service - task and review-task queries, and task deletion.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import and_, desc, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.engines.indicators.indicatable import VARIANTS
from indicator_workflow.exceptions import IndicatorTaskNotFoundError
from indicator_workflow.kernel.events.activity_logger import ActivityLogger
from indicator_workflow.kernel.events.unit_of_work import unit_of_work
from indicator_workflow.kernel.models.review import IndicatorReviewTask
from indicator_workflow.kernel.models.submission import IndicatorSubmission
from indicator_workflow.kernel.models.task import IndicatorTask, IndicatorTaskStatus
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)


class TaskStatusGroup(str, Enum):
    PENDING = "pending"
    IN_VERIFICATION = "in_verification"
    COMPLETE = "complete"


_GROUP_STATUSES = {
    TaskStatusGroup.PENDING.value: (IndicatorTaskStatus.PENDING.value, IndicatorTaskStatus.NEEDS_REVISION.value),
    TaskStatusGroup.IN_VERIFICATION.value: (IndicatorTaskStatus.SUBMITTED.value,),
    TaskStatusGroup.COMPLETE.value: (IndicatorTaskStatus.COMPLETED.value,),
}


class TaskService:
    """
    Usage:
        tasks = TaskService(session)
        pending = await tasks.tasks_by_status_group(TaskStatusGroup.PENDING, entrepreneur_id=user.id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def tasks_by_status_group(
        self,
        group: TaskStatusGroup,
        *,
        entrepreneur_id: Optional[uuid.UUID] = None,
        organisation_id: Optional[uuid.UUID] = None,
        programme_id: Optional[uuid.UUID] = None,
    ) -> List[IndicatorTask]:
        query = select(IndicatorTask).where(
            IndicatorTask.deleted_at.is_(None),
            IndicatorTask.status.in_(_GROUP_STATUSES[TaskStatusGroup(group).value]),
        )
        if entrepreneur_id:
            query = query.where(IndicatorTask.entrepreneur_id == entrepreneur_id)
        if organisation_id:
            query = query.where(IndicatorTask.organisation_id == organisation_id)
        if programme_id:
            query = query.where(IndicatorTask.programme_id == programme_id)

        query = query.order_by(IndicatorTask.due_date)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def overdue_tasks(self, today: Optional[date] = None) -> List[IndicatorTask]:
        """Pending tasks whose due date has passed."""
        today = today or date.today()
        result = await self.session.execute(
            select(IndicatorTask)
            .where(
                IndicatorTask.deleted_at.is_(None),
                IndicatorTask.status == IndicatorTaskStatus.PENDING.value,
                IndicatorTask.due_date < today,
            )
            .order_by(IndicatorTask.due_date)
        )
        return list(result.scalars().all())

    async def orphaned_tasks(self) -> List[IndicatorTask]:
        """Tasks whose indicator-month or indicator no longer resolves."""
        conditions = []
        for variant in VARIANTS.values():
            month = variant.month_model
            association = variant.association_model
            indicator = variant.indicator_model
            resolves = exists().where(
                month.id == IndicatorTask.indicatable_month_id,
                month.deleted_at.is_(None),
                association.id == getattr(month, variant.month_association_column),
                indicator.id == getattr(association, variant.association_indicator_column),
                indicator.deleted_at.is_(None),
            )
            conditions.append(
                and_(IndicatorTask.indicatable_month_type == variant.kind.value, ~resolves)
            )

        result = await self.session.execute(
            select(IndicatorTask).where(IndicatorTask.deleted_at.is_(None), or_(*conditions))
        )
        return list(result.scalars().all())

    async def latest_submission(self, task_id: uuid.UUID) -> Optional[IndicatorSubmission]:
        result = await self.session.execute(
            select(IndicatorSubmission)
            .where(IndicatorSubmission.indicator_task_id == task_id)
            .order_by(
                desc(IndicatorSubmission.submitted_at).nulls_last(),
                desc(IndicatorSubmission.created_at),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete_task(self, task_id: uuid.UUID) -> bool:
        """
        Delete a task.

        A task without submissions is removed; a task with submissions is
        soft-deleted so its history stays reportable.

        Returns:
            True if the row was removed, False if it was soft-deleted
        """
        async with unit_of_work(self.session):
            task = await self.session.get(IndicatorTask, task_id)
            if task is None or task.is_deleted:
                raise IndicatorTaskNotFoundError(task_id)

            submission_count = await self.session.scalar(
                select(func.count(IndicatorSubmission.id)).where(
                    IndicatorSubmission.indicator_task_id == task.id
                )
            )
            await ActivityLogger(self.session).log_activity(
                "Deleted indicator task",
                subject=task,
                properties={"soft_delete": bool(submission_count)},
            )

            if submission_count:
                task.deleted_at = datetime.now(timezone.utc)
                hard_deleted = False
            else:
                await self.session.delete(task)
                hard_deleted = True

        logger.info(
            "Indicator task deleted",
            extra={"indicator_task_id": str(task_id), "hard_delete": hard_deleted},
        )
        return hard_deleted


class ReviewTaskQueries:
    """Read-side queries over review tasks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def pending(self, verifier_user_id: Optional[uuid.UUID] = None) -> List[IndicatorReviewTask]:
        query = select(IndicatorReviewTask).where(IndicatorReviewTask.completed_at.is_(None))
        if verifier_user_id:
            query = query.where(IndicatorReviewTask.verifier_user_id == verifier_user_id)
        return await self._all(query.order_by(IndicatorReviewTask.due_date))

    async def completed(self, verifier_user_id: Optional[uuid.UUID] = None) -> List[IndicatorReviewTask]:
        query = select(IndicatorReviewTask).where(IndicatorReviewTask.completed_at.is_not(None))
        if verifier_user_id:
            query = query.where(IndicatorReviewTask.verifier_user_id == verifier_user_id)
        return await self._all(query.order_by(desc(IndicatorReviewTask.completed_at)))

    async def overdue(self, today: Optional[date] = None) -> List[IndicatorReviewTask]:
        today = today or date.today()
        return await self._all(
            select(IndicatorReviewTask)
            .where(
                IndicatorReviewTask.completed_at.is_(None),
                IndicatorReviewTask.due_date < today,
            )
            .order_by(IndicatorReviewTask.due_date)
        )

    async def orphaned(self) -> List[IndicatorReviewTask]:
        """Pending review tasks nobody is assigned to."""
        return await self._all(
            select(IndicatorReviewTask)
            .where(
                IndicatorReviewTask.completed_at.is_(None),
                IndicatorReviewTask.verifier_user_id.is_(None),
            )
            .order_by(IndicatorReviewTask.created_at)
        )

    async def for_verifier(
        self,
        verifier_user_id: uuid.UUID,
        include_completed: bool = False,
    ) -> List[IndicatorReviewTask]:
        if include_completed:
            query = select(IndicatorReviewTask).where(
                IndicatorReviewTask.verifier_user_id == verifier_user_id
            )
            return await self._all(query.order_by(IndicatorReviewTask.due_date))
        return await self.pending(verifier_user_id)

    async def _all(self, query) -> List[IndicatorReviewTask]:
        result = await self.session.execute(query)
        return list(result.scalars().all())
