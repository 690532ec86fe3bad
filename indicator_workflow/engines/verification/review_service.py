"""
Review Service - records verifier decisions and (re)assigns verifiers.

Recording a decision closes the review task and emits SubmissionApproved or
SubmissionRejected; the workflow listeners take it from there.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.exceptions import (
    ReviewTaskAlreadyCompletedError,
    ReviewTaskNotFoundError,
    VerifierNotFoundError,
)
from indicator_workflow.kernel.events.activity_logger import ActivityLogger
from indicator_workflow.kernel.events.dispatcher import EventDispatcher
from indicator_workflow.kernel.events.event_types import (
    SubmissionApproved,
    SubmissionAwaitingVerification,
    SubmissionRejected,
)
from indicator_workflow.kernel.events.unit_of_work import unit_of_work
from indicator_workflow.kernel.models.review import IndicatorReviewTask, IndicatorSubmissionReview
from indicator_workflow.kernel.models.user import User
from indicator_workflow.logging_config import get_logger
from indicator_workflow.schemas.review import ReviewDecision

logger = get_logger(__name__)


class ReviewService:
    """
    Usage:
        reviews = ReviewService(session, dispatcher)
        review = await reviews.record_decision(
            review_task.id, verifier, ReviewDecision(approved=True)
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: EventDispatcher,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.activity = activity_logger or ActivityLogger(session)

    async def record_decision(
        self,
        review_task_id: uuid.UUID,
        reviewer: Union[User, uuid.UUID, None],
        decision: ReviewDecision,
    ) -> IndicatorSubmissionReview:
        """
        Record an approve/reject decision for a pending review task.

        Raises:
            ReviewTaskNotFoundError: no such review task
            ReviewTaskAlreadyCompletedError: the task was already decided
        """
        reviewer_id = reviewer.id if isinstance(reviewer, User) else reviewer
        now = datetime.now(timezone.utc)

        async with unit_of_work(self.session):
            review_task = await self._lock_review_task(review_task_id)
            if review_task.is_completed:
                raise ReviewTaskAlreadyCompletedError(review_task.id)

            review = IndicatorSubmissionReview(
                indicator_review_task_id=review_task.id,
                indicator_submission_id=review_task.indicator_submission_id,
                approved=decision.approved,
                verifier_level=review_task.verifier_level,
                comment=decision.comment,
                reviewer_id=reviewer_id,
                reviewed_at=now,
            )
            self.session.add(review)
            review_task.completed_at = now
            await self.session.flush()

            await self.activity.log_activity(
                f"{'Approved' if decision.approved else 'Rejected'} level "
                f"{review_task.verifier_level} verification",
                subject=review_task,
                causer=reviewer_id,
                properties={"review_id": review.id, "submission_id": review_task.indicator_submission_id},
            )

            event_class = SubmissionApproved if decision.approved else SubmissionRejected
            await self.dispatcher.emit(
                self.session,
                event_class(review_id=review.id, reviewer_id=reviewer_id),
            )

        logger.info(
            "Review decision recorded",
            extra={
                "review_id": str(review.id),
                "review_task_id": str(review_task_id),
                "approved": decision.approved,
            },
        )
        return review

    async def assign_verifier(
        self,
        review_task_id: uuid.UUID,
        verifier_user_id: uuid.UUID,
        assigned_by: Union[User, uuid.UUID, None] = None,
    ) -> IndicatorReviewTask:
        """Assign (or change) the verifier of a pending review task."""
        causer_id = assigned_by.id if isinstance(assigned_by, User) else assigned_by

        async with unit_of_work(self.session):
            review_task = await self._lock_review_task(review_task_id)
            if review_task.is_completed:
                raise ReviewTaskAlreadyCompletedError(review_task.id)

            verifier = await self.session.get(User, verifier_user_id)
            if verifier is None:
                raise VerifierNotFoundError(verifier_user_id)

            previous = review_task.verifier_user_id
            review_task.verifier_user_id = verifier.id

            await self.activity.log_activity(
                f"Assigned level {review_task.verifier_level} verifier",
                subject=review_task,
                causer=causer_id,
                properties={"previous_verifier_id": previous, "verifier_id": verifier.id},
            )
            await self.dispatcher.emit(
                self.session,
                SubmissionAwaitingVerification(
                    submission_id=review_task.indicator_submission_id,
                    review_task_id=review_task.id,
                    level=review_task.verifier_level,
                    verifier_id=verifier.id,
                ),
            )
        return review_task

    async def _lock_review_task(self, review_task_id: uuid.UUID) -> IndicatorReviewTask:
        await self.session.flush()
        result = await self.session.execute(
            select(IndicatorReviewTask)
            .where(IndicatorReviewTask.id == review_task_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        review_task = result.scalar_one_or_none()
        if review_task is None:
            raise ReviewTaskNotFoundError(review_task_id)
        return review_task
