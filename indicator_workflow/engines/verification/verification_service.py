"""
Verification Service - coordinates the tiered verification workflow.

    submission created
        |
        v
    process_submission_for_verification
        |-- indicator has no verifier roles --> task completed, stop
        v
    initiate_verification_for_level(1) --> review task (+ awaiting-verification event)
        |
    review approved (handle_approved_review)
        |-- level 1 and indicator has a level 2 role
        |       --> submission pending_verification_2, initiate level 2
        |-- otherwise --> TaskCompleted --> complete_task_and_submission
        |
    review rejected (handle_rejected_review) --> submission rejected

Task status follows submission status through the state machine's
observer; this service never writes task status for a verified path.
"""

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.config import Settings, load_settings
from indicator_workflow.engines.indicators.indicatable import Indicator, IndicatableResolver
from indicator_workflow.engines.verification.role_resolver import RoleResolver
from indicator_workflow.exceptions import (
    IndicatorReviewTaskCreationError,
    MissingIndicatorAssociationError,
    RoleNotFoundForVerificationLevelError,
    SubmissionNotFoundError,
    SubmissionNotFoundForReviewError,
    TaskNotFoundForReviewError,
    TaskNotFoundForSubmissionError,
)
from indicator_workflow.kernel.events.activity_logger import ActivityLogger
from indicator_workflow.kernel.events.dispatcher import EventDispatcher
from indicator_workflow.kernel.events.event_types import SubmissionAwaitingVerification, TaskCompleted
from indicator_workflow.kernel.events.unit_of_work import unit_of_work
from indicator_workflow.kernel.models.base import generate_uuid
from indicator_workflow.kernel.models.review import IndicatorReviewTask, IndicatorSubmissionReview
from indicator_workflow.kernel.models.submission import IndicatorSubmission, IndicatorSubmissionStatus
from indicator_workflow.kernel.models.task import IndicatorTask, IndicatorTaskStatus
from indicator_workflow.kernel.models.user import User
from indicator_workflow.logging_config import get_logger
from indicator_workflow.orchestration.state_machine import StateMachine

logger = get_logger(__name__)

_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class VerificationTarget:
    """A submission together with the task and indicator it reports on."""

    submission: IndicatorSubmission
    task: IndicatorTask
    indicator: Indicator


class VerificationService:
    """
    Usage:
        service = VerificationService(session, dispatcher)
        await service.process_submission_for_verification(submission)
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: EventDispatcher,
        *,
        role_resolver: Optional[RoleResolver] = None,
        state_machine: Optional[StateMachine] = None,
        activity_logger: Optional[ActivityLogger] = None,
        settings_provider: Callable[[], Settings] = load_settings,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.role_resolver = role_resolver or RoleResolver(
            session, verifier_roles=settings_provider().verifier_roles
        )
        self.state_machine = state_machine or StateMachine(session)
        self.activity = activity_logger or ActivityLogger(session)
        self.indicatables = IndicatableResolver(session)
        self.settings_provider = settings_provider
        self.today = today

    async def process_submission_for_verification(
        self,
        submission: Union[IndicatorSubmission, uuid.UUID],
    ) -> Optional[IndicatorReviewTask]:
        """
        Start verification for a submission.

        Returns the level 1 review task, or None when the indicator needs no
        verification (the task is completed instead).
        """
        async with unit_of_work(self.session):
            submission = await self._load_submission(submission)
            target = await self._target_for_submission(submission)

            if not target.indicator.requires_verification():
                logger.debug(
                    "Indicator requires no verification, completing task",
                    extra={"submission_id": str(submission.id), "indicator_task_id": str(target.task.id)},
                )
                await self._complete_without_verification(target)
                return None

            if target.task.entrepreneur_id is None:
                raise MissingIndicatorAssociationError(target.task.id, "entrepreneur")

            return await self.initiate_verification_for_level(submission, 1)

    async def initiate_verification_for_level(
        self,
        submission: IndicatorSubmission,
        level: int,
    ) -> IndicatorReviewTask:
        """Find or create the review task for (submission, level)."""
        target = await self._target_for_submission(submission)
        role_id = target.indicator.verifier_role_for_level(level)
        if role_id is None:
            raise RoleNotFoundForVerificationLevelError(
                f"Indicator {target.indicator.id} has no verifier role for level {level}",
                level=level,
            )

        verifier = await self.role_resolver.resolve_verifier_for_task(target.task, role_id)

        async with unit_of_work(self.session):
            review_task, created = await self._find_or_create_review_task(
                target, level, role_id, verifier
            )
            if not created:
                logger.debug(
                    "Review task already exists",
                    extra={"review_task_id": str(review_task.id), "verifier_level": level},
                )
                return review_task

            await self.activity.log_activity(
                f"Created level {level} verification task",
                subject=review_task,
                properties={
                    "submission_id": submission.id,
                    "indicator_task_id": target.task.id,
                    "verifier_level": level,
                    "verifier_user_id": verifier.id if verifier else None,
                },
            )

            if verifier is None:
                logger.info(
                    "Review task created without a verifier",
                    extra={"review_task_id": str(review_task.id), "verifier_level": level},
                )
            else:
                await self.dispatcher.emit(
                    self.session,
                    SubmissionAwaitingVerification(
                        submission_id=submission.id,
                        review_task_id=review_task.id,
                        level=level,
                        verifier_id=verifier.id,
                    ),
                )
            return review_task

    async def handle_approved_review(
        self,
        review: IndicatorSubmissionReview,
    ) -> Optional[IndicatorReviewTask]:
        """
        Advance the workflow after an approval.

        Returns the level 2 review task when one was initiated.
        """
        async with unit_of_work(self.session):
            target = await self._target_for_review(review)
            submission = target.submission
            status = IndicatorSubmissionStatus(submission.status)

            if status.is_terminal:
                logger.warning(
                    "Approval received for a concluded submission",
                    extra={"submission_id": str(submission.id), "status": status.value},
                )
                return None

            if review.verifier_level == 1 and target.indicator.verifier_2_role_id is not None:
                if status == IndicatorSubmissionStatus.PENDING_VERIFICATION_1:
                    await self.state_machine.transition_submission(
                        submission, IndicatorSubmissionStatus.PENDING_VERIFICATION_2
                    )
                return await self.initiate_verification_for_level(submission, 2)

            await self.dispatcher.emit(self.session, TaskCompleted(submission_id=submission.id))
            return None

    async def handle_rejected_review(self, review: IndicatorSubmissionReview) -> None:
        async with unit_of_work(self.session):
            target = await self._target_for_review(review)
            submission = target.submission
            status = IndicatorSubmissionStatus(submission.status)

            if status.is_terminal:
                logger.warning(
                    "Rejection received for a concluded submission",
                    extra={"submission_id": str(submission.id), "status": status.value},
                )
                return

            await self.state_machine.transition_submission(submission, IndicatorSubmissionStatus.REJECTED)

    async def complete_task_and_submission(
        self,
        submission: Union[IndicatorSubmission, uuid.UUID],
    ) -> bool:
        """
        Approve the submission (and through it complete the task).

        Re-reads the submission under a row lock so repeated or concurrent
        delivery is a no-op. Returns True only when this call approved it.
        """
        submission_id = submission.id if isinstance(submission, IndicatorSubmission) else submission
        async with unit_of_work(self.session):
            await self.session.flush()
            result = await self.session.execute(
                select(IndicatorSubmission)
                .where(IndicatorSubmission.id == submission_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            current = result.scalar_one_or_none()
            if current is None:
                raise SubmissionNotFoundError(submission_id)

            status = IndicatorSubmissionStatus(current.status)
            if status == IndicatorSubmissionStatus.APPROVED:
                return False
            if status == IndicatorSubmissionStatus.REJECTED:
                logger.warning(
                    "Completion requested for a rejected submission",
                    extra={"submission_id": str(current.id)},
                )
                return False

            await self.state_machine.transition_submission(current, IndicatorSubmissionStatus.APPROVED)
            return True

    # Loading

    async def _load_submission(
        self,
        submission: Union[IndicatorSubmission, uuid.UUID],
    ) -> IndicatorSubmission:
        if isinstance(submission, IndicatorSubmission):
            return submission
        loaded = await self.session.get(IndicatorSubmission, submission)
        if loaded is None:
            raise SubmissionNotFoundError(submission)
        return loaded

    async def _target_for_submission(self, submission: IndicatorSubmission) -> VerificationTarget:
        task = await self.session.get(IndicatorTask, submission.indicator_task_id)
        if task is None or task.is_deleted:
            raise TaskNotFoundForSubmissionError(submission.id)
        indicator = await self.indicatables.indicator_for_task(task)
        if indicator is None:
            raise MissingIndicatorAssociationError(task.id, "indicator")
        return VerificationTarget(submission=submission, task=task, indicator=indicator)

    async def _target_for_review(self, review: IndicatorSubmissionReview) -> VerificationTarget:
        submission = None
        if review.indicator_submission_id is not None:
            submission = await self.session.get(IndicatorSubmission, review.indicator_submission_id)
        if submission is None:
            raise SubmissionNotFoundForReviewError(review.id)

        task = await self.session.get(IndicatorTask, submission.indicator_task_id)
        if task is None or task.is_deleted:
            raise TaskNotFoundForReviewError(review.id)
        indicator = await self.indicatables.indicator_for_task(task)
        if indicator is None:
            raise MissingIndicatorAssociationError(task.id, "indicator")
        return VerificationTarget(submission=submission, task=task, indicator=indicator)

    # Writes

    async def _complete_without_verification(self, target: VerificationTarget) -> None:
        if target.task.is_completed:
            return
        if IndicatorSubmissionStatus(target.submission.status).is_pending:
            # The observer completes the task
            await self.state_machine.transition_submission(
                target.submission, IndicatorSubmissionStatus.APPROVED
            )
            return
        await self.state_machine.transition_task(
            target.task,
            IndicatorTaskStatus.COMPLETED,
            is_achieved=target.submission.is_achieved,
        )

    async def _find_or_create_review_task(
        self,
        target: VerificationTarget,
        level: int,
        role_id: uuid.UUID,
        verifier: Optional[User],
    ) -> Tuple[IndicatorReviewTask, bool]:
        """
        Insert-if-absent keyed on (submission, level), then read the row back.

        The unique constraint decides the race; no prior existence check.
        """
        days = self.settings_provider().indicator_review_task_days
        values = {
            "id": generate_uuid(),
            "indicator_submission_id": target.submission.id,
            "indicator_task_id": target.task.id,
            "verifier_user_id": verifier.id if verifier else None,
            "verifier_role_id": role_id,
            "verifier_level": level,
            "due_date": self.today() + timedelta(days=days),
        }

        try:
            await self.session.flush()
            dialect = self.session.get_bind().dialect.name
            insert = _INSERTS.get(dialect)
            if insert is None:
                raise IndicatorReviewTaskCreationError(
                    target.submission.id, level, f"unsupported database dialect {dialect}"
                )
            result = await self.session.execute(
                insert(IndicatorReviewTask)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["indicator_submission_id", "verifier_level"])
                .returning(IndicatorReviewTask.id)
            )
            created = result.scalar_one_or_none() is not None

            result = await self.session.execute(
                select(IndicatorReviewTask)
                .where(
                    IndicatorReviewTask.indicator_submission_id == target.submission.id,
                    IndicatorReviewTask.verifier_level == level,
                )
                .execution_options(populate_existing=True)
            )
            review_task = result.scalar_one()
        except SQLAlchemyError as exc:
            raise IndicatorReviewTaskCreationError(target.submission.id, level, str(exc)) from exc

        if created:
            logger.info(
                "Review task created",
                extra={
                    "review_task_id": str(review_task.id),
                    "submission_id": str(target.submission.id),
                    "verifier_level": level,
                    "due_date": review_task.due_date.isoformat() if review_task.due_date else None,
                },
            )
        return review_task, created
