"""
Workflow listeners - wire events to the verification workflow.

    SubmissionSubmitted            -> process_submission_for_verification
    SubmissionApproved             -> handle_approved_review
    SubmissionRejected             -> handle_rejected_review, notify submitter
    TaskCompleted                  -> complete_task_and_submission, notify entrepreneur
    SubmissionAwaitingVerification -> notify verifier

Workflow steps join the emitter's unit of work, so a failing step rolls
back the write that triggered it (a submission, a review decision).
Notifications run after commit and are fire-and-forget: a failing notifier
is logged and never undoes a workflow transition.
"""

from typing import Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.config import Settings, load_settings
from indicator_workflow.engines.verification.verification_service import VerificationService
from indicator_workflow.exceptions import ReviewNotFoundError, SubmissionNotFoundError
from indicator_workflow.kernel.events.dispatcher import EventDispatcher
from indicator_workflow.kernel.events.event_types import (
    SubmissionApproved,
    SubmissionAwaitingVerification,
    SubmissionRejected,
    SubmissionSubmitted,
    TaskCompleted,
)
from indicator_workflow.kernel.events.unit_of_work import after_commit
from indicator_workflow.kernel.models.review import IndicatorReviewTask, IndicatorSubmissionReview
from indicator_workflow.kernel.models.submission import IndicatorSubmission
from indicator_workflow.kernel.models.task import IndicatorTask
from indicator_workflow.kernel.models.user import User
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    async def awaiting_verification(self, review_task: IndicatorReviewTask, verifier: User) -> None:
        ...

    async def submission_rejected(
        self,
        submission: IndicatorSubmission,
        review: IndicatorSubmissionReview,
    ) -> None:
        ...

    async def task_completed(self, task: IndicatorTask, submission: IndicatorSubmission) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes log lines."""

    async def awaiting_verification(self, review_task: IndicatorReviewTask, verifier: User) -> None:
        logger.info(
            "Submission awaiting verification",
            extra={
                "review_task_id": str(review_task.id),
                "verifier_level": review_task.verifier_level,
                "verifier_id": str(verifier.id),
            },
        )

    async def submission_rejected(
        self,
        submission: IndicatorSubmission,
        review: IndicatorSubmissionReview,
    ) -> None:
        logger.info(
            "Submission rejected",
            extra={
                "submission_id": str(submission.id),
                "submitter_id": str(submission.submitter_id) if submission.submitter_id else None,
                "verifier_level": review.verifier_level,
            },
        )

    async def task_completed(self, task: IndicatorTask, submission: IndicatorSubmission) -> None:
        logger.info(
            "Indicator task completed",
            extra={
                "indicator_task_id": str(task.id),
                "entrepreneur_id": str(task.entrepreneur_id) if task.entrepreneur_id else None,
                "is_achieved": task.is_achieved,
            },
        )


class WorkflowListeners:
    """Event handlers; each builds a VerificationService on the delivering session."""

    def __init__(
        self,
        dispatcher: EventDispatcher,
        notifier: Notifier,
        settings_provider: Callable[[], Settings] = load_settings,
    ):
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.settings_provider = settings_provider

    def verification(self, session: AsyncSession) -> VerificationService:
        return VerificationService(session, self.dispatcher, settings_provider=self.settings_provider)

    async def on_submission_submitted(self, session: AsyncSession, event: SubmissionSubmitted) -> None:
        submission = await session.get(IndicatorSubmission, event.submission_id)
        if submission is None:
            raise SubmissionNotFoundError(event.submission_id)
        await self.verification(session).process_submission_for_verification(submission)

    async def on_submission_approved(self, session: AsyncSession, event: SubmissionApproved) -> None:
        review = await self._review(session, event.review_id)
        await self.verification(session).handle_approved_review(review)

    async def on_submission_rejected(self, session: AsyncSession, event: SubmissionRejected) -> None:
        review = await self._review(session, event.review_id)
        await self.verification(session).handle_rejected_review(review)

    async def on_task_completed(self, session: AsyncSession, event: TaskCompleted) -> None:
        completed = await self.verification(session).complete_task_and_submission(event.submission_id)
        if not completed:
            logger.debug(
                "Task completion already applied",
                extra={"submission_id": str(event.submission_id)},
            )
            return

        async def _notify() -> None:
            try:
                submission = await session.get(IndicatorSubmission, event.submission_id)
                task = await session.get(IndicatorTask, submission.indicator_task_id)
                await self.notifier.task_completed(task, submission)
            except Exception:
                logger.exception(
                    "Task completed notification failed",
                    extra={"submission_id": str(event.submission_id)},
                )

        await after_commit(session, _notify)

    async def notify_submission_rejected(self, session: AsyncSession, event: SubmissionRejected) -> None:
        review = await self._review(session, event.review_id)
        submission = await session.get(IndicatorSubmission, review.indicator_submission_id)
        if submission is None:
            logger.warning("Rejected submission no longer exists", extra={"review_id": str(review.id)})
            return
        await self.notifier.submission_rejected(submission, review)

    async def notify_awaiting_verification(
        self,
        session: AsyncSession,
        event: SubmissionAwaitingVerification,
    ) -> None:
        review_task = await session.get(IndicatorReviewTask, event.review_task_id)
        verifier = await session.get(User, event.verifier_id)
        if review_task is None or verifier is None:
            logger.warning(
                "Cannot notify verifier, review task or verifier missing",
                extra={"review_task_id": str(event.review_task_id), "verifier_id": str(event.verifier_id)},
            )
            return
        await self.notifier.awaiting_verification(review_task, verifier)

    @staticmethod
    async def _review(session: AsyncSession, review_id) -> IndicatorSubmissionReview:
        review = await session.get(IndicatorSubmissionReview, review_id)
        if review is None:
            raise ReviewNotFoundError(review_id)
        return review


def register_workflow_listeners(
    dispatcher: EventDispatcher,
    notifier: Optional[Notifier] = None,
    *,
    settings_provider: Callable[[], Settings] = load_settings,
) -> WorkflowListeners:
    """Register the verification workflow on a dispatcher."""
    listeners = WorkflowListeners(dispatcher, notifier or LoggingNotifier(), settings_provider)

    dispatcher.listen(SubmissionSubmitted, listeners.on_submission_submitted, in_transaction=True)
    dispatcher.listen(SubmissionApproved, listeners.on_submission_approved, in_transaction=True)
    dispatcher.listen(SubmissionRejected, listeners.on_submission_rejected, in_transaction=True)
    dispatcher.listen(SubmissionRejected, listeners.notify_submission_rejected, fire_and_forget=True)
    dispatcher.listen(TaskCompleted, listeners.on_task_completed, in_transaction=True)
    dispatcher.listen(
        SubmissionAwaitingVerification,
        listeners.notify_awaiting_verification,
        fire_and_forget=True,
    )
    return listeners
