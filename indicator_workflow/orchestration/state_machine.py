"""
Status machines for IndicatorSubmission and IndicatorTask.

Submission status is driven by the verification workflow; task status
follows it through SubmissionObserver, which the state machine invokes on
every submission status write. Callers never set task status themselves.

    pending_verification_1 -> pending_verification_2 -> approved
                 |                       |
                 +---------> rejected <--+
"""

from typing import Dict, List, Optional, Set

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.exceptions import InvalidStatusTransitionError
from indicator_workflow.kernel.models.submission import IndicatorSubmission, IndicatorSubmissionStatus
from indicator_workflow.kernel.models.task import IndicatorTask, IndicatorTaskStatus
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)

_S = IndicatorSubmissionStatus
_T = IndicatorTaskStatus

# from_status -> allowed to_status
_SUBMISSION_TRANSITIONS: Dict[str, Set[str]] = {
    _S.PENDING_VERIFICATION_1.value: {
        _S.PENDING_VERIFICATION_2.value,
        _S.APPROVED.value,
        _S.REJECTED.value,
    },
    _S.PENDING_VERIFICATION_2.value: {_S.APPROVED.value, _S.REJECTED.value},
    _S.APPROVED.value: set(),
    _S.REJECTED.value: set(),
}

# A new submission may arrive from any stored task status (resubmission).
# overdue is display-only and never stored.
_TASK_TRANSITIONS: Dict[str, Set[str]] = {
    _T.PENDING.value: {_T.SUBMITTED.value, _T.COMPLETED.value},
    _T.NEEDS_REVISION.value: {_T.SUBMITTED.value, _T.COMPLETED.value},
    _T.SUBMITTED.value: {_T.SUBMITTED.value, _T.COMPLETED.value, _T.NEEDS_REVISION.value},
    _T.COMPLETED.value: {_T.SUBMITTED.value, _T.COMPLETED.value},
}

_ENTITY_TABLES = {
    "submission": _SUBMISSION_TRANSITIONS,
    "task": _TASK_TRANSITIONS,
}


def _value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def valid_transitions(from_status: str, entity_type: str = "submission") -> List[str]:
    """Return the statuses reachable from `from_status`."""
    table = _ENTITY_TABLES[entity_type]
    return sorted(table.get(_value(from_status), set()))


def can_transition(from_status: str, to_status: str, entity_type: str = "submission") -> bool:
    return _value(to_status) in _ENTITY_TABLES[entity_type].get(_value(from_status), set())


class SubmissionObserver:
    """
    Keeps the owning task in step with its submissions.

    created:  pending submission -> task submitted
              approved submission (no verification) -> task completed
    updated:  approved -> task completed, is_achieved copied
              rejected -> task needs_revision

    Runs in the caller's session, so task and submission commit together.
    Only the task's latest submission drives the task.
    """

    def __init__(self, session: AsyncSession, state_machine: "StateMachine"):
        self.session = session
        self.state_machine = state_machine

    async def created(self, submission: IndicatorSubmission) -> None:
        task = await self._task_for(submission)
        if task is None:
            return
        if IndicatorSubmissionStatus(submission.status) == _S.APPROVED:
            await self.state_machine.transition_task(
                task, _T.COMPLETED, is_achieved=submission.is_achieved
            )
        else:
            await self.state_machine.transition_task(task, _T.SUBMITTED)

    async def status_changed(
        self,
        submission: IndicatorSubmission,
        from_status: IndicatorSubmissionStatus,
    ) -> None:
        to_status = IndicatorSubmissionStatus(submission.status)
        if to_status not in (_S.APPROVED, _S.REJECTED):
            return

        task = await self._task_for(submission)
        if task is None:
            return
        if not await self._is_latest(submission):
            logger.info(
                "Superseded submission reached a terminal status; task left unchanged",
                extra={"submission_id": str(submission.id), "status": to_status.value},
            )
            return

        if to_status == _S.APPROVED:
            await self.state_machine.transition_task(
                task, _T.COMPLETED, is_achieved=submission.is_achieved
            )
        else:
            await self.state_machine.transition_task(task, _T.NEEDS_REVISION)

    async def _task_for(self, submission: IndicatorSubmission) -> Optional[IndicatorTask]:
        task = await self.session.get(IndicatorTask, submission.indicator_task_id)
        if task is None or task.is_deleted:
            logger.error(
                "Cannot propagate submission status, task not found",
                extra={
                    "submission_id": str(submission.id),
                    "indicator_task_id": str(submission.indicator_task_id),
                },
            )
            return None
        return task

    async def _is_latest(self, submission: IndicatorSubmission) -> bool:
        await self.session.flush()
        result = await self.session.execute(
            select(IndicatorSubmission.id)
            .where(IndicatorSubmission.indicator_task_id == submission.indicator_task_id)
            .order_by(
                desc(IndicatorSubmission.submitted_at).nulls_last(),
                desc(IndicatorSubmission.created_at),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() == submission.id


class StateMachine:
    """Service for performing submission and task status transitions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.observer = SubmissionObserver(session, self)

    async def submission_created(self, submission: IndicatorSubmission) -> None:
        """Run creation-time propagation for a freshly persisted submission."""
        await self.observer.created(submission)

    async def transition_submission(
        self,
        submission: IndicatorSubmission,
        to_status: IndicatorSubmissionStatus,
    ) -> IndicatorSubmission:
        """Change submission status and propagate terminal statuses to the task."""
        from_status = IndicatorSubmissionStatus(submission.status)
        if not can_transition(from_status, to_status, "submission"):
            raise InvalidStatusTransitionError("submission", from_status.value, _value(to_status))

        submission.status = IndicatorSubmissionStatus(to_status)
        logger.debug(
            "Submission status changed",
            extra={
                "submission_id": str(submission.id),
                "from_status": from_status.value,
                "to_status": _value(to_status),
            },
        )
        await self.observer.status_changed(submission, from_status)
        return submission

    async def transition_task(
        self,
        task: IndicatorTask,
        to_status: IndicatorTaskStatus,
        is_achieved: Optional[bool] = None,
    ) -> IndicatorTask:
        from_status = IndicatorTaskStatus(task.status)
        if not can_transition(from_status, to_status, "task"):
            raise InvalidStatusTransitionError("task", from_status.value, _value(to_status))

        task.status = IndicatorTaskStatus(to_status)
        if is_achieved is not None:
            task.is_achieved = is_achieved
        logger.debug(
            "Task status changed",
            extra={
                "indicator_task_id": str(task.id),
                "from_status": from_status.value,
                "to_status": _value(to_status),
            },
        )
        return task
