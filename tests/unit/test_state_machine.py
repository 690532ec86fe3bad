"""Unit tests for submission/task status machines and derived task status."""

import uuid
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from indicator_workflow.exceptions import InvalidStatusTransitionError
from indicator_workflow.kernel.models import (
    IndicatorReviewTask,
    IndicatorSubmission,
    IndicatorSubmissionStatus,
    IndicatorTask,
    IndicatorTaskStatus,
    TaskActionType,
)
from indicator_workflow.orchestration.state_machine import (
    StateMachine,
    can_transition,
    valid_transitions,
)

S = IndicatorSubmissionStatus
T = IndicatorTaskStatus


class TestSubmissionTransitions:
    """Submission status moves forward only."""

    def test_level_one_can_advance_or_conclude(self):
        assert valid_transitions(S.PENDING_VERIFICATION_1) == sorted(
            [S.PENDING_VERIFICATION_2.value, S.APPROVED.value, S.REJECTED.value]
        )

    def test_level_two_can_only_conclude(self):
        assert can_transition(S.PENDING_VERIFICATION_2, S.APPROVED)
        assert can_transition(S.PENDING_VERIFICATION_2, S.REJECTED)
        assert not can_transition(S.PENDING_VERIFICATION_2, S.PENDING_VERIFICATION_1)

    def test_terminal_statuses_have_no_exits(self):
        """approved and rejected are final."""
        assert valid_transitions(S.APPROVED) == []
        assert valid_transitions(S.REJECTED) == []
        assert not can_transition(S.REJECTED, S.APPROVED)

    def test_plain_strings_accepted(self):
        """Statuses read back from the database are plain strings."""
        assert can_transition("pending_verification_1", "approved")


class TestTaskTransitions:
    """Task status follows its submissions and allows resubmission."""

    def test_resubmission_after_revision(self):
        assert can_transition(T.NEEDS_REVISION, T.SUBMITTED, "task")

    def test_resubmission_after_completion(self):
        """A completed task may receive a new submission."""
        assert can_transition(T.COMPLETED, T.SUBMITTED, "task")

    def test_rejection_only_from_submitted(self):
        assert can_transition(T.SUBMITTED, T.NEEDS_REVISION, "task")
        assert not can_transition(T.PENDING, T.NEEDS_REVISION, "task")

    def test_overdue_is_never_a_target(self):
        """overdue is display-only."""
        for status in T.database_types():
            assert not can_transition(status, T.OVERDUE, "task")


class TestStateMachine:
    """StateMachine writes statuses and refuses illegal transitions."""

    def _submission(self, status):
        return IndicatorSubmission(
            id=uuid.uuid4(),
            indicator_task_id=uuid.uuid4(),
            status=status,
            is_achieved=True,
        )

    @pytest.mark.asyncio
    async def test_advance_to_level_two_does_not_touch_task(self):
        """Non-terminal transitions never load the task."""
        session = AsyncMock()
        machine = StateMachine(session)
        submission = self._submission(S.PENDING_VERIFICATION_1)

        await machine.transition_submission(submission, S.PENDING_VERIFICATION_2)

        assert submission.status == S.PENDING_VERIFICATION_2
        session.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_submission_transition_raises(self):
        machine = StateMachine(AsyncMock())
        submission = self._submission(S.APPROVED)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            await machine.transition_submission(submission, S.PENDING_VERIFICATION_2)

        assert exc_info.value.entity == "submission"
        assert exc_info.value.from_status == "approved"
        assert submission.status == S.APPROVED

    @pytest.mark.asyncio
    async def test_transition_task_copies_achievement(self):
        machine = StateMachine(AsyncMock())
        task = IndicatorTask(id=uuid.uuid4(), status=T.SUBMITTED)

        await machine.transition_task(task, T.COMPLETED, is_achieved=False)

        assert task.status == T.COMPLETED
        assert task.is_achieved is False

    @pytest.mark.asyncio
    async def test_invalid_task_transition_raises(self):
        machine = StateMachine(AsyncMock())
        task = IndicatorTask(id=uuid.uuid4(), status=T.PENDING)

        with pytest.raises(InvalidStatusTransitionError):
            await machine.transition_task(task, T.NEEDS_REVISION)


class TestDisplayStatus:
    """Overdue is derived from the due date, never stored."""

    def test_pending_past_due_is_overdue(self):
        today = date(2024, 3, 10)
        task = IndicatorTask(status=T.PENDING, due_date=today - timedelta(days=1))
        assert task.display_status(today) == T.OVERDUE
        assert task.status == T.PENDING

    def test_due_today_is_not_overdue(self):
        """Overdue means strictly before today."""
        today = date(2024, 3, 10)
        task = IndicatorTask(status=T.PENDING, due_date=today)
        assert task.display_status(today) == T.PENDING

    def test_non_pending_never_overdue(self):
        today = date(2024, 3, 10)
        for status in (T.SUBMITTED, T.COMPLETED, T.NEEDS_REVISION):
            task = IndicatorTask(status=status, due_date=today - timedelta(days=30))
            assert task.display_status(today) == status

    def test_no_due_date(self):
        task = IndicatorTask(status=T.PENDING, due_date=None)
        assert task.display_status(date(2024, 3, 10)) == T.PENDING

    def test_action_type(self):
        """Pending-like tasks are submittable; others are view-only."""
        today = date(2024, 3, 10)
        assert IndicatorTask(status=T.PENDING).action_type(today) == TaskActionType.SUBMIT
        assert IndicatorTask(status=T.NEEDS_REVISION).action_type(today) == TaskActionType.SUBMIT
        overdue = IndicatorTask(status=T.PENDING, due_date=today - timedelta(days=2))
        assert overdue.action_type(today) == TaskActionType.SUBMIT
        assert IndicatorTask(status=T.SUBMITTED).action_type(today) == TaskActionType.VIEW
        assert IndicatorTask(status=T.COMPLETED).action_type(today) == TaskActionType.VIEW


class TestReviewTaskState:
    """Derived review-task flags."""

    def test_pending_and_orphaned(self):
        review_task = IndicatorReviewTask(verifier_level=1, verifier_user_id=None)
        assert review_task.is_completed is False
        assert review_task.is_orphaned is True

    def test_overdue_only_while_pending(self):
        today = date(2024, 3, 10)
        review_task = IndicatorReviewTask(
            verifier_level=1,
            verifier_user_id=uuid.uuid4(),
            due_date=today - timedelta(days=1),
        )
        assert review_task.is_overdue(today) is True

        review_task.completed_at = datetime.now(timezone.utc)
        assert review_task.is_overdue(today) is False

    def test_submission_status_flags(self):
        assert S.PENDING_VERIFICATION_1.is_pending
        assert S.PENDING_VERIFICATION_2.is_pending
        assert S.APPROVED.is_terminal
        assert S.REJECTED.is_terminal
