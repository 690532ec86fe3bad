"""
End-to-end verification workflow through the registered event listeners.

Covers the two-level happy path, rejection and resubmission, and
notification failures that must not undo workflow state.
"""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from indicator_workflow.engines.submission import SubmissionService
from indicator_workflow.engines.tasks import ReviewTaskQueries
from indicator_workflow.engines.verification import ReviewService
from indicator_workflow.exceptions import MissingIndicatorAssociationError, UnmappedVerifierRoleError
from indicator_workflow.kernel.events import EventDispatcher
from indicator_workflow.kernel.models import (
    GUIDE_PERMISSION,
    IndicatorReviewTask,
    IndicatorSubmission,
    IndicatorSubmissionReview,
    IndicatorSubmissionStatus,
    IndicatorTask,
    IndicatorTaskStatus,
    OrganisationGuide,
    ProgrammeUserRole,
    Role,
)
from indicator_workflow.orchestration.listeners import register_workflow_listeners
from indicator_workflow.schemas import ReviewDecision, SubmissionCreate, UploadedAttachment

S = IndicatorSubmissionStatus
T = IndicatorTaskStatus


@pytest_asyncio.fixture
async def verifiers(db_session, seat, roles, make_user):
    mentor = await make_user("Mandla Mentor", permissions=[GUIDE_PERMISSION])
    manager = await make_user("Palesa Manager")
    db_session.add_all([
        OrganisationGuide(organisation_id=seat.organisation.id, user_id=mentor.id),
        ProgrammeUserRole(
            programme_id=seat.programme.id,
            user_id=manager.id,
            role_id=roles["programme-manager"].id,
        ),
    ])
    await db_session.commit()
    return mentor, manager


async def _review_task(session, submission_id, level):
    result = await session.execute(
        select(IndicatorReviewTask).where(
            IndicatorReviewTask.indicator_submission_id == submission_id,
            IndicatorReviewTask.verifier_level == level,
        )
    )
    return result.scalar_one_or_none()


class TestTwoLevelVerification:
    """Mentor then programme manager approve a numeric submission."""

    @pytest.mark.asyncio
    async def test_full_approval_chain(
        self, db_session, workflow_dispatcher, notifier, storage, roles, make_task, seat, verifiers
    ):
        mentor, manager = verifiers
        bundle = await make_task(
            verifier_1_role=roles["mentor"],
            verifier_2_role=roles["programme-manager"],
            acceptance_value="80",
        )
        intake = SubmissionService(db_session, workflow_dispatcher, storage=storage)
        reviews = ReviewService(db_session, workflow_dispatcher)

        submission = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value=85),
            submitter=seat.entrepreneur,
        )

        assert submission.is_achieved is True
        assert submission.status == S.PENDING_VERIFICATION_1
        assert bundle.task.status == T.SUBMITTED
        level_one = await _review_task(db_session, submission.id, 1)
        assert level_one.verifier_user_id == mentor.id
        assert notifier.awaiting == [(level_one.id, mentor.id)]

        await reviews.record_decision(level_one.id, mentor, ReviewDecision(approved=True))

        assert submission.status == S.PENDING_VERIFICATION_2
        assert bundle.task.status == T.SUBMITTED
        level_two = await _review_task(db_session, submission.id, 2)
        assert level_two.verifier_user_id == manager.id
        assert notifier.awaiting[-1] == (level_two.id, manager.id)

        await reviews.record_decision(level_two.id, manager, ReviewDecision(approved=True))

        assert submission.status == S.APPROVED
        assert bundle.task.status == T.COMPLETED
        assert bundle.task.is_achieved is True
        assert notifier.completed == [bundle.task.id]
        assert await ReviewTaskQueries(db_session).pending() == []

    @pytest.mark.asyncio
    async def test_unverified_indicator_completes_on_intake(
        self, db_session, workflow_dispatcher, notifier, storage, make_task, seat
    ):
        bundle = await make_task(acceptance_value="80")
        intake = SubmissionService(db_session, workflow_dispatcher, storage=storage)

        submission = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value="70"),
            submitter=seat.entrepreneur,
        )

        assert submission.status == S.APPROVED
        assert bundle.task.status == T.COMPLETED
        assert bundle.task.is_achieved is False
        assert await _review_task(db_session, submission.id, 1) is None


class TestRejectionAndResubmission:
    """A rejected submission sends the task back; a resubmission restarts verification."""

    @pytest.mark.asyncio
    async def test_reject_then_resubmit(
        self, db_session, workflow_dispatcher, notifier, storage, roles, make_task, seat, verifiers
    ):
        mentor, _ = verifiers
        bundle = await make_task(verifier_1_role=roles["mentor"], acceptance_value="80")
        intake = SubmissionService(db_session, workflow_dispatcher, storage=storage)
        reviews = ReviewService(db_session, workflow_dispatcher)

        first = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value="60"),
            submitter=seat.entrepreneur,
        )
        level_one = await _review_task(db_session, first.id, 1)
        await reviews.record_decision(
            level_one.id, mentor, ReviewDecision(approved=False, comment="Attach the sales ledger")
        )

        assert first.status == S.REJECTED
        assert bundle.task.status == T.NEEDS_REVISION
        assert notifier.rejected == [first.id]

        second = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value="90"),
            submitter=seat.entrepreneur,
        )

        assert bundle.task.status == T.SUBMITTED
        retry = await _review_task(db_session, second.id, 1)
        assert retry is not None
        assert retry.id != level_one.id
        assert first.status == S.REJECTED


class TestNotificationFailures:
    """Notifications are fire-and-forget."""

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_undo_workflow(
        self, db_session, settings, storage, roles, make_task, seat, verifiers
    ):
        class BrokenNotifier:
            async def awaiting_verification(self, review_task, verifier):
                raise ConnectionError("smtp down")

            async def submission_rejected(self, submission, review):
                raise ConnectionError("smtp down")

            async def task_completed(self, task, submission):
                raise ConnectionError("smtp down")

        dispatcher = EventDispatcher()
        register_workflow_listeners(dispatcher, BrokenNotifier(), settings_provider=lambda: settings)
        mentor, _ = verifiers
        bundle = await make_task(verifier_1_role=roles["mentor"])
        intake = SubmissionService(db_session, dispatcher, storage=storage)

        submission = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value="5"),
            submitter=seat.entrepreneur,
        )
        level_one = await _review_task(db_session, submission.id, 1)
        assert level_one.verifier_user_id == mentor.id

        await ReviewService(db_session, dispatcher).record_decision(
            level_one.id, mentor, ReviewDecision(approved=True)
        )

        assert submission.status == S.APPROVED
        assert bundle.task.status == T.COMPLETED


class TestWorkflowFailuresRollBack:
    """A failing workflow step undoes the write that triggered it."""

    @pytest.mark.asyncio
    async def test_failed_verification_rejects_whole_submission(
        self, db_session, workflow_dispatcher, notifier, storage, roles, make_task, seat, verifiers
    ):
        bundle = await make_task(verifier_1_role=roles["mentor"], entrepreneur_id=None)
        task_id = bundle.task.id
        intake = SubmissionService(db_session, workflow_dispatcher, storage=storage)

        with pytest.raises(MissingIndicatorAssociationError):
            await intake.create_submission(
                SubmissionCreate(
                    indicator_task_id=task_id,
                    value="90",
                    attachments=[UploadedAttachment(filename="ledger.pdf", content=b"%PDF")],
                ),
                submitter=seat.entrepreneur,
            )

        submissions = await db_session.execute(
            select(func.count()).select_from(IndicatorSubmission).where(
                IndicatorSubmission.indicator_task_id == task_id
            )
        )
        status = await db_session.execute(select(IndicatorTask.status).where(IndicatorTask.id == task_id))
        assert submissions.scalar_one() == 0
        assert status.scalar_one() == T.PENDING
        assert notifier.awaiting == []
        assert list(storage.root.rglob("*.pdf")) == []

    @pytest.mark.asyncio
    async def test_failed_escalation_rejects_decision(
        self, db_session, workflow_dispatcher, notifier, storage, roles, make_task, seat, verifiers
    ):
        mentor, _ = verifiers
        board = Role(name="Board Member")
        db_session.add(board)
        await db_session.commit()
        bundle = await make_task(verifier_1_role=roles["mentor"], verifier_2_role=board)
        intake = SubmissionService(db_session, workflow_dispatcher, storage=storage)
        submission = await intake.create_submission(
            SubmissionCreate(indicator_task_id=bundle.task.id, value="90"),
            submitter=seat.entrepreneur,
        )
        submission_id = submission.id
        level_one = await _review_task(db_session, submission_id, 1)
        level_one_id = level_one.id

        with pytest.raises(UnmappedVerifierRoleError):
            await ReviewService(db_session, workflow_dispatcher).record_decision(
                level_one_id, mentor, ReviewDecision(approved=True)
            )

        reviews = await db_session.execute(
            select(func.count()).select_from(IndicatorSubmissionReview).where(
                IndicatorSubmissionReview.indicator_submission_id == submission_id
            )
        )
        completed_at = await db_session.execute(
            select(IndicatorReviewTask.completed_at).where(IndicatorReviewTask.id == level_one_id)
        )
        status = await db_session.execute(
            select(IndicatorSubmission.status).where(IndicatorSubmission.id == submission_id)
        )
        assert reviews.scalar_one() == 0
        assert completed_at.scalar_one() is None
        assert status.scalar_one() == S.PENDING_VERIFICATION_1
        assert await _review_task(db_session, submission_id, 2) is None
