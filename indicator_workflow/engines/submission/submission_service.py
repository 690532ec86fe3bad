"""
Submission Service - validates and persists indicator submissions.

One unit of work per submission:
1. load the task and its indicator
2. compute is_achieved against the indicator's acceptance value
3. persist the submission (pending_verification_1, or approved when the
   indicator needs no verification) with its attachments
4. propagate to the task and emit SubmissionSubmitted; verification runs
   inside the same unit of work, so a verification failure rejects the
   whole submission
5. after commit, invalidate the dashboard cache for the task's seat

Files written to storage during a unit of work that rolls back are removed.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.engines.indicators.achievement import is_achieved
from indicator_workflow.engines.indicators.indicatable import IndicatableResolver
from indicator_workflow.engines.submission.attachments import (
    LocalAttachmentStorage,
    StoredFile,
    clean_storage_path,
)
from indicator_workflow.engines.submission.cache import DashboardCache
from indicator_workflow.exceptions import (
    AttachmentNotFoundError,
    IndicatorTaskNotFoundError,
    MissingIndicatorAssociationError,
)
from indicator_workflow.kernel.events.dispatcher import EventDispatcher
from indicator_workflow.kernel.events.event_types import SubmissionSubmitted
from indicator_workflow.kernel.events.unit_of_work import defer_until_commit, on_rollback, unit_of_work
from indicator_workflow.kernel.models.submission import (
    IndicatorSubmission,
    IndicatorSubmissionAttachment,
    IndicatorSubmissionStatus,
)
from indicator_workflow.kernel.models.task import IndicatorTask
from indicator_workflow.kernel.models.user import User
from indicator_workflow.logging_config import get_logger
from indicator_workflow.orchestration.state_machine import StateMachine
from indicator_workflow.schemas.submission import (
    AttachmentInput,
    ExistingAttachmentRef,
    SubmissionCreate,
    UploadedAttachment,
)

logger = get_logger(__name__)

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


def to_number_if_numeric(value: Any) -> Any:
    """"85" -> 85, "85.5" -> 85.5; anything else unchanged."""
    if not isinstance(value, str) or not _NUMERIC.match(value.strip()):
        return value
    text = value.strip()
    return float(text) if "." in text else int(text)


def stringify_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SubmissionService:
    """
    Usage:
        service = SubmissionService(session, dispatcher, cache=cache)
        submission = await service.create_submission(
            SubmissionCreate(indicator_task_id=task.id, value="85"),
            submitter=entrepreneur,
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: EventDispatcher,
        *,
        storage: Optional[LocalAttachmentStorage] = None,
        cache: Optional[DashboardCache] = None,
        state_machine: Optional[StateMachine] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.storage = storage or LocalAttachmentStorage()
        self.cache = cache
        self.state_machine = state_machine or StateMachine(session)
        self.indicatables = IndicatableResolver(session)

    async def create_submission(
        self,
        data: SubmissionCreate,
        submitter: Union[User, uuid.UUID, None],
    ) -> IndicatorSubmission:
        """
        Create a submission for a task.

        Raises:
            IndicatorTaskNotFoundError: the task does not exist
            AttachmentNotFoundError: a referenced prior attachment does not exist
            InvalidSubmissionValueError: the value cannot be compared for its format
        """
        submitter_id = submitter.id if isinstance(submitter, User) else submitter

        async with unit_of_work(self.session):
            task = await self.session.get(IndicatorTask, data.indicator_task_id)
            if task is None or task.is_deleted:
                raise IndicatorTaskNotFoundError(data.indicator_task_id)

            indicator = await self.indicatables.indicator_for_task(task)
            if indicator is None:
                raise MissingIndicatorAssociationError(task.id, "indicator")

            status = (
                IndicatorSubmissionStatus.PENDING_VERIFICATION_1
                if indicator.requires_verification()
                else IndicatorSubmissionStatus.APPROVED
            )
            submission = IndicatorSubmission(
                indicator_task_id=task.id,
                value=stringify_value(data.value),
                comment=data.comment,
                is_achieved=is_achieved(indicator.response_format, indicator.acceptance_value, data.value),
                status=status,
                submitter_id=submitter_id,
                submitted_at=datetime.now(timezone.utc),
            )
            self.session.add(submission)
            await self.session.flush()

            for attachment in data.attachments:
                await self._attach(submission, attachment)

            await self.state_machine.submission_created(submission)
            self._invalidate_cache_after_commit(task)
            await self.dispatcher.emit(self.session, SubmissionSubmitted(submission_id=submission.id))

        logger.info(
            "Submission created",
            extra={
                "submission_id": str(submission.id),
                "indicator_task_id": str(submission.indicator_task_id),
                "status": IndicatorSubmissionStatus(submission.status).value,
                "is_achieved": submission.is_achieved,
            },
        )
        return submission

    async def create_submission_from_admin_form(
        self,
        form_data: Dict[str, Any],
        submitter: Union[User, uuid.UUID, None],
        task_id: uuid.UUID,
    ) -> IndicatorSubmission:
        """
        Create a submission from admin form data.

        Numeric strings become numbers; attachment paths lose their storage
        prefixes and files missing from storage are dropped.
        """
        attachments: List[AttachmentInput] = []
        for path in form_data.get("attachments") or []:
            cleaned = clean_storage_path(path)
            if self.storage.exists(cleaned):
                attachments.append(cleaned)
            else:
                logger.warning("Dropping missing admin attachment", extra={"path": path})

        data = SubmissionCreate(
            indicator_task_id=task_id,
            value=to_number_if_numeric(form_data.get("value")),
            comment=form_data.get("comment"),
            attachments=attachments,
        )
        return await self.create_submission(data, submitter)

    async def _attach(
        self,
        submission: IndicatorSubmission,
        attachment: AttachmentInput,
    ) -> Optional[IndicatorSubmissionAttachment]:
        if isinstance(attachment, UploadedAttachment):
            stored = self.storage.store(attachment.filename, attachment.content, attachment.mime_type)
            self._discard_on_rollback(stored)
            title = attachment.title or attachment.filename
        elif isinstance(attachment, ExistingAttachmentRef):
            existing = await self.session.get(IndicatorSubmissionAttachment, attachment.attachment_id)
            if existing is None or not self.storage.exists(existing.file_path):
                raise AttachmentNotFoundError(attachment.attachment_id)
            stored = self.storage.copy(existing.file_path)
            self._discard_on_rollback(stored)
            title = attachment.title or existing.title
        else:
            if not self.storage.exists(attachment):
                logger.warning(
                    "Skipping attachment missing from storage",
                    extra={"path": attachment, "submission_id": str(submission.id)},
                )
                return None
            stored = self.storage.describe(attachment)
            title = attachment.rsplit("/", 1)[-1]

        row = IndicatorSubmissionAttachment(
            indicator_submission_id=submission.id,
            title=title,
            file_path=stored.path,
            mime_type=stored.mime_type,
            file_size=stored.size,
        )
        self.session.add(row)
        return row

    def _discard_on_rollback(self, stored: StoredFile) -> None:
        storage = self.storage
        on_rollback(self.session, lambda: storage.delete(stored.path))

    def _invalidate_cache_after_commit(self, task: IndicatorTask) -> None:
        if self.cache is None:
            return
        if task.entrepreneur_id is None or task.organisation_id is None or task.programme_id is None:
            logger.warning(
                "Task has no complete dashboard seat, cache not invalidated",
                extra={"indicator_task_id": str(task.id)},
            )
            return

        cache = self.cache
        seat = (task.entrepreneur_id, task.organisation_id, task.programme_id)

        async def _invalidate() -> None:
            await cache.invalidate(*seat)

        defer_until_commit(self.session, _invalidate)
