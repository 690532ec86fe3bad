"""
Event payload definitions using Pydantic for validation.

Events carry identifiers only; listeners reload the entities they need
inside their own unit of work.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseEvent(BaseModel):
    """Base event payload structure."""

    model_config = ConfigDict(frozen=True)

    name: ClassVar[str] = "event"

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SubmissionSubmitted(BaseEvent):
    """A submission was persisted; verification should start."""

    name: ClassVar[str] = "indicator.submission_submitted"

    submission_id: uuid.UUID


class SubmissionAwaitingVerification(BaseEvent):
    """A review task was created (or reassigned) for a resolved verifier."""

    name: ClassVar[str] = "indicator.submission_awaiting_verification"

    submission_id: uuid.UUID
    review_task_id: uuid.UUID
    level: int
    verifier_id: uuid.UUID


class TaskCompleted(BaseEvent):
    """The verification chain finished; the submission should be approved."""

    name: ClassVar[str] = "indicator.task_completed"

    submission_id: uuid.UUID


class SubmissionApproved(BaseEvent):
    name: ClassVar[str] = "indicator.submission_approved"

    review_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None


class SubmissionRejected(BaseEvent):
    name: ClassVar[str] = "indicator.submission_rejected"

    review_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None
