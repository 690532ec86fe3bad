"""
IndicatorSubmission model - a single reported value against a task.

Submissions are append-only: resubmitting creates a new row on the same
task and the most recent one wins.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from indicator_workflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class IndicatorSubmissionStatus(str, Enum):
    PENDING_VERIFICATION_1 = "pending_verification_1"
    PENDING_VERIFICATION_2 = "pending_verification_2"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_pending(self) -> bool:
        return self in (
            IndicatorSubmissionStatus.PENDING_VERIFICATION_1,
            IndicatorSubmissionStatus.PENDING_VERIFICATION_2,
        )

    @property
    def is_terminal(self) -> bool:
        return not self.is_pending


class IndicatorSubmission(Base, TimestampMixin):
    """A reported value; `status` drives the owning task's status."""

    __tablename__ = "indicator_submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    indicator_task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_achieved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[IndicatorSubmissionStatus] = mapped_column(
        String(50),
        default=IndicatorSubmissionStatus.PENDING_VERIFICATION_1,
        nullable=False,
        index=True,
    )
    submitter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    attachments: Mapped[List["IndicatorSubmissionAttachment"]] = relationship(
        "IndicatorSubmissionAttachment",
        back_populates="submission",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<IndicatorSubmission {self.id} {self.status}>"


class IndicatorSubmissionAttachment(Base, TimestampMixin):
    """File evidence attached to a submission."""

    __tablename__ = "indicator_submission_attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    indicator_submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    submission: Mapped["IndicatorSubmission"] = relationship(
        "IndicatorSubmission",
        back_populates="attachments",
    )
