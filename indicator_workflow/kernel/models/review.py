"""
Review models.

IndicatorReviewTask: a unit of verifier work for one submission at one
approval level; (submission, level) is unique.

IndicatorSubmissionReview: the approve/reject decision that closes a
review task.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class IndicatorReviewTask(Base, TimestampMixin):
    """Pending while `completed_at` is null; orphaned while no verifier is set."""

    __tablename__ = "indicator_review_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    indicator_submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_submissions.id", ondelete="CASCADE"),
        nullable=False,
    )
    indicator_task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    verifier_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    verifier_role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    verifier_level: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "indicator_submission_id",
            "verifier_level",
            name="uq_indicator_review_tasks_submission_level",
        ),
    )

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_orphaned(self) -> bool:
        return self.verifier_user_id is None

    def is_overdue(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (
            self.completed_at is None
            and self.due_date is not None
            and self.due_date < today
        )

    def __repr__(self) -> str:
        return f"<IndicatorReviewTask L{self.verifier_level} {self.indicator_submission_id}>"


class IndicatorSubmissionReview(Base, TimestampMixin):
    """Recorded verifier decision for one review task."""

    __tablename__ = "indicator_submission_reviews"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    indicator_review_task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_review_tasks.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    indicator_submission_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("indicator_submissions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    verifier_level: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        verdict = "approved" if self.approved else "rejected"
        return f"<IndicatorSubmissionReview L{self.verifier_level} {verdict}>"
