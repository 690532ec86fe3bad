"""
IndicatorTask model - one entrepreneur's obligation to report on one
indicator for one programme month.

`status` is stored; `overdue` is only ever a display status derived from
the due date.
"""

import uuid
from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid


class IndicatorTaskStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    NEEDS_REVISION = "needs_revision"
    OVERDUE = "overdue"

    @classmethod
    def pending_types(cls) -> tuple["IndicatorTaskStatus", ...]:
        return (cls.PENDING, cls.NEEDS_REVISION, cls.OVERDUE)

    @classmethod
    def submittable_types(cls) -> tuple["IndicatorTaskStatus", ...]:
        return (cls.PENDING, cls.NEEDS_REVISION, cls.OVERDUE)

    @classmethod
    def viewable_types(cls) -> tuple["IndicatorTaskStatus", ...]:
        return (cls.COMPLETED, cls.SUBMITTED)

    @classmethod
    def database_types(cls) -> tuple["IndicatorTaskStatus", ...]:
        """Statuses that may be persisted (overdue is derived)."""
        return (cls.PENDING, cls.SUBMITTED, cls.COMPLETED, cls.NEEDS_REVISION)


class ResponsibleType(str, Enum):
    USER = "user"
    SYSTEM = "system"


class TaskActionType(str, Enum):
    SUBMIT = "submit"
    VIEW = "view"


class IndicatableType(str, Enum):
    """Discriminator for the indicator a task reports on."""

    SUCCESS = "indicator_success"
    COMPLIANCE = "indicator_compliance"


class IndicatorTask(Base, TimestampMixin, SoftDeleteMixin):
    """
    Task assigned to an entrepreneur for one indicator-month.

    The indicator and its month are referenced through (type, id) pairs;
    `indicatable_type` selects the Success or Compliance tables.
    """

    __tablename__ = "indicator_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    # Context
    entrepreneur_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    organisation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("organisations.id", ondelete="SET NULL"),
        nullable=True,
    )
    programme_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("programmes.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Indicator and month (polymorphic pairs)
    indicatable_type: Mapped[IndicatableType] = mapped_column(String(50), nullable=False)
    indicatable_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    indicatable_month_type: Mapped[IndicatableType] = mapped_column(String(50), nullable=False)
    indicatable_month_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)

    # Responsibility
    responsible_type: Mapped[ResponsibleType] = mapped_column(
        String(20),
        default=ResponsibleType.USER,
        nullable=False,
    )
    responsible_role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    responsible_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[IndicatorTaskStatus] = mapped_column(
        String(20),
        default=IndicatorTaskStatus.PENDING,
        nullable=False,
    )
    is_achieved: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    __table_args__ = (
        Index(
            "ix_indicator_tasks_context",
            "entrepreneur_id",
            "organisation_id",
            "programme_id",
        ),
        Index("ix_indicator_tasks_month", "indicatable_month_type", "indicatable_month_id"),
    )

    @property
    def is_system_task(self) -> bool:
        return self.responsible_type == ResponsibleType.SYSTEM

    @property
    def is_user_task(self) -> bool:
        return self.responsible_type == ResponsibleType.USER

    @property
    def is_completed(self) -> bool:
        return self.status == IndicatorTaskStatus.COMPLETED

    def display_status(self, today: Optional[date] = None) -> IndicatorTaskStatus:
        """Stored status, except pending tasks past their due date show as overdue."""
        status = IndicatorTaskStatus(self.status)
        today = today or date.today()
        if (
            status == IndicatorTaskStatus.PENDING
            and self.due_date is not None
            and self.due_date < today
        ):
            return IndicatorTaskStatus.OVERDUE
        return status

    def action_type(self, today: Optional[date] = None) -> TaskActionType:
        if self.display_status(today) in IndicatorTaskStatus.submittable_types():
            return TaskActionType.SUBMIT
        return TaskActionType.VIEW

    def __repr__(self) -> str:
        return f"<IndicatorTask {self.id} {self.status}>"
