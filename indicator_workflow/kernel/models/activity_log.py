"""
Append-only activity log.

Rows are written by the ActivityLogger alongside the change they describe
and never updated.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, generate_uuid


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Subject
    subject_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)

    # Actor (system activity has none)
    causer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    properties: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_activity_logs_subject", "subject_type", "subject_id"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog {self.subject_type}:{self.subject_id} {self.description}>"
