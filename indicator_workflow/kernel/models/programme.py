"""
Programme model and programme-scoped role assignments.
"""

import uuid

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class Programme(Base, TimestampMixin):
    """A programme entrepreneurs are enrolled in, running for `duration` months."""

    __tablename__ = "programmes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=12, nullable=False)

    def __repr__(self) -> str:
        return f"<Programme {self.title}>"


class ProgrammeUserRole(Base, TimestampMixin):
    """Role assignment scoped to a programme (managers, coordinators)."""

    __tablename__ = "programme_user_roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    programme_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("programmes.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_programme_user_roles_programme_role", "programme_id", "role_id"),
    )
