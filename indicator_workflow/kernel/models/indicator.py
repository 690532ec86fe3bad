"""
Indicator definitions and their programme associations.

Two indicator variants share one workflow contract:

    IndicatorSuccess     -- IndicatorSuccessProgramme     -- IndicatorSuccessProgrammeMonth
    IndicatorCompliance  -- IndicatorComplianceProgramme  -- IndicatorComplianceProgrammeMonth

An association starts `pending` and becomes `published` exactly once; a
published association freezes the indicator's workflow fields.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin, generate_uuid


class ResponseFormat(str, Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    PERCENTAGE = "percentage"
    MONETARY = "monetary"


class ComplianceType(str, Enum):
    """How compliance targets are distributed across programme months."""

    ELEMENT_PROGRESS = "element-progress"
    ATTENDANCE_LEARNING = "attendance-learning"
    ATTENDANCE_MENTORING = "attendance-mentoring"
    OTHER = "other"

    @property
    def is_attendance(self) -> bool:
        return self in (ComplianceType.ATTENDANCE_LEARNING, ComplianceType.ATTENDANCE_MENTORING)


class ProgrammeIndicatorStatus(str, Enum):
    PENDING = "pending"
    PUBLISHED = "published"


class IndicatorMixin:
    """Columns shared by both indicator variants."""

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_format: Mapped[ResponseFormat] = mapped_column(
        String(20),
        default=ResponseFormat.NUMERIC,
        nullable=False,
    )
    # Null means any submitted value counts as achieved
    acceptance_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    verifier_1_role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    verifier_2_role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    responsible_role_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Fields frozen once the indicator is published to a programme
    WORKFLOW_FIELDS = (
        "response_format",
        "acceptance_value",
        "verifier_1_role_id",
        "verifier_2_role_id",
    )

    def requires_verification(self) -> bool:
        return self.verifier_1_role_id is not None or self.verifier_2_role_id is not None

    def verifier_role_for_level(self, level: int) -> Optional[uuid.UUID]:
        if level == 1:
            return self.verifier_1_role_id
        if level == 2:
            return self.verifier_2_role_id
        return None


class IndicatorSuccess(Base, TimestampMixin, SoftDeleteMixin, IndicatorMixin):
    """A success metric (outcome) tracked per programme month."""

    __tablename__ = "indicator_successes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)

    def __repr__(self) -> str:
        return f"<IndicatorSuccess {self.title}>"


class IndicatorCompliance(Base, TimestampMixin, SoftDeleteMixin, IndicatorMixin):
    """A compliance metric; `type` governs how month targets are set."""

    __tablename__ = "indicator_compliances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    type: Mapped[ComplianceType] = mapped_column(
        String(50),
        default=ComplianceType.OTHER,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<IndicatorCompliance {self.title} {self.type}>"


class IndicatorSuccessProgramme(Base, TimestampMixin):
    __tablename__ = "indicator_success_programmes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    indicator_success_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_successes.id", ondelete="CASCADE"),
        nullable=False,
    )
    programme_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("programmes.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[ProgrammeIndicatorStatus] = mapped_column(
        String(20),
        default=ProgrammeIndicatorStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("indicator_success_id", "programme_id", name="uq_indicator_success_programme"),
    )

    @property
    def indicator_id(self) -> uuid.UUID:
        return self.indicator_success_id


class IndicatorComplianceProgramme(Base, TimestampMixin):
    __tablename__ = "indicator_compliance_programmes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    indicator_compliance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_compliances.id", ondelete="CASCADE"),
        nullable=False,
    )
    programme_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("programmes.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[ProgrammeIndicatorStatus] = mapped_column(
        String(20),
        default=ProgrammeIndicatorStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "indicator_compliance_id", "programme_id", name="uq_indicator_compliance_programme"
        ),
    )

    @property
    def indicator_id(self) -> uuid.UUID:
        return self.indicator_compliance_id


class IndicatorSuccessProgrammeMonth(Base, TimestampMixin, SoftDeleteMixin):
    """A collection window (programme month) for a success indicator."""

    __tablename__ = "indicator_success_programme_months"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    indicator_success_programme_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_success_programmes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    programme_month: Mapped[int] = mapped_column(Integer, nullable=False)
    target_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    @property
    def association_id(self) -> uuid.UUID:
        return self.indicator_success_programme_id


class IndicatorComplianceProgrammeMonth(Base, TimestampMixin, SoftDeleteMixin):
    """A collection window (programme month) for a compliance indicator."""

    __tablename__ = "indicator_compliance_programme_months"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    indicator_compliance_programme_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("indicator_compliance_programmes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    programme_month: Mapped[int] = mapped_column(Integer, nullable=False)
    target_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    @property
    def association_id(self) -> uuid.UUID:
        return self.indicator_compliance_programme_id
