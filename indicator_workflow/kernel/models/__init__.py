"""
Kernel Data Models

SQLAlchemy models for indicators, tasks, submissions and reviews, plus the
organisational topology used to resolve verifiers.
"""

from indicator_workflow.kernel.models.base import (
    Base,
    TimestampMixin,
    SoftDeleteMixin,
    generate_uuid,
    slugify,
)
from indicator_workflow.kernel.models.user import User, Role, GUIDE_PERMISSION
from indicator_workflow.kernel.models.organisation import (
    Organisation,
    OrganisationGuide,
    DeliveryLocation,
    DeliveryLocationUserRole,
    Tenant,
    TenantCluster,
    TenantClusterUserRole,
)
from indicator_workflow.kernel.models.programme import Programme, ProgrammeUserRole
from indicator_workflow.kernel.models.indicator import (
    ComplianceType,
    IndicatorCompliance,
    IndicatorComplianceProgramme,
    IndicatorComplianceProgrammeMonth,
    IndicatorSuccess,
    IndicatorSuccessProgramme,
    IndicatorSuccessProgrammeMonth,
    ProgrammeIndicatorStatus,
    ResponseFormat,
)
from indicator_workflow.kernel.models.task import (
    IndicatableType,
    IndicatorTask,
    IndicatorTaskStatus,
    ResponsibleType,
    TaskActionType,
)
from indicator_workflow.kernel.models.submission import (
    IndicatorSubmission,
    IndicatorSubmissionAttachment,
    IndicatorSubmissionStatus,
)
from indicator_workflow.kernel.models.review import IndicatorReviewTask, IndicatorSubmissionReview
from indicator_workflow.kernel.models.activity_log import ActivityLog

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "generate_uuid",
    "slugify",
    # Users and roles
    "User",
    "Role",
    "GUIDE_PERMISSION",
    # Organisational topology
    "Organisation",
    "OrganisationGuide",
    "DeliveryLocation",
    "DeliveryLocationUserRole",
    "Tenant",
    "TenantCluster",
    "TenantClusterUserRole",
    "Programme",
    "ProgrammeUserRole",
    # Indicators
    "ComplianceType",
    "IndicatorCompliance",
    "IndicatorComplianceProgramme",
    "IndicatorComplianceProgrammeMonth",
    "IndicatorSuccess",
    "IndicatorSuccessProgramme",
    "IndicatorSuccessProgrammeMonth",
    "ProgrammeIndicatorStatus",
    "ResponseFormat",
    # Tasks
    "IndicatableType",
    "IndicatorTask",
    "IndicatorTaskStatus",
    "ResponsibleType",
    "TaskActionType",
    # Submissions
    "IndicatorSubmission",
    "IndicatorSubmissionAttachment",
    "IndicatorSubmissionStatus",
    # Reviews
    "IndicatorReviewTask",
    "IndicatorSubmissionReview",
    # Activity
    "ActivityLog",
]
