"""
Typed exception hierarchy for the indicator workflow.

Every error carries a machine-readable ``code`` plus the identifiers needed
to diagnose it, so callers catch by type rather than by message.

    IndicatorWorkflowError
    |
    +-- InvalidStatusTransitionError
    |
    +-- IndicatorVerificationError
    |   +-- SubmissionNotFoundError
    |   +-- TaskNotFoundForSubmissionError
    |   +-- SubmissionNotFoundForReviewError
    |   +-- TaskNotFoundForReviewError
    |   +-- MissingIndicatorAssociationError
    |   +-- RoleNotFoundForVerificationLevelError
    |   |   +-- UnmappedVerifierRoleError
    |   +-- IndicatorReviewTaskCreationError
    |
    +-- ReviewError
    |   +-- ReviewNotFoundError
    |   +-- ReviewTaskNotFoundError
    |   +-- ReviewTaskAlreadyCompletedError
    |   +-- VerifierNotFoundError
    |
    +-- SubmissionIntakeError
    |   +-- IndicatorTaskNotFoundError
    |   +-- AttachmentNotFoundError
    |   +-- InvalidSubmissionValueError
    |
    +-- IndicatorProgrammeError
        +-- IndicatorProgrammeAssociationNotFoundError
        +-- IndicatorAlreadyPublishedError
        +-- IndicatorImmutableError
        +-- InvalidProgrammeMonthError
        +-- InvalidMonthTargetsError

None of these are retried inside the workflow; they abort the unit of work
and propagate to the caller.
"""

import uuid
from typing import Any, Optional


class IndicatorWorkflowError(Exception):
    """Base exception for all indicator workflow errors."""

    code: str = "INDICATOR_WORKFLOW_ERROR"


class InvalidStatusTransitionError(IndicatorWorkflowError):
    """A status machine was asked for a transition it does not allow."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid {entity} transition: {from_status} -> {to_status}")


# Verification


class IndicatorVerificationError(IndicatorWorkflowError):
    """Base exception for verification workflow errors."""

    code: str = "INDICATOR_VERIFICATION_ERROR"


class SubmissionNotFoundError(IndicatorVerificationError):
    code: str = "SUBMISSION_NOT_FOUND"

    def __init__(self, submission_id: uuid.UUID):
        self.submission_id = submission_id
        super().__init__(f"Indicator submission not found: {submission_id}")


class TaskNotFoundForSubmissionError(IndicatorVerificationError):
    code: str = "TASK_NOT_FOUND_FOR_SUBMISSION"

    def __init__(self, submission_id: uuid.UUID):
        self.submission_id = submission_id
        super().__init__(f"Indicator task not found for submission {submission_id}")


class SubmissionNotFoundForReviewError(IndicatorVerificationError):
    code: str = "SUBMISSION_NOT_FOUND_FOR_REVIEW"

    def __init__(self, review_id: uuid.UUID):
        self.review_id = review_id
        super().__init__(f"Indicator submission not found for review {review_id}")


class TaskNotFoundForReviewError(IndicatorVerificationError):
    code: str = "TASK_NOT_FOUND_FOR_REVIEW"

    def __init__(self, review_id: uuid.UUID):
        self.review_id = review_id
        super().__init__(f"Indicator task not found for review {review_id}")


class MissingIndicatorAssociationError(IndicatorVerificationError):
    """A task lacks an entity the verification workflow cannot proceed without."""

    code: str = "MISSING_INDICATOR_ASSOCIATION"

    def __init__(self, task_id: Optional[uuid.UUID], association: str):
        self.task_id = task_id
        self.association = association
        super().__init__(
            f"Indicator task {task_id} has no associated {association}, "
            "which is required for verification"
        )


class RoleNotFoundForVerificationLevelError(IndicatorVerificationError):
    code: str = "ROLE_NOT_FOUND_FOR_VERIFICATION_LEVEL"

    def __init__(
        self,
        message: str,
        level: Optional[int] = None,
        role_id: Optional[uuid.UUID] = None,
    ):
        self.level = level
        self.role_id = role_id
        super().__init__(message)


class UnmappedVerifierRoleError(RoleNotFoundForVerificationLevelError):
    """The role exists but no resolution strategy is registered for its slug."""

    code: str = "UNMAPPED_VERIFIER_ROLE"

    def __init__(self, designation: str, role_id: Optional[uuid.UUID] = None):
        self.designation = designation
        super().__init__(
            f"No verifier mapping exists for role: {designation}",
            role_id=role_id,
        )


class IndicatorReviewTaskCreationError(IndicatorVerificationError):
    code: str = "REVIEW_TASK_CREATION_FAILED"

    def __init__(self, submission_id: uuid.UUID, level: int, reason: str):
        self.submission_id = submission_id
        self.level = level
        super().__init__(
            f"Error creating level {level} review task for submission {submission_id}: {reason}"
        )


# Review decisions


class ReviewError(IndicatorWorkflowError):
    code: str = "REVIEW_ERROR"


class ReviewNotFoundError(ReviewError):
    code: str = "REVIEW_NOT_FOUND"

    def __init__(self, review_id: uuid.UUID):
        self.review_id = review_id
        super().__init__(f"Indicator submission review not found: {review_id}")


class ReviewTaskNotFoundError(ReviewError):
    code: str = "REVIEW_TASK_NOT_FOUND"

    def __init__(self, review_task_id: uuid.UUID):
        self.review_task_id = review_task_id
        super().__init__(f"Indicator review task not found: {review_task_id}")


class ReviewTaskAlreadyCompletedError(ReviewError):
    code: str = "REVIEW_TASK_ALREADY_COMPLETED"

    def __init__(self, review_task_id: uuid.UUID):
        self.review_task_id = review_task_id
        super().__init__(f"Indicator review task {review_task_id} is already completed")


class VerifierNotFoundError(ReviewError):
    code: str = "VERIFIER_NOT_FOUND"

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"Verifier user not found: {user_id}")


# Submission intake


class SubmissionIntakeError(IndicatorWorkflowError):
    code: str = "SUBMISSION_INTAKE_ERROR"


class IndicatorTaskNotFoundError(SubmissionIntakeError):
    code: str = "INDICATOR_TASK_NOT_FOUND"

    def __init__(self, task_id: Any):
        self.task_id = task_id
        super().__init__(f"Indicator task not found: {task_id}")


class AttachmentNotFoundError(SubmissionIntakeError):
    code: str = "ATTACHMENT_NOT_FOUND"

    def __init__(self, attachment_id: Any):
        self.attachment_id = attachment_id
        super().__init__(f"Attachment with ID {attachment_id} not found")


class InvalidSubmissionValueError(SubmissionIntakeError):
    code: str = "INVALID_SUBMISSION_VALUE"

    def __init__(self, value: Any, response_format: str):
        self.value = value
        self.response_format = response_format
        super().__init__(f"Value {value!r} is not valid for {response_format} indicators")


# Programme association


class IndicatorProgrammeError(IndicatorWorkflowError):
    code: str = "INDICATOR_PROGRAMME_ERROR"


class IndicatorProgrammeAssociationNotFoundError(IndicatorProgrammeError):
    code: str = "INDICATOR_PROGRAMME_ASSOCIATION_NOT_FOUND"

    def __init__(self, association_id: uuid.UUID):
        self.association_id = association_id
        super().__init__(f"Indicator programme association not found: {association_id}")


class IndicatorAlreadyPublishedError(IndicatorProgrammeError):
    code: str = "INDICATOR_ALREADY_PUBLISHED"

    def __init__(self, association_id: uuid.UUID):
        self.association_id = association_id
        super().__init__(
            f"Indicator programme association {association_id} is published and cannot be changed"
        )


class IndicatorImmutableError(IndicatorProgrammeError):
    code: str = "INDICATOR_IMMUTABLE"

    def __init__(self, indicator_id: uuid.UUID, fields: list[str]):
        self.indicator_id = indicator_id
        self.fields = fields
        super().__init__(
            f"Indicator {indicator_id} is published to a programme; "
            f"cannot change {', '.join(fields)}"
        )


class InvalidProgrammeMonthError(IndicatorProgrammeError):
    code: str = "INVALID_PROGRAMME_MONTH"

    def __init__(self, month: int, duration: int):
        self.month = month
        self.duration = duration
        super().__init__(
            f"Month {month} is not valid, it must be between 1 and the programme "
            f"duration, which is {duration} months"
        )


class InvalidMonthTargetsError(IndicatorProgrammeError):
    code: str = "INVALID_MONTH_TARGETS"

    def __init__(self, message: str, month: Optional[int] = None):
        self.month = month
        super().__init__(message)
