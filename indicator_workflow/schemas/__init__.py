"""
Pydantic schemas for workflow input validation.
"""

from indicator_workflow.schemas.review import ReviewDecision
from indicator_workflow.schemas.submission import (
    AttachmentInput,
    ExistingAttachmentRef,
    SubmissionCreate,
    UploadedAttachment,
)

__all__ = [
    "AttachmentInput",
    "ExistingAttachmentRef",
    "ReviewDecision",
    "SubmissionCreate",
    "UploadedAttachment",
]
