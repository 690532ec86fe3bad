"""
Submission intake schemas.
"""

import uuid
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class UploadedAttachment(BaseModel):
    """A freshly uploaded file to store alongside the submission."""

    filename: str = Field(..., min_length=1, max_length=500)
    content: bytes
    mime_type: Optional[str] = None
    title: Optional[str] = Field(None, max_length=500)


class ExistingAttachmentRef(BaseModel):
    """Reference to an attachment of an earlier submission; the file is copied."""

    attachment_id: uuid.UUID
    title: Optional[str] = Field(None, max_length=500)


# A plain string is a path to a file already on attachment storage
AttachmentInput = Union[UploadedAttachment, ExistingAttachmentRef, str]


class SubmissionCreate(BaseModel):
    """Submission creation request."""

    indicator_task_id: uuid.UUID
    value: Union[bool, int, float, str, None] = None
    comment: Optional[str] = Field(None, max_length=5000)
    attachments: List[AttachmentInput] = Field(default_factory=list)
