"""
Review decision schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ReviewDecision(BaseModel):
    """A verifier's approve/reject decision; rejections must explain themselves."""

    approved: bool
    comment: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode="after")
    def require_feedback_on_rejection(self) -> "ReviewDecision":
        if not self.approved and not (self.comment or "").strip():
            raise ValueError("Feedback is required when rejecting a submission")
        return self

