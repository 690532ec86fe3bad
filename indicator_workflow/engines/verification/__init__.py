"""
Verification Engine - verifier resolution, the tiered verification
workflow and review decisions.
"""

from indicator_workflow.engines.verification.role_resolver import (
    VERIFIER_STRATEGIES,
    RoleResolver,
    VerificationContext,
    verifier_strategy,
)
from indicator_workflow.engines.verification.verification_service import VerificationService
from indicator_workflow.engines.verification.review_service import ReviewService

__all__ = [
    "VERIFIER_STRATEGIES",
    "RoleResolver",
    "VerificationContext",
    "verifier_strategy",
    "VerificationService",
    "ReviewService",
]
