"""
Submission Engine - intake of indicator submissions and their attachments.
"""

from indicator_workflow.engines.submission.attachments import (
    LocalAttachmentStorage,
    StoredFile,
    clean_storage_path,
)
from indicator_workflow.engines.submission.cache import DashboardCache, InMemoryDashboardCache
from indicator_workflow.engines.submission.submission_service import SubmissionService

__all__ = [
    "LocalAttachmentStorage",
    "StoredFile",
    "clean_storage_path",
    "DashboardCache",
    "InMemoryDashboardCache",
    "SubmissionService",
]
