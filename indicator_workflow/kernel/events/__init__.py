"""
Event infrastructure.

Typed event payloads, a commit-aware dispatcher, the unit-of-work
transaction boundary and the append-only activity logger.
"""

from indicator_workflow.kernel.events.activity_logger import ActivityLogger
from indicator_workflow.kernel.events.dispatcher import EventDispatcher, Listener
from indicator_workflow.kernel.events.event_types import (
    BaseEvent,
    SubmissionApproved,
    SubmissionAwaitingVerification,
    SubmissionRejected,
    SubmissionSubmitted,
    TaskCompleted,
)
from indicator_workflow.kernel.events.unit_of_work import (
    after_commit,
    defer_until_commit,
    in_unit_of_work,
    on_rollback,
    unit_of_work,
)

__all__ = [
    "ActivityLogger",
    "EventDispatcher",
    "Listener",
    "BaseEvent",
    "SubmissionApproved",
    "SubmissionAwaitingVerification",
    "SubmissionRejected",
    "SubmissionSubmitted",
    "TaskCompleted",
    "after_commit",
    "defer_until_commit",
    "in_unit_of_work",
    "on_rollback",
    "unit_of_work",
]
