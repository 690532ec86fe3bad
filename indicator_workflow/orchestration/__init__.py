"""Orchestration layer - status machines and the submission observer.

Workflow listeners live in indicator_workflow.orchestration.listeners.
"""

from indicator_workflow.orchestration.state_machine import (
    StateMachine,
    SubmissionObserver,
    can_transition,
    valid_transitions,
)
from indicator_workflow.kernel.models.submission import IndicatorSubmissionStatus
from indicator_workflow.kernel.models.task import IndicatorTaskStatus

__all__ = [
    "StateMachine",
    "SubmissionObserver",
    "can_transition",
    "valid_transitions",
    "IndicatorSubmissionStatus",
    "IndicatorTaskStatus",
]
