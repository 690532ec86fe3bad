"""
Activity logger for the append-only activity log.

Rows are added to the caller's session so they commit (or roll back) with
the change they describe. Logging is a side effect: failures are logged
and never interrupt the workflow.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.kernel.models.activity_log import ActivityLog
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)


class ActivityLogger:
    """
    Usage:
        activity = ActivityLogger(session)
        await activity.log_activity(
            "Created level 1 verification task",
            subject=review_task,
            causer=None,
            properties={"submission_id": submission.id},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_activity(
        self,
        description: str,
        subject: Any = None,
        causer: Any = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityLog]:
        """
        Record an activity row in the current session.

        Args:
            description: Human-readable description
            subject: Model instance the activity is about (optional)
            causer: User instance or user id that caused it (None for system)
            properties: Additional structured data

        Returns:
            The ActivityLog row, or None if it could not be recorded
        """
        try:
            entry = ActivityLog(
                description=description,
                subject_type=getattr(subject, "__tablename__", None),
                subject_id=getattr(subject, "id", None),
                causer_id=self._causer_id(causer),
                properties=self._serialize_properties(properties or {}),
            )
            self.session.add(entry)
            return entry
        except Exception:
            logger.exception("Failed to record activity", extra={"description": description})
            return None

    async def get_subject_history(
        self,
        subject_type: str,
        subject_id: uuid.UUID,
        limit: int = 100,
    ) -> List[ActivityLog]:
        """Activity rows for one subject, newest first."""
        query = (
            select(ActivityLog)
            .where(
                and_(
                    ActivityLog.subject_type == subject_type,
                    ActivityLog.subject_id == subject_id,
                )
            )
            .order_by(desc(ActivityLog.created_at))
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _causer_id(causer: Any) -> Optional[uuid.UUID]:
        if causer is None or isinstance(causer, uuid.UUID):
            return causer
        return getattr(causer, "id", None)

    def _serialize_properties(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Convert property values to JSON-serializable types."""
        return {key: self._serialize_value(value) for key, value in properties.items()}

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, dict):
            return self._serialize_properties(value)
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        return value
