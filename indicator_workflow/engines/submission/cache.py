"""
Dashboard read-projection cache.

Projections are keyed by (entrepreneur, organisation, programme); the intake
service invalidates a seat after every committed submission.
"""

import uuid
from typing import Any, Dict, Optional, Protocol, Tuple

from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)

CacheSeat = Tuple[uuid.UUID, uuid.UUID, uuid.UUID]


class DashboardCache(Protocol):
    async def invalidate(
        self,
        entrepreneur_id: uuid.UUID,
        organisation_id: uuid.UUID,
        programme_id: uuid.UUID,
    ) -> None:
        ...


class InMemoryDashboardCache:
    """Process-local cache of dashboard projections."""

    def __init__(self):
        self._entries: Dict[CacheSeat, Dict[str, Any]] = {}

    def get(self, seat: CacheSeat, key: str) -> Optional[Any]:
        return self._entries.get(seat, {}).get(key)

    def put(self, seat: CacheSeat, key: str, value: Any) -> None:
        self._entries.setdefault(seat, {})[key] = value

    async def invalidate(
        self,
        entrepreneur_id: uuid.UUID,
        organisation_id: uuid.UUID,
        programme_id: uuid.UUID,
    ) -> None:
        removed = self._entries.pop((entrepreneur_id, organisation_id, programme_id), None)
        logger.debug(
            "Dashboard cache invalidated",
            extra={
                "entrepreneur_id": str(entrepreneur_id),
                "organisation_id": str(organisation_id),
                "programme_id": str(programme_id),
                "entries": len(removed or {}),
            },
        )
