"""
In-process event dispatcher.

Listeners are registered per event class. Emitting inside a unit of work:

    in_transaction=True    delivered immediately, joining the emitter's unit
                           of work; an error rolls back the whole unit
    otherwise              deferred until the outermost commit, so the
                           listener never observes rolled-back state

Workflow listeners propagate their errors to the emitter. Listeners
registered with fire_and_forget=True (notifications) have failures logged
and swallowed.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Sequence, Type

from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.kernel.events.event_types import BaseEvent
from indicator_workflow.kernel.events.unit_of_work import defer_until_commit, in_unit_of_work
from indicator_workflow.logging_config import bind_correlation_id, get_logger

logger = get_logger(__name__)

Listener = Callable[[AsyncSession, BaseEvent], Awaitable[None]]


@dataclass(frozen=True)
class _Registration:
    listener: Listener
    fire_and_forget: bool
    in_transaction: bool


class EventDispatcher:
    """
    Usage:
        dispatcher = EventDispatcher()
        dispatcher.listen(TaskCompleted, on_task_completed)
        await dispatcher.emit(session, TaskCompleted(submission_id=s.id))
    """

    def __init__(self):
        self._listeners: Dict[Type[BaseEvent], List[_Registration]] = defaultdict(list)

    def listen(
        self,
        event_type: Type[BaseEvent],
        listener: Listener,
        *,
        fire_and_forget: bool = False,
        in_transaction: bool = False,
    ) -> None:
        if fire_and_forget and in_transaction:
            raise ValueError("fire-and-forget listeners cannot join the emitter's transaction")
        self._listeners[event_type].append(_Registration(listener, fire_and_forget, in_transaction))

    def listeners_for(self, event_type: Type[BaseEvent]) -> List[Listener]:
        return [r.listener for r in self._listeners.get(event_type, [])]

    async def emit(self, session: AsyncSession, event: BaseEvent) -> None:
        """Deliver now, or (except for in-transaction listeners) after commit inside a unit of work."""
        registrations = self._listeners.get(type(event), [])
        if not in_unit_of_work(session):
            await self._deliver(session, event, registrations)
            return

        immediate = [r for r in registrations if r.in_transaction]
        later = [r for r in registrations if not r.in_transaction]
        if later:
            async def _deliver_later() -> None:
                await self._deliver(session, event, later)

            defer_until_commit(session, _deliver_later)
            logger.debug("Event queued until commit", extra={"event": event.name, "listeners": len(later)})
        if immediate:
            await self._deliver(session, event, immediate)

    async def _deliver(
        self,
        session: AsyncSession,
        event: BaseEvent,
        registrations: Sequence[_Registration],
    ) -> None:
        with bind_correlation_id(str(event.event_id)):
            logger.debug(
                "Dispatching event",
                extra={"event": event.name, "listeners": len(registrations)},
            )
            for registration in registrations:
                if not registration.fire_and_forget:
                    await registration.listener(session, event)
                    continue
                try:
                    await registration.listener(session, event)
                except Exception:
                    logger.exception(
                        "Fire-and-forget listener failed",
                        extra={
                            "event": event.name,
                            "listener": getattr(registration.listener, "__qualname__", repr(registration.listener)),
                        },
                    )
