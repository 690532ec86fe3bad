"""
Transaction boundary for multi-entity writes.

    async with unit_of_work(session):
        ...  # all writes commit together or not at all

Nested units join the outermost one. Callbacks registered with
`defer_until_commit` run only after the outermost commit succeeds and are
discarded on rollback. Callbacks registered with `on_rollback` run only
when the outermost unit rolls back; they undo side effects the database
cannot (files written to storage).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List

from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)

_DEPTH_KEY = "indicator_workflow.uow_depth"
_DEFERRED_KEY = "indicator_workflow.uow_deferred"
_ROLLBACK_KEY = "indicator_workflow.uow_rollback"

DeferredCallback = Callable[[], Awaitable[None]]
RollbackCallback = Callable[[], None]


def in_unit_of_work(session: AsyncSession) -> bool:
    return session.info.get(_DEPTH_KEY, 0) > 0


def defer_until_commit(session: AsyncSession, callback: DeferredCallback) -> None:
    """Queue a callback for after the outermost commit."""
    if not in_unit_of_work(session):
        raise RuntimeError("defer_until_commit() called outside a unit of work")
    session.info[_DEFERRED_KEY].append(callback)


async def after_commit(session: AsyncSession, callback: DeferredCallback) -> None:
    """Run the callback now when no unit of work is open, else after its commit."""
    if in_unit_of_work(session):
        defer_until_commit(session, callback)
        return
    await callback()


def on_rollback(session: AsyncSession, callback: RollbackCallback) -> None:
    """Queue a compensating callback for when the outermost unit rolls back."""
    if not in_unit_of_work(session):
        raise RuntimeError("on_rollback() called outside a unit of work")
    session.info[_ROLLBACK_KEY].append(callback)


def _compensate(session: AsyncSession) -> None:
    for callback in reversed(session.info.pop(_ROLLBACK_KEY, [])):
        try:
            callback()
        except Exception:
            logger.exception("Rollback callback failed")


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    depth = session.info.get(_DEPTH_KEY, 0)
    outermost = depth == 0
    session.info[_DEPTH_KEY] = depth + 1
    if outermost:
        session.info[_DEFERRED_KEY] = []
        session.info[_ROLLBACK_KEY] = []

    try:
        yield session
        if outermost:
            await session.commit()
    except BaseException:
        if outermost:
            await session.rollback()
            _compensate(session)
            discarded = session.info.pop(_DEFERRED_KEY, [])
            if discarded:
                logger.debug(
                    "Unit of work rolled back, discarding deferred callbacks",
                    extra={"discarded": len(discarded)},
                )
        raise
    finally:
        session.info[_DEPTH_KEY] = depth

    if outermost:
        session.info.pop(_ROLLBACK_KEY, None)
        deferred: List[DeferredCallback] = session.info.pop(_DEFERRED_KEY, [])
        for callback in deferred:
            await callback()
