"""Unit tests for the event dispatcher and unit-of-work boundary."""

import uuid
from unittest.mock import AsyncMock

import pytest

from indicator_workflow.kernel.events import (
    EventDispatcher,
    SubmissionSubmitted,
    TaskCompleted,
    after_commit,
    defer_until_commit,
    in_unit_of_work,
    on_rollback,
    unit_of_work,
)
from indicator_workflow.logging_config import get_correlation_id


def _session():
    session = AsyncMock()
    session.info = {}
    return session


class TestUnitOfWork:
    """Outermost unit commits; nested units join it."""

    @pytest.mark.asyncio
    async def test_commits_once_for_nested_units(self):
        session = _session()

        async with unit_of_work(session):
            async with unit_of_work(session):
                assert in_unit_of_work(session)

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()
        assert not in_unit_of_work(session)

    @pytest.mark.asyncio
    async def test_error_rolls_back_and_propagates(self):
        session = _session()

        with pytest.raises(ValueError):
            async with unit_of_work(session):
                async with unit_of_work(session):
                    raise ValueError("boom")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
        assert not in_unit_of_work(session)

    @pytest.mark.asyncio
    async def test_deferred_callbacks_run_after_commit(self):
        session = _session()
        calls = []

        async def callback():
            calls.append(session.commit.await_count)

        async with unit_of_work(session):
            defer_until_commit(session, callback)
            assert calls == []

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_deferred_callbacks_discarded_on_rollback(self):
        session = _session()
        callback = AsyncMock()

        with pytest.raises(RuntimeError):
            async with unit_of_work(session):
                defer_until_commit(session, callback)
                raise RuntimeError("fail")

        callback.assert_not_awaited()

    def test_defer_outside_unit_of_work_raises(self):
        with pytest.raises(RuntimeError):
            defer_until_commit(_session(), AsyncMock())

    @pytest.mark.asyncio
    async def test_after_commit_runs_immediately_outside_unit_of_work(self):
        callback = AsyncMock()

        await after_commit(_session(), callback)

        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rollback_callbacks_run_in_reverse_on_rollback(self):
        session = _session()
        undone = []

        with pytest.raises(ValueError):
            async with unit_of_work(session):
                on_rollback(session, lambda: undone.append("first"))
                async with unit_of_work(session):
                    on_rollback(session, lambda: undone.append("second"))
                raise ValueError("rollback")

        assert undone == ["second", "first"]

    @pytest.mark.asyncio
    async def test_rollback_callbacks_dropped_on_commit(self):
        session = _session()
        undone = []

        async with unit_of_work(session):
            on_rollback(session, lambda: undone.append("file"))

        assert undone == []

    @pytest.mark.asyncio
    async def test_failing_rollback_callback_does_not_mask_error(self):
        """Compensation failures are logged; the original error still propagates."""
        session = _session()
        undone = []

        def broken():
            raise OSError("disk gone")

        with pytest.raises(ValueError, match="original"):
            async with unit_of_work(session):
                on_rollback(session, lambda: undone.append("kept"))
                on_rollback(session, broken)
                raise ValueError("original")

        assert undone == ["kept"]


class TestEventDispatcher:
    """Delivery timing and listener failure semantics."""

    @pytest.mark.asyncio
    async def test_emit_outside_unit_of_work_delivers_now(self):
        dispatcher = EventDispatcher()
        listener = AsyncMock()
        dispatcher.listen(TaskCompleted, listener)
        session = _session()
        event = TaskCompleted(submission_id=uuid.uuid4())

        await dispatcher.emit(session, event)

        listener.assert_awaited_once_with(session, event)

    @pytest.mark.asyncio
    async def test_emit_inside_unit_of_work_waits_for_commit(self):
        dispatcher = EventDispatcher()
        listener = AsyncMock()
        dispatcher.listen(TaskCompleted, listener)
        session = _session()

        async with unit_of_work(session):
            await dispatcher.emit(session, TaskCompleted(submission_id=uuid.uuid4()))
            listener.assert_not_awaited()

        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_transaction_listener_joins_unit_of_work(self):
        """Workflow steps run before the commit, inside the emitter's unit."""
        dispatcher = EventDispatcher()
        session = _session()
        seen = []

        async def step(sess, event):
            seen.append((in_unit_of_work(sess), sess.commit.await_count))

        notify = AsyncMock()
        dispatcher.listen(SubmissionSubmitted, notify, fire_and_forget=True)
        dispatcher.listen(SubmissionSubmitted, step, in_transaction=True)

        async with unit_of_work(session):
            await dispatcher.emit(session, SubmissionSubmitted(submission_id=uuid.uuid4()))
            assert seen == [(True, 0)]
            notify.assert_not_awaited()

        notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_transaction_listener_error_rolls_back(self):
        dispatcher = EventDispatcher()
        notify = AsyncMock()
        dispatcher.listen(
            SubmissionSubmitted,
            AsyncMock(side_effect=RuntimeError("no verifier")),
            in_transaction=True,
        )
        dispatcher.listen(SubmissionSubmitted, notify, fire_and_forget=True)
        session = _session()

        with pytest.raises(RuntimeError, match="no verifier"):
            async with unit_of_work(session):
                await dispatcher.emit(session, SubmissionSubmitted(submission_id=uuid.uuid4()))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
        notify.assert_not_awaited()

    def test_fire_and_forget_cannot_join_transaction(self):
        with pytest.raises(ValueError):
            EventDispatcher().listen(
                TaskCompleted, AsyncMock(), fire_and_forget=True, in_transaction=True
            )

    @pytest.mark.asyncio
    async def test_rolled_back_events_never_delivered(self):
        dispatcher = EventDispatcher()
        listener = AsyncMock()
        dispatcher.listen(TaskCompleted, listener)
        session = _session()

        with pytest.raises(ValueError):
            async with unit_of_work(session):
                await dispatcher.emit(session, TaskCompleted(submission_id=uuid.uuid4()))
                raise ValueError("rollback")

        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_listeners_only_receive_their_event_type(self):
        dispatcher = EventDispatcher()
        listener = AsyncMock()
        dispatcher.listen(SubmissionSubmitted, listener)

        await dispatcher.emit(_session(), TaskCompleted(submission_id=uuid.uuid4()))

        listener.assert_not_awaited()
        assert dispatcher.listeners_for(SubmissionSubmitted) == [listener]

    @pytest.mark.asyncio
    async def test_workflow_listener_errors_propagate(self):
        """A failing workflow step is reported to the emitter."""
        dispatcher = EventDispatcher()
        dispatcher.listen(TaskCompleted, AsyncMock(side_effect=RuntimeError("step failed")))

        with pytest.raises(RuntimeError, match="step failed"):
            await dispatcher.emit(_session(), TaskCompleted(submission_id=uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_fire_and_forget_errors_are_swallowed(self):
        """A failing notification does not stop later listeners."""
        dispatcher = EventDispatcher()
        later = AsyncMock()
        dispatcher.listen(
            TaskCompleted,
            AsyncMock(side_effect=RuntimeError("mail down")),
            fire_and_forget=True,
        )
        dispatcher.listen(TaskCompleted, later)

        await dispatcher.emit(_session(), TaskCompleted(submission_id=uuid.uuid4()))

        later.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_correlation_id_bound_during_dispatch(self):
        dispatcher = EventDispatcher()
        seen = []

        async def listener(session, event):
            seen.append(get_correlation_id())

        dispatcher.listen(TaskCompleted, listener)
        event = TaskCompleted(submission_id=uuid.uuid4())

        await dispatcher.emit(_session(), event)

        assert seen == [str(event.event_id)]
        assert get_correlation_id() is None
