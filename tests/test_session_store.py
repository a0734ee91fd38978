"""
Tests for the in-memory session store and the background sweeper.
"""

import asyncio
from datetime import timezone

import pytest

from agentic_rag.domain.entities import Message
from agentic_rag.exceptions import SessionNotFoundError
from agentic_rag.session import InMemorySessionStore, SessionSweeper


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(clock=clock)


class TestGetOrCreate:
    """Tests for snapshot reads."""

    @pytest.mark.asyncio
    async def test_unknown_session_is_created_empty(self, store):
        """A new id yields an empty history and a stored session."""
        snapshot = await store.get_or_create("s1")
        assert snapshot == ()
        assert "s1" in store

    @pytest.mark.asyncio
    async def test_snapshot_is_isolated_from_later_appends(self, store):
        """A snapshot taken before an append does not change."""
        before = await store.get_or_create("s1")
        await store.append("s1", [Message.user("hi")])
        assert before == ()
        assert await store.get_or_create("s1") == (Message.user("hi"),)

    @pytest.mark.asyncio
    async def test_get_does_not_create(self, store):
        """get() returns None for unknown ids."""
        assert await store.get("missing") is None
        assert len(store) == 0


class TestAppend:
    """Tests for exchange persistence."""

    @pytest.mark.asyncio
    async def test_append_preserves_order(self, store):
        """Turns are stored in the order they were appended."""
        await store.append("s1", [Message.user("q1"), Message.assistant("a1")])
        await store.append("s1", [Message.user("q2"), Message.assistant("a2")])

        history = await store.get_or_create("s1")
        assert [m.content for m in history] == ["q1", "a1", "q2", "a2"]

    @pytest.mark.asyncio
    async def test_append_round_trip_keeps_tool_name(self, store):
        """Tool messages keep their name through the store."""
        turns = [
            Message.user("summarize notes.txt"),
            Message.tool("file_summarizer", "File: notes.txt"),
            Message.assistant("It is a short note."),
        ]
        await store.append("s1", turns)
        assert list(await store.get_or_create("s1")) == turns

    @pytest.mark.asyncio
    async def test_append_recreates_evicted_session(self, store, clock):
        """An exchange finishing after eviction recreates the session."""
        await store.get_or_create("s1")
        clock.advance(100)
        assert await store.sweep(ttl_seconds=10) == 1

        await store.append("s1", [Message.user("late"), Message.assistant("reply")])
        assert [m.content for m in await store.get_or_create("s1")] == ["late", "reply"]

    @pytest.mark.asyncio
    async def test_strict_append_raises_for_unknown(self, store):
        """create_if_missing=False surfaces SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError):
            await store.append("nope", [Message.user("x")], create_if_missing=False)

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.append("s1", [Message.user("q"), Message.assistant("a")])

        assert await store.delete("s1") is True
        assert "s1" not in store
        assert await store.delete("s1") is False

    @pytest.mark.asyncio
    async def test_concurrent_appends_do_not_interleave(self, store):
        """Each append lands as a contiguous block."""
        async def exchange(i: int):
            await store.append("s1", [Message.user(f"q{i}"), Message.assistant(f"a{i}")])

        await asyncio.gather(*(exchange(i) for i in range(20)))

        history = await store.get_or_create("s1")
        assert len(history) == 40
        for user, assistant in zip(history[::2], history[1::2]):
            assert user.content[1:] == assistant.content[1:]


class TestSweep:
    """Tests for TTL expiry."""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_idle_sessions(self, store, clock):
        """Sessions touched within the TTL survive."""
        await store.get_or_create("old")
        clock.advance(50)
        await store.get_or_create("fresh")
        clock.advance(20)

        removed = await store.sweep(ttl_seconds=60)

        assert removed == 1
        assert "old" not in store
        assert "fresh" in store

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, store, clock):
        """A second sweep with nothing new to expire removes nothing."""
        await store.get_or_create("s1")
        clock.advance(100)
        assert await store.sweep(ttl_seconds=10) == 1
        assert await store.sweep(ttl_seconds=10) == 0

    @pytest.mark.asyncio
    async def test_touch_refreshes_session(self, store, clock):
        """touch() keeps a session alive and reports unknown ids."""
        await store.get_or_create("s1")
        clock.advance(50)
        assert await store.touch("s1") is True
        assert await store.touch("other") is False
        clock.advance(20)
        assert await store.sweep(ttl_seconds=60) == 0

    @pytest.mark.asyncio
    async def test_sweep_waits_for_in_flight_append(self, store, clock):
        """A session appended to while the sweep waits on its lock survives."""
        await store.get_or_create("s1")
        clock.advance(100)

        release = asyncio.Event()

        async def in_flight_append():
            async with store._locked("s1"):
                await release.wait()
                store._sessions["s1"].last_touched = clock()

        append_task = asyncio.create_task(in_flight_append())
        await asyncio.sleep(0)
        sweep_task = asyncio.create_task(store.sweep(ttl_seconds=10))
        await asyncio.sleep(0)

        release.set()
        await append_task

        assert await sweep_task == 0
        assert "s1" in store

    @pytest.mark.asyncio
    async def test_lock_kept_while_waiters_queued(self, store):
        """A session lock outlives its holder while another task waits on it."""
        release = asyncio.Event()
        entered = []
        held = []

        async def holder():
            async with store._locked("s1"):
                entered.append("holder")
                held.append(store._locks["s1"])
                await release.wait()

        async def waiter():
            async with store._locked("s1"):
                entered.append("waiter")
                assert store._locks["s1"] is held[0]

        holder_task = asyncio.create_task(holder())
        await asyncio.sleep(0)
        waiter_task = asyncio.create_task(waiter())
        await asyncio.sleep(0)

        release.set()
        await asyncio.gather(holder_task, waiter_task)
        assert entered == ["holder", "waiter"]
        assert store._locks == {}
        assert store._lock_users == {}

    @pytest.mark.asyncio
    async def test_delete_and_sweep_release_locks(self, store, clock):
        await store.append("s1", [Message.user("q")])
        await store.append("s2", [Message.user("q")])
        clock.advance(100)

        await store.delete("s1")
        await store.sweep(ttl_seconds=10)

        assert store._locks == {}


class TestSessionSweeper:
    """Tests for the background sweep loop."""

    @pytest.mark.asyncio
    async def test_run_once_updates_metrics(self, store, clock):
        """run_once() sweeps and records the result."""
        await store.get_or_create("s1")
        clock.advance(100)
        sweeper = SessionSweeper(store, ttl_seconds=10, interval_seconds=60)

        assert await sweeper.run_once() == 1
        assert sweeper.metrics.runs == 1
        assert sweeper.metrics.sessions_removed == 1

    @pytest.mark.asyncio
    async def test_run_once_survives_store_failure(self):
        """A failing sweep is counted and does not raise."""
        class BrokenStore(InMemorySessionStore):
            async def sweep(self, ttl_seconds):
                raise RuntimeError("store offline")

        sweeper = SessionSweeper(BrokenStore(), ttl_seconds=10)
        assert await sweeper.run_once() == 0
        assert sweeper.metrics.failures == 1

    @pytest.mark.asyncio
    async def test_loop_sweeps_on_interval(self, store, clock):
        """The loop runs sweeps until stopped."""
        await store.get_or_create("s1")
        clock.advance(100)
        sweeper = SessionSweeper(store, ttl_seconds=10, interval_seconds=0.01)

        await sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if "s1" not in store:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert "s1" not in store
        assert not sweeper.running
        assert sweeper.metrics.runs >= 1


class TestTimestamps:
    """Wall-clock timestamps are timezone-aware UTC."""

    @pytest.mark.asyncio
    async def test_session_created_at_is_utc(self, store):
        await store.get_or_create("s1")
        assert store._sessions["s1"].created_at.tzinfo == timezone.utc

    def test_error_timestamp_is_utc(self):
        error = SessionNotFoundError("s1")
        assert error.timestamp.tzinfo == timezone.utc
        assert error.to_dict()["timestamp"].endswith("+00:00")
