"""Tests for the campaign progress store and its SSE framing."""

import asyncio
import json

import pytest

from outreach.services.progress_store import ProgressStore


class TickClock:
    """time.time stand-in advanced by hand"""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def tick():
    return TickClock()


@pytest.fixture
def store(tick):
    return ProgressStore(poll_interval=0.001, completion_grace=0.001, session_ttl=60, clock=tick)


async def _collect(agen, limit=50):
    frames = []
    async for frame in agen:
        frames.append(frame)
        if len(frames) >= limit:
            break
    return frames


@pytest.mark.unit
class TestProgressStore:

    def test_timestamps_strictly_increase(self, store):
        first = store.update("s1", {"sent": 0})
        second = store.update("s1", {"sent": 1})

        assert second["timestamp"] > first["timestamp"]
        assert store.get("s1")["sent"] == 1

    def test_stale_sessions_evicted(self, store, tick):
        store.update("old", {"sent": 0})
        tick.now += 61

        store.update("new", {"sent": 0})

        assert "old" not in store
        assert "new" in store

    def test_delete(self, store):
        store.update("s1", {})
        store.delete("s1")

        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_subscribe_relays_until_completion_then_cleans_up(self, store):
        store.update("s1", {"status": "processing", "completed": False})

        async def producer():
            await asyncio.sleep(0.01)
            store.update("s1", {"status": "processing", "sent": 1, "completed": False})
            await asyncio.sleep(0.01)
            store.update("s1", {"status": "completed", "sent": 2, "completed": True})

        task = asyncio.create_task(producer())
        frames = await asyncio.wait_for(_collect(store.subscribe("s1")), timeout=5)
        await task

        assert frames[0] == {"type": "connected"}
        assert frames[-1]["completed"] is True
        assert sum(1 for f in frames if f.get("completed")) == 1
        timestamps = [f["timestamp"] for f in frames[1:]]
        assert timestamps == sorted(set(timestamps))
        assert store.get("s1") is None

    @pytest.mark.asyncio
    async def test_second_subscriber_stops_after_cleanup(self, store):
        store.update("s1", {"completed": True})

        first = await asyncio.wait_for(_collect(store.subscribe("s1")), timeout=5)
        second = await asyncio.wait_for(_collect(store.subscribe("s1")), timeout=5)

        assert first[-1]["completed"] is True
        assert second == [{"type": "connected"}]

    @pytest.mark.asyncio
    async def test_stream_frames_are_sse(self, store):
        store.update("s1", {"completed": True, "sent": 3})

        chunks = await asyncio.wait_for(_collect(store.stream("s1")), timeout=5)

        assert all(c.startswith("data: ") and c.endswith("\n\n") for c in chunks)
        assert json.loads(chunks[0][len("data: "):]) == {"type": "connected"}
        assert json.loads(chunks[-1][len("data: "):])["sent"] == 3

    @pytest.mark.asyncio
    async def test_completion_markers_expire(self, store, tick):
        store.update("s1", {"completed": True})
        await asyncio.wait_for(_collect(store.subscribe("s1")), timeout=5)
        assert "s1" in store._completed

        tick.now += 61
        store.update("s2", {"completed": False})

        assert "s1" not in store._completed
        assert store.get("s1") is None
