"""
Campaign progress store
Ephemeral, session-keyed progress snapshots relayed to clients as server-sent events.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncGenerator, Callable, Dict, Optional

from outreach.config import get_settings

logger = logging.getLogger(__name__)


class ProgressStore:
    """
    Latest progress snapshot per campaign session.

    Every update is stamped with a strictly increasing millisecond timestamp
    so subscribers can tell a new snapshot from one they already relayed.
    Records are removed shortly after a subscriber sees completion, or after
    the session TTL when nobody ever does.
    """

    def __init__(
        self,
        poll_interval: Optional[float] = None,
        completion_grace: Optional[float] = None,
        session_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self.poll_interval = settings.PROGRESS_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.completion_grace = (
            settings.PROGRESS_COMPLETION_GRACE_SECONDS if completion_grace is None else completion_grace
        )
        self.session_ttl = settings.PROGRESS_SESSION_TTL_SECONDS if session_ttl is None else session_ttl
        self._clock = clock
        self._store: Dict[str, Dict[str, Any]] = {}
        # session id -> when a subscriber first saw its completed snapshot
        self._completed: Dict[str, float] = {}
        self._last_timestamp = 0

    def _next_timestamp(self) -> int:
        ts = int(self._clock() * 1000)
        if ts <= self._last_timestamp:
            ts = self._last_timestamp + 1
        self._last_timestamp = ts
        return ts

    def _evict_stale(self) -> None:
        cutoff = (self._clock() - self.session_ttl) * 1000
        stale = [sid for sid, data in self._store.items() if data["timestamp"] < cutoff]
        for session_id in stale:
            logger.info("Dropping stale progress for session %s", session_id)
            self.delete(session_id)
        done_cutoff = self._clock() - self.session_ttl
        for session_id in [sid for sid, seen in self._completed.items() if seen < done_cutoff]:
            del self._completed[session_id]

    def update(self, session_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the session's snapshot and stamp it"""
        if session_id not in self._store:
            self._completed.pop(session_id, None)
        snapshot = {**data, "timestamp": self._next_timestamp()}
        self._store[session_id] = snapshot
        self._evict_stale()
        return snapshot

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get(session_id)

    def delete(self, session_id: str) -> None:
        self._store.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._store

    async def subscribe(self, session_id: str) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Yield a connected frame, then every new snapshot for the session.

        After relaying a completed snapshot, waits the grace period, removes
        the record and stops. Cleanup happens once even with several
        subscribers on the same session.
        """
        yield {"type": "connected"}
        last_timestamp = None

        while True:
            progress = self._store.get(session_id)

            if progress is None and session_id in self._completed:
                return

            if progress is not None and progress["timestamp"] != last_timestamp:
                last_timestamp = progress["timestamp"]
                yield progress

                if progress.get("completed"):
                    if session_id in self._completed:
                        return
                    self._evict_stale()
                    self._completed[session_id] = self._clock()
                    logger.info(
                        "Campaign %s completed: %s sent, %s failed, %s skipped",
                        session_id, progress.get("sent", 0), progress.get("failed", 0), progress.get("skipped", 0),
                    )
                    await asyncio.sleep(self.completion_grace)
                    self.delete(session_id)
                    return

            await asyncio.sleep(self.poll_interval)

    async def stream(self, session_id: str) -> AsyncGenerator[str, None]:
        """subscribe() framed as text/event-stream"""
        async for frame in self.subscribe(session_id):
            yield f"data: {json.dumps(frame, default=str)}\n\n"


_progress_store: Optional[ProgressStore] = None


def get_progress_store() -> ProgressStore:
    """Process-wide progress store"""
    global _progress_store
    if _progress_store is None:
        _progress_store = ProgressStore()
    return _progress_store
