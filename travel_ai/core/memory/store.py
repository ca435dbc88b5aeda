"""Session store: bounded in-memory cache of conversation sessions.

Entries expire after an idle TTL and the least recently used entry is
evicted once the store is full. Reads and writes both refresh an entry's
idle age.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable

import structlog

from travel_ai.core.types import ConversationSession

logger = structlog.get_logger()


class SessionStore:
    """LRU + idle-TTL session cache keyed by session id."""

    def __init__(
        self,
        max_sessions: int = 1000,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # session_id -> (session, last access time); order is least recent first
        self._entries: OrderedDict[str, tuple[ConversationSession, float]] = OrderedDict()
        self._lock = Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0}

    def _is_expired(self, accessed_at: float, now: float) -> bool:
        return now - accessed_at > self.ttl_seconds

    def _lookup(self, session_id: str, now: float) -> ConversationSession | None:
        """Find a live entry and mark it most recently used (lock held)."""
        entry = self._entries.get(session_id)
        if entry is None:
            self._stats["misses"] += 1
            return None

        session, accessed_at = entry
        if self._is_expired(accessed_at, now):
            del self._entries[session_id]
            self._stats["expirations"] += 1
            self._stats["misses"] += 1
            logger.debug("session_expired", session_id=session_id)
            return None

        self._entries[session_id] = (session, now)
        self._entries.move_to_end(session_id)
        self._stats["hits"] += 1
        return session

    def _sweep_expired(self, now: float) -> None:
        expired = [
            key for key, (_, accessed_at) in self._entries.items()
            if self._is_expired(accessed_at, now)
        ]
        for key in expired:
            del self._entries[key]
            self._stats["expirations"] += 1

    def get(self, session_id: str) -> ConversationSession | None:
        with self._lock:
            return self._lookup(session_id, self._clock())

    def has(self, session_id: str) -> bool:
        with self._lock:
            return self._lookup(session_id, self._clock()) is not None

    def set(self, session_id: str, session: ConversationSession) -> None:
        with self._lock:
            now = self._clock()
            if session_id in self._entries:
                self._entries[session_id] = (session, now)
                self._entries.move_to_end(session_id)
                return

            self._sweep_expired(now)
            while len(self._entries) >= self.max_sessions:
                evicted, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug("session_evicted", session_id=evicted)

            self._entries[session_id] = (session, now)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Ids of unexpired sessions, least recently used first. Does not refresh age."""
        with self._lock:
            now = self._clock()
            return [
                key for key, (_, accessed_at) in self._entries.items()
                if not self._is_expired(accessed_at, now)
            ]

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {**self._stats, "size": len(self._entries)}
