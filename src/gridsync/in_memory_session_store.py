"""
In-Memory Session Store Implementation (Cacheout-backed)

Design notes:
- Uses a single Cacheout cache keyed by session_id, without a cache-level
  TTL: expiry is decided by ``sweep_expired`` against lastActivity so the
  eviction policy lives in one place for every backend.
- ``max_sessions`` caps the cache size (0 = unbounded); when full, cacheout
  evicts the least recently inserted session.
- A re-entrant lock serialises read-modify-write so a sweep never sees a
  record half-way through an update.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Optional, cast

import psutil
from cacheout import Cache

from .base_session_store import SessionStore
from .storage_types import SessionRecord, StorageStats, StorageTier


class InMemorySessionStore(SessionStore):
    """Session store living in process memory."""

    def __init__(
        self,
        max_sessions: int = 0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self._max_sessions = max_sessions
        self._sessions = Cache(maxsize=max_sessions, ttl=0)
        # Re-entrant so nested helpers can take the same lock
        self._lock = threading.RLock()

    def _load(self, session_id: str) -> SessionRecord | None:
        return cast(Optional[SessionRecord], self._sessions.get(session_id))

    def _save(self, record: SessionRecord) -> None:
        self._sessions.set(record.session_id, record)

    def _delete(self, session_id: str) -> bool:
        return bool(self._sessions.delete(session_id))

    def _session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def _record_lock(self, session_id: str) -> Any:
        return self._lock

    def get_storage_stats(self) -> StorageStats:
        with self._lock:
            records = [
                record
                for record in (self._load(sid) for sid in self._session_ids())
                if record is not None
            ]
        total_uploads = sum(
            len(record.workspace_data.get("uploads") or []) for record in records
        )
        oldest = min((record.last_activity for record in records), default=None)
        return StorageStats(
            total_sessions=len(records),
            total_uploads=total_uploads,
            oldest_activity=oldest,
            memory_usage_percent=psutil.virtual_memory().percent,
            disk_usage_percent=0.0,  # Not applicable for memory store
            tier=StorageTier.MEMORY,
        )
