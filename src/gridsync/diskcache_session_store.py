"""
DiskCache-based Session Store Implementation

A filesystem-backed session store using the diskcache library so sessions
survive a server restart.

Key points:
- One diskcache entry per session, keyed ``session:<id>``, holding the
  record as a plain dict.
- Read-modify-write runs inside ``Cache.transact()``, which diskcache
  serialises across threads and processes sharing the directory.
- Corrupted entries are deleted when encountered (self-healing) and
  treated as missing sessions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import diskcache
import psutil

from .base_session_store import SessionStore
from .storage_types import SessionRecord, StorageStats, StorageTier

logger = logging.getLogger(__name__)

_KEY_PREFIX = "session:"


class DiskCacheSessionStore(SessionStore):
    """Durable session store on top of diskcache."""

    def __init__(
        self,
        cache_dir: str = "/tmp/gridsync_cache",
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize DiskCacheSessionStore.

        Args:
            cache_dir: Directory for cache storage
            clock: Time source in epoch seconds (defaults to time.time)
        """
        super().__init__(clock=clock)
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._cache = diskcache.Cache(directory=str(self._cache_dir))

    def close(self) -> None:
        """Close the cache and release its SQLite handles."""
        if hasattr(self, "_cache"):
            self._cache.close()

    def _get_key(self, session_id: str) -> str:
        return f"{_KEY_PREFIX}{session_id}"

    def _load(self, session_id: str) -> SessionRecord | None:
        key = self._get_key(session_id)
        raw = self._cache.get(key)
        if raw is None:
            return None
        try:
            return SessionRecord.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Deleting corrupted session entry {key}: {e}")
            self._cache.delete(key)
            return None

    def _save(self, record: SessionRecord) -> None:
        self._cache.set(self._get_key(record.session_id), record.to_dict())

    def _delete(self, session_id: str) -> bool:
        return bool(self._cache.delete(self._get_key(session_id)))

    def _session_ids(self) -> list[str]:
        return [
            key[len(_KEY_PREFIX) :]
            for key in list(self._cache.iterkeys())
            if isinstance(key, str) and key.startswith(_KEY_PREFIX)
        ]

    def _record_lock(self, session_id: str) -> Any:
        return self._cache.transact()

    def _get_disk_usage_percent(self) -> float:
        try:
            return float(psutil.disk_usage(str(self._cache_dir)).percent)
        except Exception:
            return 0.0

    def get_storage_stats(self) -> StorageStats:
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
            memory_usage_percent=0.0,  # Not applicable for disk cache
            disk_usage_percent=self._get_disk_usage_percent(),
            tier=StorageTier.FILESYSTEM,
        )
