"""
Local State Store

Holds the editor state in memory and mirrors it to a diskcache directory
under one fixed key. Reads never touch the disk after start-up.

Durability: every persisted value is serialized to JSON first and then
written with a single ``Cache.set``, which is one SQLite transaction, so a
failed write never leaves a partial record behind; the previous value
stays intact.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

import diskcache

from ..errors import LocalPersistenceError
from ..session_schema import default_local_state, shallow_merge

logger = logging.getLogger(__name__)

STATE_KEY = "user_session_state"
REMEMBERED_ID_KEY = "sessionId"

_STORAGE_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class LocalStateStore:
    """Synchronous, durable, single-owner state cache.

    No coordination happens between two processes pointed at the same
    directory: the last writer wins.
    """

    def __init__(
        self,
        directory: str,
        key: str = STATE_KEY,
        max_bytes: int | None = None,
    ) -> None:
        """
        Initialize LocalStateStore.

        Args:
            directory: Directory holding the diskcache files
            key: Key the state is stored under
            max_bytes: Optional quota for the serialized state
        """
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._key = key
        self._max_bytes = max_bytes
        self._cache = diskcache.Cache(directory=str(self._directory))
        self._state = self._load()

    def close(self) -> None:
        self._cache.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _load(self) -> dict[str, Any]:
        try:
            raw = self._cache.get(self._key)
        except _STORAGE_ERRORS as e:
            logger.warning(f"Local state unreadable, using defaults: {e}")
            return default_local_state()
        if raw is None:
            return default_local_state()
        try:
            loaded = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Corrupt local state under '{self._key}', using defaults: {e}")
            return default_local_state()
        if not isinstance(loaded, dict):
            logger.warning(f"Corrupt local state under '{self._key}', using defaults")
            return default_local_state()
        # Fill in any field added since the state was written
        return shallow_merge(default_local_state(), loaded)

    def _serialize(self, state: dict[str, Any]) -> str:
        try:
            payload = json.dumps(state)
        except (TypeError, ValueError) as e:
            raise LocalPersistenceError(f"State is not serializable: {e}") from e
        if self._max_bytes is not None and len(payload.encode("utf-8")) > self._max_bytes:
            raise LocalPersistenceError(
                f"Local storage quota exceeded ({self._max_bytes} bytes)"
            )
        return payload

    def _persist(self, key: str, payload: str) -> None:
        try:
            self._cache.set(key, payload)
        except _STORAGE_ERRORS as e:
            raise LocalPersistenceError(f"Failed to save local state: {e}") from e

    def read(self) -> dict[str, Any]:
        """Return a copy of the current state."""
        return copy.deepcopy(self._state)

    def write(self, partial: dict[str, Any]) -> dict[str, Any]:
        """
        Shallow-merge ``partial`` into the state and persist the result.

        The in-memory state is updated even when persisting fails; in that
        case LocalPersistenceError is raised after the update.

        Returns:
            A copy of the new state
        """
        new_state = shallow_merge(self._state, partial)
        self._state = new_state
        self._persist(self._key, self._serialize(new_state))
        return copy.deepcopy(new_state)

    def replace(self, state: dict[str, Any], strict: bool = False) -> dict[str, Any]:
        """
        Replace the whole state.

        Args:
            state: The new full state
            strict: Persist first and leave the in-memory state untouched if
                that fails. Otherwise behaves like ``write``.
        """
        new_state = copy.deepcopy(state)
        if strict:
            self._persist(self._key, self._serialize(new_state))
            self._state = new_state
        else:
            self._state = new_state
            self._persist(self._key, self._serialize(new_state))
        return copy.deepcopy(new_state)

    # Remembered server session id
    def remembered_session_id(self) -> str | None:
        try:
            value = self._cache.get(REMEMBERED_ID_KEY)
        except _STORAGE_ERRORS as e:
            logger.warning(f"Remembered session id unreadable: {e}")
            return None
        return value if isinstance(value, str) and value else None

    def remember_session_id(self, session_id: str) -> None:
        self._persist(REMEMBERED_ID_KEY, session_id)

    def forget_session_id(self) -> None:
        try:
            self._cache.delete(REMEMBERED_ID_KEY)
        except _STORAGE_ERRORS as e:
            raise LocalPersistenceError(f"Failed to forget session id: {e}") from e
