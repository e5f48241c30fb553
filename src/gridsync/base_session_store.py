"""
Abstract Base Session Store

This module contains the abstract base class that defines the interface
for every server-side session store.

The public operations (create, get, update_state, reset, add_upload,
sweep_expired) are implemented once here in terms of a handful of storage
primitives that each backend provides. The HTTP layer only ever sees this
interface, so a backend can be swapped without touching handler code.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from .errors import SessionNotFoundError
from .session_schema import (
    default_ui_state,
    default_workspace_data,
    shallow_merge,
    validate_ui_state_patch,
    validate_workspace_patch,
)
from .storage_types import SessionRecord, StorageStats
from .utils.session_utils import new_session_id, validate_session_id

logger = logging.getLogger(__name__)

# Attempts at drawing a fresh UUID before treating collisions as fatal.
_MAX_ID_ATTEMPTS = 5

# Nudge applied when the clock has not moved since the previous touch.
_MIN_TOUCH_STEP = 1e-6


class SessionStore(ABC):
    """
    Abstract base class for the server-of-record session map.

    Every operation addressed by id validates the id before any lookup and
    raises ``InvalidInputError`` for a malformed one, ``SessionNotFoundError``
    for an unknown one. Records handed to callers are detached copies.

    Subclasses provide the storage primitives:
    - ``_load`` / ``_save`` / ``_delete`` for single records
    - ``_session_ids`` for a snapshot of live ids
    - ``_record_lock`` for per-record read-modify-write atomicity
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time

    # Storage primitives
    @abstractmethod
    def _load(self, session_id: str) -> SessionRecord | None:
        """Return the stored record or None. Must not touch it."""
        pass

    @abstractmethod
    def _save(self, record: SessionRecord) -> None:
        """Insert or replace a record."""
        pass

    @abstractmethod
    def _delete(self, session_id: str) -> bool:
        """Remove a record; return True if one was removed."""
        pass

    @abstractmethod
    def _session_ids(self) -> list[str]:
        """Snapshot of the ids currently stored."""
        pass

    @abstractmethod
    def _record_lock(self, session_id: str) -> Any:
        """Context manager guarding read-modify-write of one record."""
        pass

    @abstractmethod
    def get_storage_stats(self) -> StorageStats:
        """
        Get storage statistics.

        Returns:
            StorageStats object with session counts and resource usage
        """
        pass

    def close(self) -> None:
        """Release backend resources. No-op by default."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Internal helpers
    def _now(self) -> float:
        return self._clock()

    def _touch(self, record: SessionRecord) -> None:
        now = self._now()
        if now <= record.last_activity:
            now = record.last_activity + _MIN_TOUCH_STEP
        record.last_activity = now

    @contextmanager
    def _locked_record(self, session_id: str) -> Iterator[SessionRecord]:
        session_id = validate_session_id(session_id)
        with self._record_lock(session_id):
            record = self._load(session_id)
            if record is None:
                raise SessionNotFoundError(session_id)
            yield record

    # Session operations
    def create(self) -> SessionRecord:
        """Allocate a fresh session with default state."""
        for _ in range(_MAX_ID_ATTEMPTS):
            session_id = new_session_id()
            with self._record_lock(session_id):
                if self._load(session_id) is not None:
                    logger.warning(f"Session id collision on {session_id}, retrying")
                    continue
                now = self._now()
                record = SessionRecord(
                    session_id=session_id,
                    created_at=now,
                    last_activity=now,
                    ui_state=default_ui_state(),
                    workspace_data=default_workspace_data(),
                )
                self._save(record)
            logger.info(f"Created new session: {session_id}")
            return record.copy()
        raise RuntimeError("Could not allocate a unique session id")

    def get(self, session_id: str) -> SessionRecord:
        """Fetch a session and refresh its lastActivity."""
        with self._locked_record(session_id) as record:
            self._touch(record)
            self._save(record)
            return record.copy()

    def update_state(
        self,
        session_id: str,
        ui_state: dict[str, Any] | None = None,
        workspace_data: dict[str, list[Any]] | None = None,
    ) -> SessionRecord:
        """
        Shallow-merge patches into a session.

        Both patches are validated before anything is applied, so an invalid
        patch leaves the record exactly as it was.

        Args:
            session_id: The session identifier
            ui_state: Optional patch for uiState
            workspace_data: Optional patch for workspaceData

        Returns:
            The updated record
        """
        validate_session_id(session_id)
        ui_patch = validate_ui_state_patch(ui_state) if ui_state is not None else None
        ws_patch = (
            validate_workspace_patch(workspace_data)
            if workspace_data is not None
            else None
        )
        with self._locked_record(session_id) as record:
            if ui_patch is not None:
                record.ui_state = shallow_merge(record.ui_state, ui_patch)
            if ws_patch is not None:
                record.workspace_data = shallow_merge(record.workspace_data, ws_patch)
            self._touch(record)
            self._save(record)
            logger.debug(f"Updated session state: {session_id}")
            return record.copy()

    def reset(self, session_id: str) -> SessionRecord:
        """Reinitialize uiState and workspaceData, keeping id and createdAt."""
        with self._locked_record(session_id) as record:
            record.ui_state = default_ui_state()
            record.workspace_data = default_workspace_data()
            self._touch(record)
            self._save(record)
            logger.info(f"Reset session: {session_id}")
            return record.copy()

    def add_upload(self, session_id: str, entry: dict[str, Any]) -> SessionRecord:
        """Append an upload entry to workspaceData.uploads."""
        with self._locked_record(session_id) as record:
            uploads = list(record.workspace_data.get("uploads") or [])
            uploads.append(dict(entry))
            record.workspace_data = shallow_merge(
                record.workspace_data, {"uploads": uploads}
            )
            self._touch(record)
            self._save(record)
            logger.info(f"File uploaded to session: {session_id}")
            return record.copy()

    def has_session(self, session_id: str) -> bool:
        """Check existence without touching lastActivity."""
        try:
            session_id = validate_session_id(session_id)
        except ValueError:
            return False
        return self._load(session_id) is not None

    def peek(self, session_id: str) -> SessionRecord:
        """Read a session without touching lastActivity."""
        session_id = validate_session_id(session_id)
        record = self._load(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record.copy()

    def remove_session(self, session_id: str) -> bool:
        session_id = validate_session_id(session_id)
        with self._record_lock(session_id):
            return self._delete(session_id)

    def session_count(self) -> int:
        return len(self._session_ids())

    def sweep_expired(self, max_age: float, now: float | None = None) -> list[str]:
        """
        Remove every session whose inactivity exceeds ``max_age`` seconds.

        Works on a snapshot of ids and re-reads each record under its lock
        before deciding, so a session touched while the sweep runs is kept.

        Args:
            max_age: Maximum allowed ``now - lastActivity`` in seconds
            now: Reference time (defaults to the store clock)

        Returns:
            The ids that were removed
        """
        reference = self._now() if now is None else now
        removed: list[str] = []
        for session_id in self._session_ids():
            with self._record_lock(session_id):
                record = self._load(session_id)
                if record is None:
                    continue
                if reference - record.last_activity > max_age:
                    if self._delete(session_id):
                        removed.append(session_id)
                        logger.info(f"Cleaned up expired session: {session_id}")
        return removed
