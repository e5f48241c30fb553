"""
Error taxonomy shared by the stores, the HTTP layer and the client.

InvalidInputError and SessionNotFoundError are distinct so a
caller can tell "bad input" from "session expired".
"""

from __future__ import annotations


class GridSyncError(Exception):
    """Root of all gridsync errors."""


class InvalidInputError(GridSyncError, ValueError):
    """Malformed session id or patch body. Never mutates state."""


class PayloadTooLargeError(InvalidInputError):
    """Upload exceeds the configured size cap."""


class SessionNotFoundError(GridSyncError, KeyError):
    """Unknown, expired or evicted session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class TransientIOError(GridSyncError):
    """Network or server-side failure that may succeed on a later attempt."""


class LocalPersistenceError(GridSyncError):
    """The durable local medium rejected a write.

    The in-memory state has already been updated when this is raised.
    """


class SessionBootstrapError(GridSyncError):
    """Neither resuming nor creating a session succeeded."""


class InvalidLifecycleStateError(GridSyncError):
    """Operation requested in a lifecycle state that does not allow it."""
