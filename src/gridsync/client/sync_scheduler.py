"""
Sync Scheduler

Two independent timers over the active session id:

- a debounced push: every local write re-arms the push timer, so a burst
  of edits produces one ``update_state`` call carrying the state after the
  last write;
- a validation poll: every ``poll_interval_seconds`` the session is fetched
  again. A failed fetch (not found or unreachable) detaches the scheduler,
  forgets the remembered id and hands over to the lifecycle controller,
  once per detected invalidation.

Push and poll failures are logged and never raised into the caller; the
next cycle retries by sending the current state again.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import GridSyncError, LocalPersistenceError
from ..session_schema import split_local_state
from .local_state_store import LocalStateStore
from .timers import AsyncioTimer, TimerFactory

logger = logging.getLogger(__name__)

InvalidationHandler = Callable[[str], Awaitable[None]]


class SyncScheduler:
    """Debounced push plus periodic validation for one client."""

    def __init__(
        self,
        store: LocalStateStore,
        remote: Any,
        on_invalidated: InvalidationHandler,
        debounce_seconds: float = 0.5,
        poll_interval_seconds: float = 30.0,
        timer_factory: TimerFactory = AsyncioTimer,
    ) -> None:
        self._store = store
        self._remote = remote
        self._on_invalidated = on_invalidated
        self._debounce_seconds = debounce_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._push_timer = timer_factory()
        self._poll_timer = timer_factory()
        self._session_id: str | None = None
        # Bumped on every local write and on every discard of pending work;
        # a push response is only accepted if it still matches.
        self._generation = 0
        self._invalidated = False
        self.synced_generation: int | None = None
        self.push_count = 0

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def push_pending(self) -> bool:
        return self._push_timer.pending

    @property
    def poll_pending(self) -> bool:
        return self._poll_timer.pending

    def attach(self, session_id: str) -> None:
        """Start serving a session: arm the poll, clear any invalidation."""
        self._session_id = session_id
        self._invalidated = False
        self._arm_poll()

    def detach(self) -> None:
        """Stop both timers and drop the session id."""
        self._push_timer.cancel()
        self._poll_timer.cancel()
        self._generation += 1
        self._session_id = None

    def notify_write(self) -> None:
        """Record a local write and (re)start the debounce window."""
        self._generation += 1
        if self._session_id is None:
            return
        self._push_timer.schedule(self._debounce_seconds, self.push_now)

    def discard_pending(self) -> None:
        """Cancel a pending push and make in-flight push responses stale."""
        self._push_timer.cancel()
        self._generation += 1

    async def push_now(self) -> bool:
        """Send the current local state. Returns True if the push was accepted."""
        self._push_timer.cancel()
        session_id = self._session_id
        if session_id is None:
            logger.warning("Cannot sync: no session ID")
            return False

        generation = self._generation
        ui_state, workspace_data = split_local_state(self._store.read())
        self.push_count += 1
        try:
            await self._remote.update_state(session_id, ui_state, workspace_data)
        except GridSyncError as e:
            logger.warning(f"State push for {session_id} failed: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error pushing state for {session_id}: {e}")
            return False

        if session_id != self._session_id:
            logger.debug(f"Discarding push response for stale session {session_id}")
            return False
        if generation != self._generation:
            logger.debug("Discarding push response superseded by newer edits")
            return False
        self.synced_generation = generation
        logger.debug(f"State synced to server for {session_id}")
        return True

    def _arm_poll(self) -> None:
        if self._session_id is not None and not self._invalidated:
            self._poll_timer.schedule(self._poll_interval_seconds, self._poll_tick)

    async def _poll_tick(self) -> None:
        session_id = self._session_id
        healthy = await self.poll_now()
        # Re-armed only once the previous poll resolved, and only if the
        # same session is still being served.
        if healthy and session_id is not None and session_id == self._session_id:
            self._arm_poll()

    async def poll_now(self) -> bool:
        """Validate the session against the server. Returns False on invalidation."""
        session_id = self._session_id
        if session_id is None:
            return False
        failure: Exception | None = None
        try:
            await self._remote.get(session_id)
        except Exception as e:
            # Not found and unreachable both count as invalidation
            failure = e

        if session_id != self._session_id:
            logger.debug(f"Discarding poll response for stale session {session_id}")
            return True
        if failure is None:
            return True
        if self._invalidated:
            return False

        logger.warning(f"Session validation failed for {session_id}, reinitializing: {failure}")
        self._invalidated = True
        self.detach()
        try:
            self._store.forget_session_id()
        except LocalPersistenceError as e:
            logger.error(f"Could not forget session id {session_id}: {e}")
        await self._on_invalidated(session_id)
        return False
