"""
Session Lifecycle Controller

States::

    UNINITIALIZED -> RESUMING -> ACTIVE
    UNINITIALIZED -> CREATING -> ACTIVE
    RESUMING -> CREATING            (remembered id rejected or unreachable)
    CREATING -> FAILED              (create failed; error surfaced)

Without a remote client the controller runs in local-only mode: the
session id is generated on the client and kept inside the local state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from ..errors import (
    GridSyncError,
    InvalidLifecycleStateError,
    LocalPersistenceError,
    SessionBootstrapError,
)
from ..session_schema import (
    SESSION_ID_KEY,
    UI_STATE_SCHEMA,
    WORKSPACE_KEYS,
    adopt_session,
    default_local_state,
    validate_ui_state_patch,
    validate_workspace_patch,
)
from ..utils.session_utils import new_local_session_id
from .local_state_store import LocalStateStore
from .sync_scheduler import SyncScheduler
from .timers import AsyncioTimer, TimerFactory

logger = logging.getLogger(__name__)

BootstrapFailureHandler = Callable[[SessionBootstrapError], None]


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    RESUMING = "resuming"
    CREATING = "creating"
    ACTIVE = "active"
    FAILED = "failed"


class SessionLifecycleController:
    """Bootstraps, resumes and resets the editor session."""

    def __init__(
        self,
        store: LocalStateStore,
        remote: Any = None,
        debounce_seconds: float = 0.5,
        poll_interval_seconds: float = 30.0,
        timer_factory: TimerFactory = AsyncioTimer,
        on_bootstrap_failed: BootstrapFailureHandler | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._state = LifecycleState.UNINITIALIZED
        self._session_id: str | None = None
        self._rebootstrapping = False
        self._bootstrap_lock = asyncio.Lock()
        self.last_error: Exception | None = None
        # Invoked when the re-bootstrap after an invalidation fails
        self.on_bootstrap_failed = on_bootstrap_failed
        self._scheduler: SyncScheduler | None = None
        if remote is not None:
            self._scheduler = SyncScheduler(
                store,
                remote,
                on_invalidated=self._handle_invalidated,
                debounce_seconds=debounce_seconds,
                poll_interval_seconds=poll_interval_seconds,
                timer_factory=timer_factory,
            )

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def scheduler(self) -> SyncScheduler | None:
        return self._scheduler

    @property
    def local_only(self) -> bool:
        return self._remote is None

    # Bootstrap
    async def bootstrap(self) -> str:
        """
        Resume the remembered session or create a new one.

        Returns:
            The active session id

        Raises:
            SessionBootstrapError: if neither resuming nor creating worked
        """
        async with self._bootstrap_lock:
            return await self._bootstrap()

    async def _bootstrap(self) -> str:
        if self._state is LifecycleState.ACTIVE and self._session_id is not None:
            return self._session_id
        if self._remote is None:
            return self._bootstrap_local()

        remembered = self._store.remembered_session_id()
        if remembered:
            self._state = LifecycleState.RESUMING
            try:
                session = await self._remote.get(remembered)
            except GridSyncError as e:
                logger.info(f"Session {remembered} not resumable, will create new one: {e}")
                self._forget_remembered()
            else:
                logger.info(f"Existing session loaded: {remembered}")
                return self._activate(session)

        self._state = LifecycleState.CREATING
        try:
            session = await self._remote.create()
        except GridSyncError as e:
            self._state = LifecycleState.FAILED
            self.last_error = e
            logger.error(f"Session initialization failed: {e}")
            raise SessionBootstrapError(f"Failed to initialize session: {e}") from e

        try:
            self._store.remember_session_id(session[SESSION_ID_KEY])
        except LocalPersistenceError as e:
            logger.error(f"Could not remember session id: {e}")
        logger.info(f"New session created: {session[SESSION_ID_KEY]}")
        return self._activate(session)

    def _bootstrap_local(self) -> str:
        session_id = self._store.read().get(SESSION_ID_KEY)
        if not session_id:
            session_id = new_local_session_id()
            try:
                self._store.write({SESSION_ID_KEY: session_id})
            except LocalPersistenceError as e:
                logger.error(f"Failed to save local session: {e}")
            logger.info(f"Created new local session: {session_id}")
        self._session_id = session_id
        self._state = LifecycleState.ACTIVE
        return session_id

    def _activate(self, session: dict[str, Any]) -> str:
        session_id = session[SESSION_ID_KEY]
        try:
            self._store.replace(adopt_session(session))
        except LocalPersistenceError as e:
            logger.error(f"Failed to save adopted session state: {e}")
        self._session_id = session_id
        self._state = LifecycleState.ACTIVE
        self.last_error = None
        if self._scheduler is not None:
            self._scheduler.attach(session_id)
        return session_id

    def _forget_remembered(self) -> None:
        try:
            self._store.forget_session_id()
        except LocalPersistenceError as e:
            logger.error(f"Could not forget session id: {e}")

    async def _handle_invalidated(self, session_id: str) -> None:
        if session_id != self._session_id or self._rebootstrapping:
            return
        self._rebootstrapping = True
        try:
            self._state = LifecycleState.UNINITIALIZED
            self._session_id = None
            await self.bootstrap()
        except SessionBootstrapError as e:
            logger.error(f"Re-bootstrap after invalidation failed: {e}")
            if self.on_bootstrap_failed is not None:
                self.on_bootstrap_failed(e)
        finally:
            self._rebootstrapping = False

    # State access
    def read(self) -> dict[str, Any]:
        return self._store.read()

    def update(self, partial: dict[str, Any]) -> dict[str, Any]:
        """
        Apply a local edit and schedule a push.

        The edit is visible to ``read`` immediately. Local persistence
        failures are logged, never raised here.

        Raises:
            InvalidInputError: if a uiState or workspace field has the wrong
                shape; nothing is written in that case
        """
        ui_part = {k: v for k, v in partial.items() if k in UI_STATE_SCHEMA}
        workspace_part = {k: v for k, v in partial.items() if k in WORKSPACE_KEYS}
        if ui_part:
            validate_ui_state_patch(ui_part)
        if workspace_part:
            validate_workspace_patch(workspace_part)
        try:
            state = self._store.write(partial)
        except LocalPersistenceError as e:
            logger.error(f"Failed to save state locally: {e}")
            state = self._store.read()
        if self._scheduler is not None:
            self._scheduler.notify_write()
        return state

    async def flush(self) -> bool:
        """Push the current state right away instead of waiting for the debounce."""
        if self._scheduler is None or self._state is not LifecycleState.ACTIVE:
            return False
        return await self._scheduler.push_now()

    async def upload(self, filename: str, content: bytes, mimetype: str) -> dict[str, Any]:
        """Upload a file to the active session and record its metadata locally."""
        if self._remote is None:
            raise InvalidLifecycleStateError("Uploads need a session server")
        if self._state is not LifecycleState.ACTIVE or self._session_id is None:
            raise InvalidLifecycleStateError(f"Cannot upload in state {self._state.value}")
        info = await self._remote.upload(self._session_id, filename, content, mimetype)
        uploads = list(self._store.read().get("uploads") or [])
        uploads.append(info)
        try:
            self._store.write({"uploads": uploads})
        except LocalPersistenceError as e:
            logger.error(f"Failed to save upload metadata locally: {e}")
        return info

    async def reset(self) -> dict[str, Any]:
        """
        Replace the session state with defaults. Irreversible.

        Either the state is fully replaced or an error is raised and the
        previous local state is left as it was.
        """
        if self._state is not LifecycleState.ACTIVE or self._session_id is None:
            raise InvalidLifecycleStateError(f"Cannot reset in state {self._state.value}")

        if self._remote is None:
            # Persist first; a failed write leaves the old state in place
            state = self._store.replace(
                default_local_state(new_local_session_id()), strict=True
            )
            self._session_id = state[SESSION_ID_KEY]
            logger.info("Session reset successfully")
            return state

        session_id = self._session_id
        # A debounced push of the old state must not land after the reset
        self._scheduler.discard_pending()
        try:
            session = await self._remote.reset(session_id)
        except GridSyncError:
            self._scheduler.notify_write()
            raise
        if session_id != self._session_id:
            logger.debug(f"Discarding reset response for stale session {session_id}")
            return self._store.read()
        try:
            state = self._store.replace(adopt_session(session))
        except LocalPersistenceError as e:
            logger.error(f"Failed to save reset state locally: {e}")
            state = self._store.read()
        logger.info("Session reset successfully")
        return state

    def close(self) -> None:
        """Stop timers. The local state stays on disk."""
        if self._scheduler is not None:
            self._scheduler.detach()
