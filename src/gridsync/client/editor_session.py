"""
Wiring between the lifecycle controller and the editor's collaborators:
a yes/no confirmation provider guarding reset, a notification sink, and a
workbook exporter that receives a snapshot of the current state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..config import ClientConfig
from ..errors import GridSyncError, SessionBootstrapError
from .lifecycle import SessionLifecycleController
from .local_state_store import LocalStateStore
from .remote_client import RemoteSessionClient
from .timers import AsyncioTimer, TimerFactory

logger = logging.getLogger(__name__)

ConfirmProvider = Callable[[str], bool]
NotificationSink = Callable[[str, str], None]
WorkbookExporter = Callable[[dict[str, Any]], Any]

RESET_PROMPT = (
    "Reset session? All grid data, queries and settings will be cleared. "
    "This action cannot be undone."
)


def _decline(message: str) -> bool:
    return False


def _log_notification(message: str, level: str) -> None:
    logger.info(f"[{level}] {message}")


class EditorSession:
    """Front door used by the editor UI."""

    def __init__(
        self,
        controller: SessionLifecycleController,
        confirm: ConfirmProvider | None = None,
        notify: NotificationSink | None = None,
        exporter: WorkbookExporter | None = None,
        remote: RemoteSessionClient | None = None,
        store: LocalStateStore | None = None,
    ) -> None:
        self.controller = controller
        # Without a confirmation provider reset is always declined.
        self._confirm = confirm or _decline
        self._notify = notify or _log_notification
        self._exporter = exporter
        self._remote = remote
        # Set when this object opened the local store and must close it.
        self._store = store
        if controller.on_bootstrap_failed is None:
            controller.on_bootstrap_failed = self._on_bootstrap_failed

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        timer_factory: TimerFactory = AsyncioTimer,
        **collaborators: Any,
    ) -> EditorSession:
        store = LocalStateStore(config.local_dir)
        remote = (
            RemoteSessionClient(config.server_url, timeout=config.request_timeout_seconds)
            if config.server_url
            else None
        )
        controller = SessionLifecycleController(
            store,
            remote,
            debounce_seconds=config.debounce_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
            timer_factory=timer_factory,
        )
        return cls(controller, remote=remote, store=store, **collaborators)

    async def start(self) -> str:
        """Bootstrap the session. Failures are shown and re-raised."""
        try:
            session_id = await self.controller.bootstrap()
        except SessionBootstrapError as e:
            self._notify(f"Could not start session: {e}", "error")
            raise
        return session_id

    def _on_bootstrap_failed(self, error: SessionBootstrapError) -> None:
        self._notify(f"Session lost and could not be restarted: {error}", "error")

    def state(self) -> dict[str, Any]:
        return self.controller.read()

    def edit(self, **fields: Any) -> dict[str, Any]:
        return self.controller.update(fields)

    async def request_reset(self) -> bool:
        """Ask for confirmation, then reset. Returns True if the reset happened."""
        if not self._confirm(RESET_PROMPT):
            return False
        try:
            await self.controller.reset()
        except GridSyncError as e:
            self._notify(f"Reset failed: {e}", "error")
            return False
        self._notify("Session reset successfully", "success")
        return True

    async def upload(self, filename: str, content: bytes, mimetype: str) -> dict[str, Any] | None:
        try:
            info = await self.controller.upload(filename, content, mimetype)
        except GridSyncError as e:
            self._notify(f"Upload failed: {e}", "error")
            return None
        self._notify(f"Uploaded {info.get('originalName', filename)}", "success")
        return info

    def export(self) -> Any:
        """Hand a snapshot of the current state to the workbook exporter."""
        if self._exporter is None:
            raise RuntimeError("No workbook exporter configured")
        return self._exporter(self.controller.read())

    async def close(self) -> None:
        self.controller.close()
        if self._remote is not None:
            await self._remote.aclose()
        if self._store is not None:
            self._store.close()
