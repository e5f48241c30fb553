"""
Background eviction of idle sessions.

The sweep runs on its own daemon thread on a fixed interval, independent
of request traffic. Stores are responsible for making ``sweep_expired``
safe against concurrent requests.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .base_session_store import SessionStore
from .system_utils import log_system_status

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodically calls ``store.sweep_expired`` until stopped."""

    def __init__(
        self,
        store: SessionStore,
        max_age_seconds: float = 24 * 60 * 60,
        interval_seconds: float = 60 * 60,
        on_sweep: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._store = store
        self._max_age_seconds = max_age_seconds
        self._interval_seconds = interval_seconds
        self._on_sweep = on_sweep
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> list[str]:
        removed = self._store.sweep_expired(max_age=self._max_age_seconds)
        if removed:
            logger.info(f"Evicted {len(removed)} idle session(s)")
        if self._on_sweep is not None:
            self._on_sweep(removed)
        return removed

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            try:
                self.sweep_once()
                log_system_status(
                    self._store.__class__.__name__, self._store.session_count()
                )
            except Exception as exc:
                # Keep the thread alive; the next interval tries again.
                logger.error(f"Session sweep failed: {exc}")

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="gridsync-session-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Session sweeper started (max_age={self._max_age_seconds}s, "
            f"interval={self._interval_seconds}s)"
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
