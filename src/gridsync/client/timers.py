"""
Cancelable one-shot timers for the client scheduler.

A callback may be a plain function or return an awaitable; awaitables are
run as tasks on the loop the timer was scheduled from. Tests substitute a
manual clock with the same ``schedule``/``cancel`` surface.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Timer(Protocol):
    @property
    def pending(self) -> bool: ...

    def schedule(self, delay: float, callback: Callable[[], Any]) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[], Timer]


class AsyncioTimer:
    """Timer on top of ``loop.call_later``. Rescheduling cancels the previous run."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], Any]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], Any]) -> None:
        self._handle = None
        result = callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Timer callback failed: {task.exception()}")
