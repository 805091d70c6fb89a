"""Trailing-edge debouncer for realtime-triggered reloads."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from mindpal.utils.async_utils import spawn

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesce bursts of triggers into a single callback.

    Each ``trigger()`` (re)arms one timer; the callback runs ``delay``
    seconds after the last trigger. Coroutine callbacks are scheduled as
    background tasks whose failures are logged.

    Example:
        >>> reload = Debouncer(1.0, store.refresh)
        >>> reload.trigger()
        >>> reload.trigger()  # still one refresh, one second from now
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[object] | None]) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """Arm the timer, replacing any pending one."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            result = self._callback()
        except Exception:
            logger.exception("Debounced callback failed")
            return
        if inspect.isawaitable(result):
            spawn(_await(result), "Debounced callback failed", logger)


async def _await(awaitable: Awaitable[object]) -> None:
    await awaitable
