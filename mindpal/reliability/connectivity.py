"""Connectivity monitoring for the network and the backend.

Single source of truth for "can we talk to the network and to the backend
right now". Browser-level online/offline transitions arrive through
``on_browser_online``/``on_browser_offline``; backend reachability is
established by short probes, repeated in the background only when the
state is unhealthy or stale.

Reachability starts optimistic (True) so the UI is never blocked on a slow
first probe. A backend that is down at startup is therefore reported
reachable until the first probe completes.

Example:
    >>> monitor = ConnectivityMonitor(client.ping, notifier)
    >>> monitor.subscribe(lambda old, new: print(old.is_backend_reachable, "->", new.is_backend_reachable))
    >>> monitor.start()
    >>> # Later...
    >>> if monitor.state.can_reach_backend:
    ...     await store.load()
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from mindpal.errors import ConnectivityError, ErrorCode, offline
from mindpal.notify import NoticeLevel, Notifier
from mindpal.observability.logging import log_event

if TYPE_CHECKING:
    from mindpal.backend.client import BackendClient
    from mindpal.config import ConnectivitySettings

logger = logging.getLogger(__name__)

CONNECTION_RESTORED_MESSAGE = "Connection restored"

Probe = Callable[[float], Awaitable[int]]
StateListener = Callable[["ConnectivityState", "ConnectivityState"], None]


@dataclass(frozen=True)
class ConnectivityState:
    """Snapshot of connectivity.

    ``is_checking`` is True only while a probe is in flight.
    """

    is_online: bool = True
    is_backend_reachable: bool = True
    last_checked_at: datetime | None = None
    is_checking: bool = False

    @property
    def can_reach_backend(self) -> bool:
        return self.is_online and self.is_backend_reachable


class ConnectivityMonitor:
    """Track network and backend reachability.

    Only this class mutates ``ConnectivityState``; everyone else reads
    ``state`` or subscribes to transitions.
    """

    DEFAULT_CHECK_INTERVAL = 60.0  # seconds
    DEFAULT_TIMEOUT = 5.0  # seconds
    DEFAULT_FRESHNESS_WINDOW = 120.0  # seconds
    DEFAULT_INITIAL_DELAY = 1.0  # seconds

    def __init__(
        self,
        probe: Probe,
        notifier: Notifier | None = None,
        *,
        is_online: bool = True,
        probe_timeout: float = DEFAULT_TIMEOUT,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        freshness_window: float = DEFAULT_FRESHNESS_WINDOW,
        initial_probe_delay: float = DEFAULT_INITIAL_DELAY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize connectivity monitor.

        Args:
            probe: Coroutine taking a timeout and returning an HTTP status;
                raises on network failure.
            notifier: Receives the one-off "connection restored" notice.
            is_online: Initial network state.
            probe_timeout: Hard timeout for one probe in seconds.
            check_interval: Seconds between background checks.
            freshness_window: Healthy state older than this is re-probed.
            initial_probe_delay: Delay before the first background probe.
            clock: Returns the current time; defaults to UTC now.
        """
        self._probe = probe
        self._notifier = notifier
        self._probe_timeout = probe_timeout
        self._check_interval = check_interval
        self._freshness_window = freshness_window
        self._initial_probe_delay = initial_probe_delay
        self._clock = clock or (lambda: datetime.now(UTC))

        self._state = ConnectivityState(is_online=is_online, is_backend_reachable=is_online)
        # Set by a failed probe or going offline; a later successful probe
        # clears it and emits the restored signal once.
        self._lost = not is_online
        self._listeners: list[StateListener] = []
        self._restored_listeners: list[Callable[[], None]] = []
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def for_client(
        cls,
        client: BackendClient,
        settings: ConnectivitySettings,
        notifier: Notifier | None = None,
    ) -> ConnectivityMonitor:
        return cls(
            client.ping,
            notifier,
            probe_timeout=settings.probe_timeout_seconds,
            check_interval=settings.check_interval_seconds,
            freshness_window=settings.freshness_window_seconds,
            initial_probe_delay=settings.initial_probe_delay_seconds,
        )

    @property
    def state(self) -> ConnectivityState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with ``(old, new)`` on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_restored(self, callback: Callable[[], None]) -> None:
        """Register a callback for unreachable -> reachable recoveries."""
        self._restored_listeners.append(callback)

    def _update(self, **changes: object) -> None:
        old = self._state
        new = dataclasses.replace(old, **changes)
        if new == old:
            return
        self._state = new
        if old.can_reach_backend != new.can_reach_backend:
            logger.info(
                "Connectivity: backend %s -> %s",
                "reachable" if old.can_reach_backend else "unreachable",
                "reachable" if new.can_reach_backend else "unreachable",
            )
        for listener in list(self._listeners):
            try:
                listener(old, new)
            except Exception:
                logger.exception("Connectivity listener failed")

    # Browser events

    def on_browser_online(self) -> None:
        """Network is back; assume the backend is too until a probe says otherwise."""
        logger.info("Network: back online")
        self._update(is_online=True, is_backend_reachable=True)

    def on_browser_offline(self) -> None:
        """No network means no backend; no probe needed."""
        logger.info("Network: gone offline")
        self._lost = True
        self._update(is_online=False, is_backend_reachable=False)

    # Probing

    async def probe_backend(self) -> bool:
        """Check backend reachability with a short hard timeout.

        Any HTTP response (401 included) proves reachability; only a
        network-level failure or timeout yields False. Calls made while a
        probe is in flight return the last known state without probing.
        """
        if self._state.is_checking:
            return self._state.is_backend_reachable

        self._update(is_checking=True)
        reachable = False
        try:
            status = await asyncio.wait_for(self._probe(self._probe_timeout), self._probe_timeout)
            reachable = True
            logger.debug("Backend probe answered HTTP %s", status)
        except asyncio.CancelledError:
            # A cancelled check says nothing about the backend.
            self._update(is_checking=False)
            raise
        except TimeoutError:
            logger.warning("Backend probe timed out after %.1fs", self._probe_timeout)
        except Exception as e:
            logger.warning("Backend probe failed: %s", e)

        if not self._state.is_online:
            reachable = False
        self._update(
            is_backend_reachable=reachable,
            last_checked_at=self._clock(),
            is_checking=False,
        )

        if not reachable:
            self._lost = True
        elif self._lost:
            self._lost = False
            self._emit_restored()
        return reachable

    def _emit_restored(self) -> None:
        log_event(logger, "connectivity.restored", message=CONNECTION_RESTORED_MESSAGE)
        if self._notifier is not None:
            self._notifier.notify(NoticeLevel.SUCCESS, CONNECTION_RESTORED_MESSAGE)
        for callback in list(self._restored_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Connection-restored callback failed")

    def should_probe(self, now: datetime | None = None) -> bool:
        """Whether a periodic check is due.

        Only when online, and either unreachable, never checked, or the
        last check is older than the freshness window.
        """
        state = self._state
        if not state.is_online or state.is_checking:
            return False
        if not state.is_backend_reachable or state.last_checked_at is None:
            return True
        age = ((now or self._clock()) - state.last_checked_at).total_seconds()
        return age > self._freshness_window

    def require_connection(self, operation: str | None = None) -> None:
        """Raise ConnectivityError when remote work must not be attempted."""
        state = self._state
        if not state.is_online:
            raise offline(operation)
        if not state.is_backend_reachable:
            raise ConnectivityError(
                "Cannot reach the server",
                operation=operation,
                code=ErrorCode.NET_UNREACHABLE,
            )

    # Background loop

    async def run_periodic(self) -> None:
        """Initial probe after a short delay, then re-probe only when due."""
        await asyncio.sleep(self._initial_probe_delay)
        if self._state.is_online:
            await self.probe_backend()
        while True:
            await asyncio.sleep(self._check_interval)
            if self.should_probe():
                await self.probe_backend()

    def start(self) -> None:
        """Start background monitoring on the running loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self.run_periodic())
        logger.info("Connectivity monitor started")

    async def stop(self) -> None:
        """Stop background monitoring."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Connectivity monitor stopped")
