"""Composition root wiring the client, resilience layer and stores.

Example:
    >>> app = MindpalApp.from_config()
    >>> await app.start()
    >>> await app.auth.sign_in("me@example.com", "secret123")
    >>> await app.load_dashboard()
    >>> print(app.tasks.pending, app.mood.streak)
    >>> await app.close()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from mindpal.auth import AuthService
from mindpal.backend.client import BackendClient
from mindpal.backend.realtime import RealtimeChangeFeed
from mindpal.backend.rest import RestBackendClient
from mindpal.backend.storage import FileSessionStorage, SessionStorage
from mindpal.config import MindpalConfig, get_config, require_configured
from mindpal.integrations.services import ServiceClient
from mindpal.notify import LoggingNotifier, Notifier
from mindpal.observability.logging import log_event, timed_operation
from mindpal.reliability.connectivity import ConnectivityMonitor
from mindpal.reliability.retry import RetryPolicy, Sleep
from mindpal.reliability.session import SessionGuard, SessionState
from mindpal.resources import (
    ChatStore,
    EncryptedDataStore,
    MoodStore,
    NotificationStore,
    ResourceContext,
    SessionReportStore,
    SettingsStore,
    TaskStore,
)

logger = logging.getLogger(__name__)


@dataclass
class DashboardResult:
    """Which dashboard loads replaced their local state."""

    loaded: dict[str, bool] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(self.loaded.values())


class MindpalApp:
    """Owns one client, one session state and the stores built on them."""

    def __init__(
        self,
        config: MindpalConfig,
        client: BackendClient,
        notifier: Notifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.client = client
        self.notifier = notifier or LoggingNotifier()
        self._sleep = sleep

        self.session = SessionState()
        self.monitor = ConnectivityMonitor.for_client(client, config.connectivity, self.notifier)
        self.guard = SessionGuard(
            self.session,
            client.auth,
            self.notifier,
            clear_token=lambda: client.set_access_token(None),
        )
        self.auth = AuthService(
            client.auth,
            self.session,
            self.notifier,
            self.monitor,
            configured=config.backend.is_configured,
        )

        context = ResourceContext(
            client,
            self.session,
            self.monitor,
            self.guard,
            self.notifier,
            RetryPolicy.from_settings(config.retry),
        )
        self.notifications = NotificationStore(context)
        self.tasks = TaskStore(context, self.notifications)
        self.mood = MoodStore(context, reload_delay=config.realtime.reload_debounce_seconds)
        self.chat = ChatStore(context)
        self.settings = SettingsStore(context)
        self.reports = SessionReportStore(context)
        self.encrypted = EncryptedDataStore(context)
        self.services = ServiceClient(config.services, self.monitor)

    @classmethod
    def from_config(
        cls,
        config: MindpalConfig | None = None,
        notifier: Notifier | None = None,
        session_storage: SessionStorage | None = None,
    ) -> MindpalApp:
        """Build the HTTP/websocket client from configuration.

        The signed-in session is persisted to ``~/.mindpal/session.json``
        unless another ``session_storage`` is given.

        Raises:
            ConfigurationError: Backend credentials missing or malformed.
        """
        config = config or get_config()
        backend = require_configured(config)
        realtime = None
        if config.realtime.enabled:
            realtime = RealtimeChangeFeed(backend, config.realtime.heartbeat_interval_seconds)
        client = RestBackendClient(
            backend,
            realtime=realtime,
            session_storage=session_storage or FileSessionStorage(),
        )
        return cls(config, client, notifier)

    @property
    def stores(self) -> tuple:
        return (
            self.tasks,
            self.mood,
            self.chat,
            self.settings,
            self.notifications,
            self.reports,
            self.encrypted,
        )

    async def start(self) -> None:
        """Restore any stored session and start connectivity monitoring."""
        await self.auth.restore_session()
        self.monitor.start()

    async def load_dashboard(self) -> DashboardResult:
        """Load tasks, mood and chat sessions one after another.

        A short pause between calls avoids request bursts; a failing load
        does not stop the ones after it.
        """
        steps = (
            ("tasks", self.tasks.load),
            ("mood", self.mood.load),
            ("chat", self.chat.load_sessions),
        )
        result = DashboardResult()
        delay = self.config.dashboard.inter_call_delay_seconds
        with timed_operation(logger, "dashboard.load", level=logging.INFO) as ctx:
            for index, (name, load) in enumerate(steps):
                if index:
                    await self._sleep(delay)
                try:
                    result.loaded[name] = await load()
                except Exception as e:
                    logger.error(f"Dashboard {name} load failed: {e}")
                    result.loaded[name] = False
            ctx["loaded"] = sum(result.loaded.values())
        return result

    async def close(self) -> None:
        """Stop monitoring, dispose stores and close the clients."""
        await self.monitor.stop()
        for store in self.stores:
            store.dispose()
        self.auth.close()
        self.services.close()
        await self.client.close()
        log_event(logger, "app.closed")
