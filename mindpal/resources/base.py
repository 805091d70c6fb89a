"""Shared plumbing for remote resource stores.

Each store owns the local view state of one backend resource and composes
the resilience layer the same way:

1. Consult the connectivity monitor. Reads skip and keep cached state when
   the backend is unreachable; writes raise ``ConnectivityError`` without
   attempting.
2. Run the call through ``with_retry``; a backend ``(data, error)`` result
   with an error is raised as ``BackendError`` so it can be classified.
3. On failure, the session guard runs first. An auth expiry stops silently.
   Anything else keeps the previous local state and surfaces one error
   notice for the logical action (none for non-critical reads).

Successful loads replace local state with a new tuple/model in one
assignment. After ``dispose()``, sign-out or a user switch, results that were
already in flight no longer write to local state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar, TypeVar

from mindpal.backend.client import BackendClient
from mindpal.backend.types import AuthEvent, QueryResult, Session, User
from mindpal.errors import AuthError, ErrorCode
from mindpal.notify import NoticeLevel, Notifier
from mindpal.observability.logging import log_event, timed_operation
from mindpal.reliability.connectivity import ConnectivityMonitor
from mindpal.reliability.retry import FailureCounter, RetryPolicy, with_retry
from mindpal.reliability.session import SessionGuard, SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetch = Callable[[], Awaitable[QueryResult[Any]]]


class ResourceContext:
    """Collaborators shared by every store of one app instance."""

    def __init__(
        self,
        client: BackendClient,
        session: SessionState,
        monitor: ConnectivityMonitor,
        guard: SessionGuard,
        notifier: Notifier,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.monitor = monitor
        self.guard = guard
        self.notifier = notifier
        self.policy = policy or RetryPolicy()
        self.failures = FailureCounter("backend")


class RemoteResource:
    """Base class for a store over one backend table."""

    table: ClassVar[str] = ""

    def __init__(self, context: ResourceContext, policy: RetryPolicy | None = None) -> None:
        self._ctx = context
        self._client = context.client
        self._policy = policy or context.policy
        self._loading: set[str] = set()
        self._disposed = False
        self._unsubscribe = context.session.subscribe(self._on_session_change)

    @property
    def is_loading(self) -> bool:
        return bool(self._loading)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop accepting results; pending calls will not touch local state."""
        self._disposed = True
        self._unsubscribe()

    def reset(self) -> None:
        """Restore local state to its defaults (on sign-out)."""

    def _on_session_change(self, event: AuthEvent, session: Session | None) -> None:
        if session is None and not self._disposed:
            self.reset()

    @property
    def user(self) -> User | None:
        return self._ctx.session.user

    def _require_user(self) -> User:
        user = self.user
        if user is None:
            raise AuthError("You must be signed in", code=ErrorCode.AUTH_REQUIRED)
        return user

    def _owns(self, user_id: str) -> bool:
        """Whether a result fetched for ``user_id`` may still touch local state.

        False after disposal, sign-out or a switch to another user.
        """
        user = self.user
        return not self._disposed and user is not None and user.id == user_id

    def _notify(self, level: NoticeLevel, message: str | None) -> None:
        if message and not self._disposed:
            self._ctx.notifier.notify(level, message)

    async def _attempt(self, action: str, call: Fetch, policy: RetryPolicy | None = None) -> Any:
        async def once() -> Any:
            return (await call()).unwrap()

        name = f"{self.table}.{action}"
        with timed_operation(logger, name):
            return await with_retry(
                once,
                policy or self._policy,
                failures=self._ctx.failures,
                name=name,
            )

    async def _handle_failure(self, action: str, error: Exception, message: str | None) -> None:
        if await self._ctx.guard.classify_and_handle(error):
            return
        log_event(
            logger,
            f"{self.table}.{action}.failed",
            level=logging.ERROR,
            message=f"Error in {self.table}.{action}: {error}",
        )
        self._notify(NoticeLevel.ERROR, message)

    async def _load(
        self,
        action: str,
        call: Fetch,
        apply: Callable[[Any], bool | None],
        *,
        error_message: str | None = None,
        policy: RetryPolicy | None = None,
    ) -> bool:
        """Guarded read; ``apply`` receives the data only on success.

        ``apply`` may return False to discard the data. Returns True when
        local state was replaced.
        """
        if action in self._loading:
            logger.debug("%s.%s already in flight, skipping", self.table, action)
            return False
        user = self.user
        if user is None:
            self.reset()
            return False
        if not self._ctx.monitor.state.can_reach_backend:
            logger.info("Backend unreachable, keeping cached %s", self.table)
            return False

        self._loading.add(action)
        try:
            data = await self._attempt(action, call, policy)
        except Exception as e:
            await self._handle_failure(action, e, error_message)
            return False
        finally:
            self._loading.discard(action)

        if not self._owns(user.id):
            logger.debug("Dropping %s.%s result fetched for a previous session", self.table, action)
            return False
        return apply(data) is not False

    async def _write(
        self,
        action: str,
        call: Fetch,
        *,
        success_message: str | None = None,
        error_message: str | None = None,
    ) -> tuple[bool, Any]:
        """Guarded write.

        Returns ``(ok, data)``; ``ok`` is False when the write failed or the
        session expired, in which case the notice (if any) was already sent.

        Raises:
            ConnectivityError: Offline or backend unreachable; not attempted.
        """
        self._ctx.monitor.require_connection(f"{action} {self.table}")
        try:
            data = await self._attempt(action, call)
        except Exception as e:
            await self._handle_failure(action, e, error_message)
            return False, None
        self._notify(NoticeLevel.SUCCESS, success_message)
        return True, data


def first_row(data: Any) -> dict[str, Any] | None:
    """First row of an insert/update representation, if any."""
    if isinstance(data, list):
        return data[0] if data else None
    return data
