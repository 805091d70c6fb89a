"""Session state and auth-expiry handling.

``SessionState`` is the single owned record of "who is signed in". It is
passed to the guard and the stores explicitly and changes only through
``set_session`` and ``clear``; interested parties subscribe to changes.

``SessionGuard`` decides whether a failure means the session expired and,
if so, forces one local sign-out per expiry event no matter how many
concurrent calls fail with the same signature.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from mindpal.backend.client import AuthClient
from mindpal.backend.types import AuthEvent, Session, User
from mindpal.notify import NoticeLevel, Notifier
from mindpal.observability.logging import log_event
from mindpal.reliability.signatures import is_auth_expiry

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."

SessionListener = Callable[[AuthEvent, Session | None], None]


class SessionState:
    """Observable holder of the current session."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session
        self._listeners: list[SessionListener] = []
        self._expiry_generation = 0

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def expiry_generation(self) -> int:
        """Number of forced sign-outs so far."""
        return self._expiry_generation

    def record_expiry(self) -> None:
        self._expiry_generation += 1

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_session(self, session: Session, event: AuthEvent = AuthEvent.SIGNED_IN) -> None:
        self._session = session
        self._emit(event)

    def clear(self) -> None:
        had_session = self._session is not None
        self._session = None
        if had_session:
            self._emit(AuthEvent.SIGNED_OUT)

    def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._session)
            except Exception:
                logger.exception("Session listener failed for %s", event.value)


class SessionGuard:
    """Classify failures as session expiry and recover exactly once.

    Example:
        >>> if await guard.classify_and_handle(error):
        ...     return  # already handled, do not show a generic error
    """

    def __init__(
        self,
        state: SessionState,
        auth: AuthClient,
        notifier: Notifier,
        clear_token: Callable[[], None] | None = None,
    ) -> None:
        self._state = state
        self._auth = auth
        self._notifier = notifier
        self._clear_token = clear_token
        self._sign_out_task: asyncio.Task[None] | None = None
        self._handled = False
        state.subscribe(self._on_session_change)

    @property
    def expired(self) -> bool:
        """True between a forced sign-out and the next sign-in."""
        return self._handled

    def _on_session_change(self, event: AuthEvent, session: Session | None) -> None:
        # A fresh session re-arms the guard for the next expiry
        if session is not None and event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED):
            self._handled = False

    async def classify_and_handle(self, error: object) -> bool:
        """Return True if ``error`` is an auth expiry (and handle it).

        Non-matching errors return False with no side effects.
        """
        if not is_auth_expiry(error):
            return False

        if self._sign_out_task is not None:
            # Another caller in the same expiry event is signing out
            task = self._sign_out_task
            await asyncio.shield(task)
            if self._sign_out_task is task:
                self._sign_out_task = None
            return True
        if self._handled:
            return True

        self._handled = True
        self._state.record_expiry()
        log_event(
            logger,
            "session.expired",
            level=logging.WARNING,
            message=f"Session expired: {error}",
        )
        self._notifier.notify(NoticeLevel.ERROR, SESSION_EXPIRED_MESSAGE)
        task = asyncio.get_running_loop().create_task(self._sign_out())
        self._sign_out_task = task
        try:
            await asyncio.shield(task)
        finally:
            if self._sign_out_task is task and task.done():
                self._sign_out_task = None
        return True

    async def _sign_out(self) -> None:
        try:
            result = await self._auth.sign_out()
            if result.error is not None:
                logger.warning("Backend sign-out failed: %s", result.error)
        except Exception as e:
            logger.warning("Backend sign-out raised: %s", e)
        finally:
            if self._clear_token is not None:
                self._clear_token()
            self._state.clear()
