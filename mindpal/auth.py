"""Sign-in, sign-up and session restore on top of the backend auth API.

``AuthService`` is the only writer of ``SessionState`` apart from the
session guard's forced sign-out: every auth state change reported by the
backend is mirrored into it.
"""

from __future__ import annotations

import logging
import re

from mindpal.backend.client import AuthClient
from mindpal.backend.types import AuthEvent, Session
from mindpal.errors import AuthError, ConfigurationError, ErrorCode, ValidationError, validation_required
from mindpal.notify import NoticeLevel, Notifier
from mindpal.reliability.connectivity import ConnectivityMonitor
from mindpal.reliability.session import SessionState

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."


def validate_credentials(email: str, password: str, *, sign_up: bool = False) -> str:
    """Check credentials locally and return the normalised email.

    Raises:
        ValidationError: For a missing or malformed email or a short password.
    """
    email = email.strip()
    if not email:
        raise validation_required("email")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address", field="email", value=email)
    if not password:
        raise validation_required("password")
    if sign_up and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            field="password",
            code=ErrorCode.VAL_OUT_OF_RANGE,
        )
    return email


def _friendly(error: Exception) -> str:
    message = str(getattr(error, "message", None) or error)
    lowered = message.lower()
    if "fetch" in lowered or "network" in lowered:
        return NETWORK_ERROR_MESSAGE
    return message


class AuthService:
    """Credential flows feeding an explicit ``SessionState``."""

    def __init__(
        self,
        auth: AuthClient,
        state: SessionState,
        notifier: Notifier,
        monitor: ConnectivityMonitor | None = None,
        configured: bool = True,
    ) -> None:
        self._auth = auth
        self._state = state
        self._notifier = notifier
        self._monitor = monitor
        self._configured = configured
        self._subscription = auth.on_auth_state_change(self._on_auth_change)

    @property
    def state(self) -> SessionState:
        return self._state

    def _on_auth_change(self, event: AuthEvent, session: Session | None) -> None:
        logger.debug("Auth state change: %s", event.value)
        if session is None:
            self._state.clear()
        else:
            self._state.set_session(session, event)

    def _ensure_can_authenticate(self) -> None:
        if not self._configured:
            raise ConfigurationError("Application not configured. Please check environment variables.")
        if self._monitor is not None:
            self._monitor.require_connection("authenticate")

    async def restore_session(self) -> Session | None:
        """Pick up a stored session, refreshing it when about to expire."""
        result = await self._auth.get_session()
        if result.error is not None:
            logger.warning("Could not restore session: %s", result.error)
            return None
        if result.data is not None and self._state.session != result.data:
            self._state.set_session(result.data, AuthEvent.SIGNED_IN)
        return result.data

    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in with email and password.

        Raises:
            ValidationError: Credentials rejected locally.
            ConfigurationError: Backend not configured.
            ConnectivityError: Offline or backend unreachable.
            AuthError: The backend rejected the credentials.
        """
        email = validate_credentials(email, password)
        self._ensure_can_authenticate()

        result = await self._auth.sign_in_with_password(email, password)
        if result.error is not None or result.data is None:
            error = result.error or AuthError()
            logger.warning("Sign-in failed for %s: %s", email, error)
            raise AuthError(_friendly(error), cause=result.error)

        if self._state.session != result.data:
            self._state.set_session(result.data, AuthEvent.SIGNED_IN)
        self._notifier.notify(NoticeLevel.SUCCESS, "Welcome back! ✨")
        return result.data

    async def sign_up(self, email: str, password: str) -> Session | None:
        """Create an account.

        Returns the new session, or None when the project requires email
        confirmation first.
        """
        email = validate_credentials(email, password, sign_up=True)
        self._ensure_can_authenticate()

        result = await self._auth.sign_up(email, password)
        if result.error is not None:
            logger.warning("Sign-up failed for %s: %s", email, result.error)
            raise AuthError(_friendly(result.error), cause=result.error)

        if result.data is not None and self._state.session != result.data:
            self._state.set_session(result.data, AuthEvent.SIGNED_IN)
        self._notifier.notify(
            NoticeLevel.SUCCESS,
            "Account created successfully! Please check your email for verification. 🎉",
        )
        return result.data

    async def sign_out(self) -> None:
        """Sign out; local state is cleared even if the backend call fails."""
        try:
            result = await self._auth.sign_out()
            if result.error is not None:
                logger.warning("Backend sign-out failed: %s", result.error)
        finally:
            self._state.clear()

    def close(self) -> None:
        self._subscription.unsubscribe()
