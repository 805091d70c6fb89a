"""Tests for credential validation and the auth service."""

import pytest

from mindpal.auth import NETWORK_ERROR_MESSAGE, AuthService, validate_credentials
from mindpal.backend.types import AuthEvent, QueryResult
from mindpal.errors import (
    AuthError,
    BackendError,
    ConfigurationError,
    ConnectivityError,
    ErrorCode,
    ValidationError,
)
from mindpal.notify import NoticeLevel
from mindpal.reliability.session import SessionState
from tests.helpers import make_session


@pytest.fixture
def state():
    return SessionState()


@pytest.fixture
def service(backend, state, notifier, monitor):
    return AuthService(backend.auth, state, notifier, monitor)


class TestValidateCredentials:
    def test_normalises_email(self):
        assert validate_credentials("  me@example.com ", "pw") == "me@example.com"

    @pytest.mark.parametrize("email", ["", "me", "me@example", "me @example.com", "@example.com"])
    def test_rejects_bad_email(self, email):
        with pytest.raises(ValidationError):
            validate_credentials(email, "secret123")

    def test_requires_password(self):
        with pytest.raises(ValidationError):
            validate_credentials("me@example.com", "")

    def test_short_password_only_on_sign_up(self):
        assert validate_credentials("me@example.com", "abc")
        with pytest.raises(ValidationError) as exc_info:
            validate_credentials("me@example.com", "abc", sign_up=True)
        assert exc_info.value.code == ErrorCode.VAL_OUT_OF_RANGE


class TestSignIn:
    @pytest.mark.asyncio
    async def test_sign_in_sets_session(self, service, state, notifier):
        session = await service.sign_in("me@example.com", "secret123")

        assert state.session == session
        assert notifier.messages(NoticeLevel.SUCCESS) == ["Welcome back! ✨"]

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, service, backend, state, notifier):
        backend.auth.sign_in_result = QueryResult(error=BackendError("Invalid login credentials", status=400))

        with pytest.raises(AuthError, match="Invalid login credentials"):
            await service.sign_in("me@example.com", "secret123")

        assert not state.is_authenticated
        assert notifier.notices == []

    @pytest.mark.asyncio
    async def test_network_failure_message(self, service, backend):
        backend.auth.sign_in_result = QueryResult(error=BackendError("Failed to fetch: connection refused"))

        with pytest.raises(AuthError) as exc_info:
            await service.sign_in("me@example.com", "secret123")

        assert exc_info.value.message == NETWORK_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_offline_blocks_sign_in(self, service, monitor):
        monitor.on_browser_offline()
        with pytest.raises(ConnectivityError):
            await service.sign_in("me@example.com", "secret123")

    @pytest.mark.asyncio
    async def test_unconfigured_backend(self, backend, state, notifier):
        service = AuthService(backend.auth, state, notifier, configured=False)
        with pytest.raises(ConfigurationError):
            await service.sign_in("me@example.com", "secret123")


class TestSignUp:
    @pytest.mark.asyncio
    async def test_sign_up_with_session(self, service, state):
        assert await service.sign_up("me@example.com", "secret123") is not None
        assert state.is_authenticated

    @pytest.mark.asyncio
    async def test_sign_up_pending_confirmation(self, service, backend, state, notifier):
        backend.auth.sign_up_result = QueryResult(data=None)

        assert await service.sign_up("me@example.com", "secret123") is None

        assert not state.is_authenticated
        assert len(notifier.messages(NoticeLevel.SUCCESS)) == 1


class TestSessionMirroring:
    @pytest.mark.asyncio
    async def test_restore_session(self, service, backend, state):
        backend.auth.session = make_session()

        restored = await service.restore_session()

        assert restored == backend.auth.session
        assert state.user.id == "user-1"

    @pytest.mark.asyncio
    async def test_backend_events_update_state(self, service, backend, state):
        backend.auth.emit(AuthEvent.SIGNED_IN, make_session())
        assert state.is_authenticated

        backend.auth.emit(AuthEvent.SIGNED_OUT, None)
        assert not state.is_authenticated

    @pytest.mark.asyncio
    async def test_sign_out_clears_state(self, service, state):
        await service.sign_in("me@example.com", "secret123")

        await service.sign_out()

        assert not state.is_authenticated

    @pytest.mark.asyncio
    async def test_sign_out_clears_state_even_on_error(self, service, backend, state):
        await service.sign_in("me@example.com", "secret123")

        async def explode():
            raise ConnectionError("network down")

        backend.auth.sign_out = explode

        with pytest.raises(ConnectionError):
            await service.sign_out()
        assert not state.is_authenticated

    def test_close_unsubscribes(self, service, backend):
        service.close()
        assert backend.auth.listeners == []
