"""Pytest configuration for MindPal tests.

Every store test runs against the in-memory ``FakeBackend`` from
``tests.helpers``; nothing here touches the network.
"""

from datetime import UTC, datetime

import pytest

from mindpal.config import reset_config
from mindpal.notify import CollectingNotifier
from mindpal.reliability.connectivity import ConnectivityMonitor
from mindpal.reliability.retry import RetryPolicy
from mindpal.reliability.session import SessionGuard, SessionState
from mindpal.resources.base import ResourceContext
from tests.helpers import FakeBackend, make_session

FIXED_NOW = datetime(2024, 1, 12, 15, 0, tzinfo=UTC)

# No real waiting between attempts
FAST_POLICY = RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture(autouse=True)
def clean_config():
    """Keep the configuration singleton from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def session_state() -> SessionState:
    """A signed-in session for ``user-1``."""
    return SessionState(make_session())


@pytest.fixture
def monitor(backend, notifier) -> ConnectivityMonitor:
    return ConnectivityMonitor(backend.ping, notifier, clock=lambda: FIXED_NOW)


@pytest.fixture
def guard(backend, session_state, notifier) -> SessionGuard:
    return SessionGuard(
        session_state,
        backend.auth,
        notifier,
        clear_token=lambda: backend.set_access_token(None),
    )


@pytest.fixture
def context(backend, session_state, monitor, guard, notifier) -> ResourceContext:
    return ResourceContext(backend, session_state, monitor, guard, notifier, FAST_POLICY)
