"""Connection, retry and session resilience.

Example:
    from mindpal.reliability import ConnectivityMonitor, RetryPolicy, with_retry

    monitor = ConnectivityMonitor(client.ping)
    rows = await with_retry(lambda: fetch(), RetryPolicy(max_attempts=2))
"""

from mindpal.reliability.connectivity import (
    CONNECTION_RESTORED_MESSAGE,
    ConnectivityMonitor,
    ConnectivityState,
)
from mindpal.reliability.debounce import Debouncer
from mindpal.reliability.retry import (
    DEFAULT_POLICY,
    FailureCounter,
    RetryPolicy,
    retry_async_with_backoff,
    with_retry,
)
from mindpal.reliability.session import (
    SESSION_EXPIRED_MESSAGE,
    SessionGuard,
    SessionState,
)
from mindpal.reliability.signatures import is_auth_expiry, is_retryable

__all__ = [
    # Connectivity
    "CONNECTION_RESTORED_MESSAGE",
    "ConnectivityMonitor",
    "ConnectivityState",
    # Debounce
    "Debouncer",
    # Retry
    "DEFAULT_POLICY",
    "FailureCounter",
    "RetryPolicy",
    "retry_async_with_backoff",
    "with_retry",
    "is_retryable",
    # Session
    "SESSION_EXPIRED_MESSAGE",
    "SessionGuard",
    "SessionState",
    "is_auth_expiry",
]
