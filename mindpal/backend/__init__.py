"""Backend-as-a-service client layer: table API, auth API and realtime feed."""

from mindpal.backend.client import AuthClient, BackendClient, ChangeFeed, Subscription
from mindpal.backend.realtime import RealtimeChangeFeed
from mindpal.backend.rest import RestAuthClient, RestBackendClient
from mindpal.backend.storage import FileSessionStorage, SessionStorage
from mindpal.backend.types import (
    AuthEvent,
    ChangeEvent,
    Filter,
    QueryResult,
    Session,
    User,
    eq,
    gte,
    lte,
)

__all__ = [
    "AuthClient",
    "AuthEvent",
    "BackendClient",
    "ChangeEvent",
    "ChangeFeed",
    "FileSessionStorage",
    "Filter",
    "QueryResult",
    "RealtimeChangeFeed",
    "RestAuthClient",
    "RestBackendClient",
    "Session",
    "SessionStorage",
    "Subscription",
    "User",
    "eq",
    "gte",
    "lte",
]
