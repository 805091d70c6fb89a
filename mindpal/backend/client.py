"""Backend client interfaces.

The resilience layer depends only on these contracts: table CRUD returning
``QueryResult``, a cheap reachability ``ping``, the auth API and a realtime
change feed. ``RestBackendClient`` and ``RealtimeChangeFeed`` implement them
against a Supabase-compatible deployment; tests use an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from mindpal.backend.types import AuthEvent, ChangeEvent, Filter, QueryResult, Session

AuthListener = Callable[[AuthEvent, Session | None], None]
ChangeListener = Callable[[ChangeEvent], None]


class Subscription(Protocol):
    """Handle returned by a subscription; call ``unsubscribe`` to stop."""

    def unsubscribe(self) -> None: ...


class AuthClient(Protocol):
    """Auth API consumed by AuthService and SessionGuard."""

    async def sign_in_with_password(self, email: str, password: str) -> QueryResult[Session]: ...

    async def sign_up(self, email: str, password: str) -> QueryResult[Session]: ...

    async def sign_out(self) -> QueryResult[None]: ...

    async def get_session(self) -> QueryResult[Session]: ...

    def on_auth_state_change(self, listener: AuthListener) -> Subscription: ...


class ChangeFeed(Protocol):
    """Per-table, per-user-filtered realtime change feed."""

    async def subscribe(
        self,
        table: str,
        filter: Filter | None,
        listener: ChangeListener,
    ) -> Subscription: ...

    async def close(self) -> None: ...


class BackendClient(Protocol):
    """Table API plus the auth and realtime collaborators."""

    auth: AuthClient
    realtime: ChangeFeed | None

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
        maybe_single: bool = False,
    ) -> QueryResult[Any]: ...

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> QueryResult[list[dict[str, Any]]]: ...

    async def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        on_conflict: str,
    ) -> QueryResult[list[dict[str, Any]]]: ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Sequence[Filter],
    ) -> QueryResult[list[dict[str, Any]]]: ...

    async def delete(self, table: str, filters: Sequence[Filter]) -> QueryResult[None]: ...

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> QueryResult[Any]:
        """Call a database function and return its JSON result."""
        ...

    async def ping(self, timeout: float) -> int:
        """Issue a cheap request and return its HTTP status.

        Raises on network-level failure or timeout; any HTTP response,
        including 401, is returned as a status code.
        """
        ...

    def set_access_token(self, token: str | None) -> None: ...

    async def close(self) -> None: ...
