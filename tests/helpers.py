"""Shared test helpers and in-memory fakes."""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from mindpal.backend.types import AuthEvent, ChangeEvent, Filter, QueryResult, Session, User
from mindpal.errors import BackendError

# --- Sessions ---


def make_session(user_id: str = "user-1", token: str = "access-1") -> Session:
    return Session(
        access_token=token,
        refresh_token="refresh-1",
        user=User(id=user_id, email=f"{user_id}@example.com"),
    )


def jwt_expired() -> BackendError:
    return BackendError("JWT expired", status=401, backend_code="PGRST301")


def server_error(message: str = "upstream connect error") -> BackendError:
    return BackendError(message, status=503)


# --- Auth ---


class _Handle:
    def __init__(self, listeners: list, listener: Any) -> None:
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)


class FakeAuth:
    """Auth client double with scripted results."""

    def __init__(self) -> None:
        self.session: Session | None = None
        self.sign_in_result: QueryResult[Session] | None = None
        self.sign_up_result: QueryResult[Session] | None = None
        self.sign_out_error: BackendError | None = None
        self.sign_out_calls = 0
        self.sign_out_delay = 0.0
        self.listeners: list = []

    def on_auth_state_change(self, listener: Any) -> _Handle:
        self.listeners.append(listener)
        return _Handle(self.listeners, listener)

    def emit(self, event: AuthEvent, session: Session | None) -> None:
        self.session = session
        for listener in list(self.listeners):
            listener(event, session)

    async def sign_in_with_password(self, email: str, password: str) -> QueryResult[Session]:
        result = self.sign_in_result or QueryResult(data=make_session())
        if result.data is not None:
            self.emit(AuthEvent.SIGNED_IN, result.data)
        return result

    async def sign_up(self, email: str, password: str) -> QueryResult[Session]:
        result = self.sign_up_result or QueryResult(data=make_session())
        if result.data is not None:
            self.emit(AuthEvent.SIGNED_IN, result.data)
        return result

    async def sign_out(self) -> QueryResult[None]:
        self.sign_out_calls += 1
        await asyncio.sleep(self.sign_out_delay)
        self.emit(AuthEvent.SIGNED_OUT, None)
        return QueryResult(error=self.sign_out_error)

    async def get_session(self) -> QueryResult[Session]:
        return QueryResult(data=self.session)


# --- Realtime ---


class FakeSubscription:
    def __init__(self, feed: FakeChangeFeed, key: tuple[str, Filter | None], listener: Any) -> None:
        self._feed = feed
        self._key = key
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._feed.listeners[self._key].remove(self._listener)


class FakeChangeFeed:
    def __init__(self) -> None:
        self.listeners: dict[tuple[str, Filter | None], list] = defaultdict(list)
        self.closed = False

    async def subscribe(self, table: str, filter: Filter | None, listener: Any) -> FakeSubscription:
        key = (table, filter)
        self.listeners[key].append(listener)
        return FakeSubscription(self, key, listener)

    def push(self, table: str, event_type: str = "INSERT") -> None:
        for (name, _), listeners in list(self.listeners.items()):
            if name == table:
                for listener in list(listeners):
                    listener(ChangeEvent(table=table, event_type=event_type))

    async def close(self) -> None:
        self.closed = True


# --- Table API ---


def _matches(row: dict[str, Any], filters: Sequence[Filter]) -> bool:
    for f in filters:
        value = row.get(f.column)
        if f.op == "eq" and value != f.value:
            return False
        if f.op == "gte" and str(value) < str(f.value):
            return False
        if f.op == "lte" and str(value) > str(f.value):
            return False
    return True


class FakeBackend:
    """In-memory table API with a scripted error queue.

    Each queued error is consumed by the next table call, in order.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.errors: list[BackendError] = []
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0
        self.ping_status = 200
        self.ping_error: Exception | None = None
        self.ping_calls = 0
        self.rpc_handlers: dict[str, Callable[[dict[str, Any]], Any]] = {}
        self.rpc_params: list[tuple[str, dict[str, Any]]] = []
        self.access_token: str | None = "access-1"
        self.closed = False
        self.auth = FakeAuth()
        self.realtime: FakeChangeFeed | None = FakeChangeFeed()
        self._ids = itertools.count(1)

    def fail_next(self, *errors: BackendError) -> None:
        self.errors.extend(errors)

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables[table].extend(dict(row) for row in rows)

    def count(self, op: str, table: str | None = None) -> int:
        return sum(1 for c in self.calls if c[0] == op and (table is None or c[1] == table))

    async def _enter(self, op: str, table: str) -> BackendError | None:
        self.calls.append((op, table))
        await asyncio.sleep(self.delay)
        return self.errors.pop(0) if self.errors else None

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
        maybe_single: bool = False,
    ) -> QueryResult[Any]:
        error = await self._enter("select", table)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        rows = [dict(r) for r in self.tables[table] if _matches(r, filters)]
        if order:
            rows.sort(key=lambda r: str(r.get(order) or ""), reverse=not ascending)
        if maybe_single:
            return QueryResult(data=rows[0] if rows else None)
        if limit is not None:
            rows = rows[:limit]
        return QueryResult(data=rows)

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> QueryResult[list[dict[str, Any]]]:
        error = await self._enter("insert", table)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        created = []
        now = datetime.now(UTC).isoformat()
        for row in rows:
            stored = {"id": f"{table}-{next(self._ids)}", "created_at": now, "updated_at": now, **row}
            self.tables[table].append(stored)
            created.append(dict(stored))
        return QueryResult(data=created, status=201)

    async def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        on_conflict: str,
    ) -> QueryResult[list[dict[str, Any]]]:
        error = await self._enter("upsert", table)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        stored_rows = []
        for row in rows:
            existing = next(
                (r for r in self.tables[table] if r.get(on_conflict) == row.get(on_conflict)), None
            )
            if existing is None:
                existing = {"id": f"{table}-{next(self._ids)}"}
                self.tables[table].append(existing)
            existing.update(row)
            stored_rows.append(dict(existing))
        return QueryResult(data=stored_rows, status=201)

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Sequence[Filter],
    ) -> QueryResult[list[dict[str, Any]]]:
        error = await self._enter("update", table)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        updated = []
        for row in self.tables[table]:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return QueryResult(data=updated)

    async def delete(self, table: str, filters: Sequence[Filter]) -> QueryResult[None]:
        error = await self._enter("delete", table)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        self.tables[table] = [r for r in self.tables[table] if not _matches(r, filters)]
        return QueryResult(status=204)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> QueryResult[Any]:
        error = await self._enter("rpc", function)
        if error is not None:
            return QueryResult(error=error, status=error.status)
        self.rpc_params.append((function, dict(params or {})))
        handler = self.rpc_handlers.get(function)
        return QueryResult(data=handler(params or {}) if handler else None)

    async def ping(self, timeout: float) -> int:
        self.ping_calls += 1
        await asyncio.sleep(self.delay)
        if self.ping_error is not None:
            raise self.ping_error
        return self.ping_status

    def set_access_token(self, token: str | None) -> None:
        self.access_token = token

    async def close(self) -> None:
        self.closed = True
