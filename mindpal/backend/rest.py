"""HTTP backend client for a Supabase-compatible deployment.

Table calls go to the PostgREST API under ``/rest/v1`` and auth calls to the
GoTrue API under ``/auth/v1``. Requests are issued with ``requests`` on a
worker thread so the event loop never blocks. Nothing here retries: the
retry policy belongs to ``mindpal.reliability.retry``.

Example:
    >>> client = RestBackendClient(require_configured())
    >>> result = await client.select("tasks", filters=[eq("user_id", uid)])
    >>> rows = result.unwrap()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mindpal.backend.client import AuthListener, ChangeFeed
from mindpal.backend.storage import SessionStorage
from mindpal.backend.types import AuthEvent, Filter, QueryResult, Session
from mindpal.config import BackendSettings
from mindpal.errors import BackendError
from mindpal.utils.async_utils import run_in_thread

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (5.0, 30.0)  # (connect, read)


def _create_session(settings: BackendSettings) -> requests.Session:
    """Create a configured requests session with retries disabled."""
    session = requests.Session()

    # Retries are handled by the caller's retry policy
    adapter = HTTPAdapter(max_retries=Retry(total=0))
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update(
        {
            "apikey": settings.anon_key,
            "X-Client-Info": settings.client_info,
            "Accept": "application/json",
        }
    )
    return session


def _error_from_response(response: requests.Response) -> BackendError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        return BackendError.from_payload(payload, status=response.status_code)
    return BackendError(
        response.text or f"HTTP {response.status_code}",
        status=response.status_code,
        body=response.text,
    )


def _parse_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class _ListenerHandle:
    def __init__(self, listeners: list[AuthListener], listener: AuthListener) -> None:
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)


class RestAuthClient:
    """GoTrue auth API client.

    Keeps the current session in memory and pushes the access token into
    the owning ``RestBackendClient`` so table calls run as the user. With a
    ``storage`` the session is also saved on every change and restored by
    the first ``get_session`` call.
    """

    def __init__(self, owner: RestBackendClient, storage: SessionStorage | None = None) -> None:
        self._owner = owner
        self._storage = storage
        self._restored = storage is None
        self._session: Session | None = None
        self._listeners: list[AuthListener] = []

    @property
    def current_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> _ListenerHandle:
        self._listeners.append(listener)
        return _ListenerHandle(self._listeners, listener)

    def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed for %s", event.value)

    def _set_session(self, session: Session | None, event: AuthEvent) -> None:
        self._session = session
        self._restored = True
        self._owner.set_access_token(session.access_token if session else None)
        if self._storage is not None:
            if session is None:
                self._storage.clear()
            else:
                self._storage.save(session)
        self._emit(event, session)

    async def _token_request(self, grant_type: str, body: dict[str, Any]) -> QueryResult[Session]:
        result = await self._owner._request(
            "POST",
            f"{self._owner.settings.auth_url}/token",
            params={"grant_type": grant_type},
            json=body,
        )
        if result.error is not None:
            return QueryResult(error=result.error, status=result.status)
        return QueryResult(data=Session.from_payload(result.data), status=result.status)

    async def sign_in_with_password(self, email: str, password: str) -> QueryResult[Session]:
        result = await self._token_request("password", {"email": email, "password": password})
        if result.data is not None:
            self._set_session(result.data, AuthEvent.SIGNED_IN)
        return result

    async def sign_up(self, email: str, password: str) -> QueryResult[Session]:
        result = await self._owner._request(
            "POST",
            f"{self._owner.settings.auth_url}/signup",
            json={"email": email, "password": password},
        )
        if result.error is not None:
            return QueryResult(error=result.error, status=result.status)
        payload = result.data or {}
        # Projects with email confirmation return a user without a session
        if "access_token" not in payload:
            return QueryResult(data=None, status=result.status)
        session = Session.from_payload(payload)
        self._set_session(session, AuthEvent.SIGNED_IN)
        return QueryResult(data=session, status=result.status)

    async def sign_out(self) -> QueryResult[None]:
        result: QueryResult[Any] = QueryResult()
        if self._session is not None:
            result = await self._owner._request(
                "POST",
                f"{self._owner.settings.auth_url}/logout",
            )
        # Local state is authoritative even when the remote call fails
        self._set_session(None, AuthEvent.SIGNED_OUT)
        return QueryResult(error=result.error, status=result.status)

    async def get_session(self) -> QueryResult[Session]:
        if not self._restored:
            self._restored = True
            stored = await run_in_thread(self._storage.load)
            if stored is not None:
                logger.debug("Restored stored session for user %s", stored.user.id)
                self._session = stored
                self._owner.set_access_token(stored.access_token)
        session = self._session
        if session is None:
            return QueryResult(data=None)
        expired = session.expires_at is not None and session.expires_at <= int(time.time()) + 10
        if not expired or not session.refresh_token:
            return QueryResult(data=session)
        result = await self._token_request(
            "refresh_token", {"refresh_token": session.refresh_token}
        )
        if result.data is not None:
            self._set_session(result.data, AuthEvent.TOKEN_REFRESHED)
        return result


class RestBackendClient:
    """Backend client over PostgREST and GoTrue HTTP APIs.

    Every call returns a ``QueryResult``; network-level failures become a
    ``BackendError`` without a status so retry classification still works.
    """

    def __init__(
        self,
        settings: BackendSettings,
        session: requests.Session | None = None,
        realtime: ChangeFeed | None = None,
        timeout: tuple[float, float] = DEFAULT_TIMEOUT,
        session_storage: SessionStorage | None = None,
    ) -> None:
        self.settings = settings
        self._http = session or _create_session(settings)
        self._timeout = timeout
        self._access_token: str | None = None
        self.auth = RestAuthClient(self, session_storage)
        self.realtime = realtime

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token
        if self.realtime is not None and hasattr(self.realtime, "set_access_token"):
            self.realtime.set_access_token(token)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._access_token or self.settings.anon_key}"}
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return self._http.request(method=method, url=url, timeout=self._timeout, **kwargs)

    async def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> QueryResult[Any]:
        try:
            response = await run_in_thread(
                self._send, method, url, headers=self._headers(headers), **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.debug("%s %s failed at network level: %s", method, url, e)
            return QueryResult(error=BackendError(f"Failed to fetch: {e}", cause=e))

        if response.status_code >= 400:
            return QueryResult(error=_error_from_response(response), status=response.status_code)
        return QueryResult(data=_parse_body(response), status=response.status_code)

    def _table_url(self, table: str) -> str:
        return f"{self.settings.rest_url}/{table}"

    @staticmethod
    def _filter_params(filters: Sequence[Filter]) -> list[tuple[str, str]]:
        return [(f.column, f.render()) for f in filters]

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
        params = [("select", columns), *self._filter_params(filters)]
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if maybe_single:
            limit = 1
        if limit is not None:
            params.append(("limit", str(limit)))

        result = await self._request("GET", self._table_url(table), params=params)
        if result.error is None and maybe_single:
            rows = result.data or []
            result.data = rows[0] if rows else None
        return result

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> QueryResult[list[dict[str, Any]]]:
        return await self._request(
            "POST",
            self._table_url(table),
            headers={"Prefer": "return=representation"},
            json=rows,
        )

    async def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        on_conflict: str,
    ) -> QueryResult[list[dict[str, Any]]]:
        return await self._request(
            "POST",
            self._table_url(table),
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            params={"on_conflict": on_conflict},
            json=rows,
        )

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Sequence[Filter],
    ) -> QueryResult[list[dict[str, Any]]]:
        return await self._request(
            "PATCH",
            self._table_url(table),
            headers={"Prefer": "return=representation"},
            params=self._filter_params(filters),
            json=values,
        )

    async def delete(self, table: str, filters: Sequence[Filter]) -> QueryResult[None]:
        result = await self._request(
            "DELETE",
            self._table_url(table),
            params=self._filter_params(filters),
        )
        return QueryResult(error=result.error, status=result.status)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> QueryResult[Any]:
        return await self._request(
            "POST",
            f"{self.settings.rest_url}/rpc/{function}",
            json=params or {},
        )

    async def ping(self, timeout: float) -> int:
        """Hit the auth health endpoint and return the status code.

        Network errors and timeouts propagate to the caller.
        """
        response = await run_in_thread(
            self._http.get,
            f"{self.settings.auth_url}/health",
            headers=self._headers(),
            timeout=timeout,
        )
        return response.status_code

    async def close(self) -> None:
        if self.realtime is not None:
            await self.realtime.close()
        self._http.close()
