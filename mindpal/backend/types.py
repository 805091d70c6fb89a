"""Value types shared by backend clients and resource stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from mindpal.errors import BackendError

T = TypeVar("T")


class AuthEvent(Enum):
    """Auth state transitions reported by the auth API."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True)
class User:
    """Authenticated user as returned by the auth API."""

    id: str
    email: str | None = None


@dataclass(frozen=True)
class Session:
    """Opaque credential owned by the backend client.

    Resource stores never read the tokens; only the client and the auth
    service do.
    """

    access_token: str
    refresh_token: str | None
    user: User
    expires_at: int | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Session:
        """Build a session from a GoTrue token response."""
        user = payload.get("user") or {}
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            user=User(id=str(user.get("id", "")), email=user.get("email")),
            expires_at=payload.get("expires_at"),
        )

    def to_payload(self) -> dict[str, Any]:
        """Inverse of ``from_payload``, for persisting the session."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": {"id": self.user.id, "email": self.user.email},
        }


@dataclass(frozen=True)
class Filter:
    """A single column filter, rendered as ``column=op.value``.

    Attributes:
        column: Column name.
        op: PostgREST operator (eq, neq, gt, gte, lt, lte, is, in).
        value: Filter value; lists are rendered for ``in``.
    """

    column: str
    op: str
    value: Any

    def render(self) -> str:
        if self.op == "in":
            values = ",".join(str(v) for v in self.value)
            return f"in.({values})"
        if isinstance(self.value, bool):
            return f"{self.op}.{str(self.value).lower()}"
        if self.value is None:
            return f"{self.op}.null"
        return f"{self.op}.{self.value}"


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


@dataclass
class QueryResult(Generic[T]):
    """``(data, error)``-shaped result of a backend call.

    Exactly one of ``data`` and ``error`` is meaningful; ``data`` may be
    None for a successful ``maybe_single`` select that found no row.
    """

    data: T | None = None
    error: BackendError | None = None
    status: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return data or raise the backend error unchanged."""
        if self.error is not None:
            raise self.error
        return self.data


@dataclass(frozen=True)
class ChangeEvent:
    """A "something changed" notification from the realtime feed.

    Carries no diff; subscribers only use it as a trigger to re-fetch.
    """

    table: str
    event_type: str
    commit_timestamp: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
