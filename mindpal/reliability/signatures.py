"""Error signature matching shared by the retry and session layers.

Backend failures arrive as ``BackendError`` instances, but third-party
exceptions (``requests.HTTPError``) and plain mappings such as
``{"status": 401, "message": "JWT expired"}`` are accepted too. Every check
here is a pure function of the error.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mindpal.errors import (
    ConfigurationError,
    ConnectivityError,
    ErrorCode,
    SessionExpiredError,
    ValidationError,
)

AUTH_STATUSES = frozenset({401, 403})

# Message fragments that mark an auth/permission failure; never retried.
NON_RETRYABLE_FRAGMENTS = ("jwt", "refresh_token", "401", "403")

# Backend code returned when a request runs after the session expired.
EXPIRED_SESSION_CODE = "PGRST301"
REFRESH_TOKEN_NOT_FOUND = "refresh_token_not_found"

TOKEN_FRAGMENTS = ("jwt", "token")


def _field(error: Any, name: str) -> Any:
    if isinstance(error, Mapping):
        return error.get(name)
    return getattr(error, name, None)


def error_status(error: Any) -> int | None:
    """HTTP status attached to an error, if any."""
    for name in ("status", "status_code"):
        value = _field(error, name)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = _field(error, "response")
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def error_code(error: Any) -> str | None:
    """Backend error code (e.g. ``PGRST301``), ignoring MindPal's own codes."""
    value = _field(error, "backend_code")
    if value:
        return str(value)
    value = _field(error, "code")
    if isinstance(value, ErrorCode):
        return None
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    return None


def error_message(error: Any) -> str:
    value = _field(error, "message")
    if isinstance(value, str) and value:
        return value
    if isinstance(error, Mapping):
        return str(error.get("msg") or error.get("error") or "")
    return str(error)


def error_body(error: Any) -> str:
    value = _field(error, "body")
    return value if isinstance(value, str) else ""


def is_retryable(error: Any) -> bool:
    """Whether a failed attempt may be retried.

    Auth and permission failures (HTTP 401/403, JWT or refresh-token
    messages) propagate on first occurrence, as do local validation,
    configuration and connectivity-gate errors.
    """
    if isinstance(error, (ValidationError, ConfigurationError, ConnectivityError, SessionExpiredError)):
        return False
    if error_status(error) in AUTH_STATUSES:
        return False
    message = error_message(error).lower()
    return not any(fragment in message for fragment in NON_RETRYABLE_FRAGMENTS)


def is_auth_expiry(error: Any) -> bool:
    """Whether an error means the session has expired or become invalid.

    Matches, case-insensitively:
    - a message containing "JWT expired";
    - the backend code ``PGRST301``;
    - HTTP 401 together with a JWT/token-related message or body;
    - "refresh_token_not_found" in the message or as the code.
    """
    if error is None:
        return False
    if isinstance(error, SessionExpiredError):
        return True

    message = error_message(error).lower()
    code = (error_code(error) or "").lower()

    if "jwt expired" in message:
        return True
    if code == EXPIRED_SESSION_CODE.lower():
        return True
    if REFRESH_TOKEN_NOT_FOUND in message or code == REFRESH_TOKEN_NOT_FOUND:
        return True
    if error_status(error) == 401:
        text = f"{message} {error_body(error).lower()}"
        return any(fragment in text for fragment in TOKEN_FRAGMENTS)
    return False
