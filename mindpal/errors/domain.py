"""Domain error classes for connectivity, auth, backend and validation failures."""

from __future__ import annotations

from typing import Any

from mindpal.errors.base import ErrorCode, MindpalError

# Connectivity Errors


class ConnectivityError(MindpalError):
    """Raised when the network or the backend is not reachable.

    Reported to users as "offline", distinct from generic failures.
    """

    default_message = "No connection to server"
    default_code = ErrorCode.NET_UNREACHABLE

    def __init__(
        self,
        message: str | None = None,
        *,
        operation: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, code=code, details=details, cause=cause)


# Auth Errors


class AuthError(MindpalError):
    """Raised for sign-in, sign-up and missing-session failures."""

    default_message = "Authentication failed"
    default_code = ErrorCode.AUTH_FAILED


class SessionExpiredError(AuthError):
    """Raised where a caller needs an exception for an expired session."""

    default_message = "Your session has expired. Please sign in again."
    default_code = ErrorCode.AUTH_EXPIRED


# Backend Errors


class BackendError(MindpalError):
    """Error returned by the backend table or auth API.

    Mirrors the backend's error object: a message plus the optional HTTP
    status, backend error code (e.g. ``PGRST301``), details and hint.
    """

    default_message = "Backend request failed"
    default_code = ErrorCode.BKD_REQUEST_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        status: int | None = None,
        backend_code: str | None = None,
        hint: str | None = None,
        body: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if status is not None:
            details["status"] = status
            if code is None and status in (401, 403):
                code = ErrorCode.BKD_PERMISSION_DENIED
            elif code is None and status == 404:
                code = ErrorCode.BKD_NOT_FOUND
        if backend_code:
            details["backend_code"] = backend_code
        if hint:
            details["hint"] = hint
        self.status = status
        self.backend_code = backend_code
        self.hint = hint
        self.body = body
        super().__init__(message, code=code, details=details, cause=cause)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], status: int | None = None) -> BackendError:
        """Build an error from a PostgREST/GoTrue JSON error body."""
        message = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or payload.get("error")
            or "Backend request failed"
        )
        backend_code = payload.get("code") or payload.get("error_code")
        return cls(
            str(message),
            status=status,
            backend_code=str(backend_code) if backend_code is not None else None,
            hint=payload.get("hint"),
            body=str(payload),
        )


# Operation Errors


class OperationError(MindpalError):
    """Raised when an ordinary operation fails after its retry budget."""

    default_message = "Something went wrong"
    default_code = ErrorCode.OP_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        resource: str | None = None,
        action: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, code=code, details=details, cause=cause)


# Validation Errors


class ValidationError(MindpalError):
    """Raised for local input validation failures.

    Never sent remotely and never retried.
    """

    default_message = "Validation error"
    default_code = ErrorCode.VAL_INVALID_INPUT

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]
        super().__init__(message, code=code, details=details, cause=cause)


# External Service Errors


class ServiceError(MindpalError):
    """Raised when a generative-text, speech or translation call fails."""

    default_message = "External service request failed"
    default_code = ErrorCode.SVC_REQUEST_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        service: str | None = None,
        status: int | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if service:
            details["service"] = service
        if status is not None:
            details["status"] = status
        self.status = status
        super().__init__(message, code=code, details=details, cause=cause)
