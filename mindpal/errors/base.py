"""Base error classes and error codes for MindPal.

Contains ErrorCode enum, MindpalError base class, and ConfigurationError.
All MindPal-specific exceptions inherit from MindpalError.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standard error codes for MindPal errors.

    These codes identify the error category programmatically and are
    included in ``to_dict()`` payloads handed to the UI layer.
    """

    # Configuration errors (CFG_*)
    CFG_INVALID = "CFG_INVALID"
    CFG_MISSING = "CFG_MISSING"

    # Connectivity errors (NET_*)
    NET_OFFLINE = "NET_OFFLINE"
    NET_UNREACHABLE = "NET_UNREACHABLE"
    NET_TIMEOUT = "NET_TIMEOUT"

    # Auth errors (AUTH_*)
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_FAILED = "AUTH_FAILED"

    # Backend errors (BKD_*)
    BKD_REQUEST_FAILED = "BKD_REQUEST_FAILED"
    BKD_NOT_FOUND = "BKD_NOT_FOUND"
    BKD_PERMISSION_DENIED = "BKD_PERMISSION_DENIED"

    # Operation errors (OP_*)
    OP_FAILED = "OP_FAILED"

    # Validation errors (VAL_*)
    VAL_INVALID_INPUT = "VAL_INVALID_INPUT"
    VAL_MISSING_REQUIRED = "VAL_MISSING_REQUIRED"
    VAL_OUT_OF_RANGE = "VAL_OUT_OF_RANGE"

    # External service errors (SVC_*)
    SVC_REQUEST_FAILED = "SVC_REQUEST_FAILED"

    # Generic errors
    UNKNOWN = "UNKNOWN"


class MindpalError(Exception):
    """Base exception for all MindPal errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code from ErrorCode enum.
        details: Optional additional context about the error.
        cause: Optional original exception that caused this error.
    """

    default_message: str = "An error occurred"
    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        self.cause = cause

        super().__init__(self.message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        parts = [f"{self.__class__.__name__}({self.message!r}"]
        if self.code != self.default_code:
            parts.append(f", code={self.code.value!r}")
        if self.details:
            parts.append(f", details={self.details!r}")
        if self.cause:
            parts.append(f", cause={self.cause!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for UI-facing handlers."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Configuration Errors


class ConfigurationError(MindpalError):
    """Raised when backend credentials are missing or malformed."""

    default_message = "Configuration error"
    default_code = ErrorCode.CFG_INVALID

    def __init__(
        self,
        message: str | None = None,
        *,
        config_key: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, code=code, details=details, cause=cause)
