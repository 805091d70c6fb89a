"""Convenience factory functions for common error scenarios."""

from __future__ import annotations

from typing import Any

from mindpal.errors.base import ConfigurationError, ErrorCode
from mindpal.errors.domain import ConnectivityError, ValidationError


def config_missing(config_key: str) -> ConfigurationError:
    """Create a ConfigurationError for a missing environment value."""
    return ConfigurationError(
        f"Missing required configuration: {config_key}",
        config_key=config_key,
        code=ErrorCode.CFG_MISSING,
    )


def offline(operation: str | None = None) -> ConnectivityError:
    """Create a ConnectivityError for a write attempted while offline."""
    suffix = f" - cannot {operation}" if operation else ""
    return ConnectivityError(
        f"No connection to server{suffix}",
        operation=operation,
        code=ErrorCode.NET_OFFLINE,
    )


def validation_required(field: str) -> ValidationError:
    """Create a ValidationError for a missing required field."""
    return ValidationError(
        f"Required field missing: {field}",
        field=field,
        code=ErrorCode.VAL_MISSING_REQUIRED,
    )


def validation_out_of_range(field: str, value: Any, low: Any, high: Any) -> ValidationError:
    """Create a ValidationError for a value outside its allowed range."""
    return ValidationError(
        f"{field} must be between {low} and {high}, got {value}",
        field=field,
        value=value,
        code=ErrorCode.VAL_OUT_OF_RANGE,
        details={"min": low, "max": high},
    )


def validation_choice(field: str, value: Any, choices: tuple[str, ...]) -> ValidationError:
    """Create a ValidationError for a value outside an enumerated set."""
    return ValidationError(
        f"Invalid {field}: {value!r} (expected one of {', '.join(choices)})",
        field=field,
        value=value,
        details={"choices": list(choices)},
    )
