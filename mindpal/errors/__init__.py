"""Unified exception hierarchy for MindPal.

Exception Hierarchy:
    MindpalError (base)
    +-- ConfigurationError - Backend credentials missing or malformed
    +-- ConnectivityError - Offline or backend unreachable
    +-- AuthError - Sign-in/sign-up failures
    |   +-- SessionExpiredError - Session expired, user must sign in again
    +-- BackendError - Error object returned by the backend API
    +-- OperationError - Ordinary failure after retries
    +-- ValidationError - Local input validation failures
    +-- ServiceError - Generative-text, speech or translation failures

Usage:
    from mindpal.errors import ConnectivityError, ValidationError

    try:
        await tasks.create("Write journal")
    except ConnectivityError as e:
        logger.info("Offline: %s (code: %s)", e.message, e.code)
"""

from mindpal.errors.base import (
    ConfigurationError,
    ErrorCode,
    MindpalError,
)
from mindpal.errors.domain import (
    AuthError,
    BackendError,
    ConnectivityError,
    OperationError,
    ServiceError,
    SessionExpiredError,
    ValidationError,
)
from mindpal.errors.factories import (
    config_missing,
    offline,
    validation_choice,
    validation_out_of_range,
    validation_required,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Base exception
    "MindpalError",
    "ConfigurationError",
    # Domain errors
    "AuthError",
    "BackendError",
    "ConnectivityError",
    "OperationError",
    "ServiceError",
    "SessionExpiredError",
    "ValidationError",
    # Convenience functions
    "config_missing",
    "offline",
    "validation_choice",
    "validation_out_of_range",
    "validation_required",
]
