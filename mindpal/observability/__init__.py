"""Observability helpers for MindPal (structured logging and timing)."""

from mindpal.observability.logging import (
    StructuredFormatter,
    configure_structured_logging,
    log_event,
    timed_operation,
)

__all__ = [
    "StructuredFormatter",
    "configure_structured_logging",
    "log_event",
    "timed_operation",
]
