"""Utility modules for MindPal."""

from mindpal.utils.async_utils import log_task_exception, run_in_thread, spawn, task_callback
from mindpal.utils.atomic_write import atomic_write_text

__all__ = [
    "atomic_write_text",
    "log_task_exception",
    "run_in_thread",
    "spawn",
    "task_callback",
]
