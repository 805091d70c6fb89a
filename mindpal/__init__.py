"""MindPal - wellness companion client.

Task, mood and chat stores over a hosted backend, with connectivity
monitoring, retry with backoff and session-expiry handling.
"""

from mindpal.app import MindpalApp
from mindpal.streaks import calculate_streak

__version__ = "1.0.0"

__all__ = [
    "MindpalApp",
    "calculate_streak",
]
