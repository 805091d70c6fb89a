"""Persistence for the signed-in session.

``RestAuthClient`` keeps the session in memory; give it a storage to
survive restarts. The file holds the refresh token, so it is written
atomically with owner-only permissions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from mindpal.backend.types import Session
from mindpal.utils.atomic_write import atomic_write_text

logger = logging.getLogger(__name__)

SESSION_PATH = Path.home() / ".mindpal" / "session.json"


class SessionStorage(Protocol):
    def load(self) -> Session | None: ...

    def save(self, session: Session) -> None: ...

    def clear(self) -> None: ...


class FileSessionStorage:
    """Session stored as JSON in a single file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or SESSION_PATH

    def load(self) -> Session | None:
        """Read the stored session; a missing or unreadable file yields None."""
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return Session.from_payload(payload)
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring invalid session file {self.path}: {e}")
        except OSError as e:
            logger.warning(f"Cannot read session file {self.path}: {e}")
        return None

    def save(self, session: Session) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_text(self.path, json.dumps(session.to_payload()), mode=0o600)
        except OSError as e:
            logger.warning(f"Cannot persist session to {self.path}: {e}")

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Cannot remove session file {self.path}: {e}")
