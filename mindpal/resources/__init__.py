"""Per-resource stores composing connectivity, retry and session handling."""

from mindpal.resources.base import RemoteResource, ResourceContext
from mindpal.resources.chat import ChatStore, analyze_mood_from_text
from mindpal.resources.encrypted import EncryptedDataStore
from mindpal.resources.mood import MoodStore
from mindpal.resources.notifications import NotificationStore, is_quiet_time
from mindpal.resources.reports import SessionReportStore, export_report
from mindpal.resources.settings import SettingsStore
from mindpal.resources.tasks import TaskStore

__all__ = [
    "ChatStore",
    "EncryptedDataStore",
    "MoodStore",
    "NotificationStore",
    "RemoteResource",
    "ResourceContext",
    "SessionReportStore",
    "SettingsStore",
    "TaskStore",
    "analyze_mood_from_text",
    "export_report",
    "is_quiet_time",
]
