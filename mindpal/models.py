"""Row models for the backend tables.

Rows returned by the table API validate into these models; unknown columns
are ignored so schema additions on the server do not break older clients.
Local state held by the stores is built only from validated models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["low", "medium", "high"]
MessageType = Literal["user", "ai"]
Theme = Literal["light", "dark", "auto"]
VoiceSpeed = Literal["slow", "normal", "fast"]
AIPersonality = Literal["supportive", "professional", "friendly", "motivational"]
NotificationType = Literal[
    "task_reminder",
    "mood_reminder",
    "daily_summary",
    "session_report",
    "system_alert",
    "achievement",
]
StressLevel = Literal["low", "medium", "high"]
OverallMood = Literal["positive", "negative", "neutral"]
ReportType = Literal["post_session", "weekly_summary", "monthly_analysis"]
SessionQuality = Literal["excellent", "good", "fair", "brief"]
EngagementLevel = Literal["high", "medium", "low"]


class Row(BaseModel):
    """Base for backend rows."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class Task(Row):
    """A to-do item (``tasks`` table)."""

    id: str
    title: str
    description: str | None = None
    completed: bool = False
    priority: Priority = "medium"
    category: str = "personal"
    due_date: datetime | None = None
    reminder_enabled: bool = False
    reminder_time: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MoodEntry(Row):
    """A mood log entry (``mood_entries`` table).

    ``mood`` and ``created_at`` never change after creation; only ``notes``
    may be edited.
    """

    id: str
    mood: int = Field(..., ge=1, le=10)
    emoji: str
    notes: str | None = None
    created_at: datetime


class ChatSession(Row):
    id: str
    title: str = "New Chat"
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChatMessage(Row):
    id: str
    session_id: str
    message_type: MessageType
    content: str
    created_at: datetime | None = None


class UserSettings(Row):
    """Per-user preferences (``user_settings`` table), with server defaults."""

    theme: Theme = "light"
    language: str = "en"
    voice_speed: VoiceSpeed = "normal"
    ai_personality: AIPersonality = "supportive"
    task_reminders: bool = True
    mood_reminders: bool = True
    daily_summary: bool = True
    email_notifications: bool = False
    data_sharing: bool = False
    analytics: bool = True
    voice_recordings: bool = True


class Notification(Row):
    id: str
    type: NotificationType
    title: str
    message: str
    scheduled_for: datetime
    sent: bool = False
    created_at: datetime | None = None
    data: dict[str, Any] | None = None


class NotificationSettings(Row):
    """Reminder preferences (``task_notification_settings`` table).

    Quiet hours are ``HH:MM`` strings; a start later than the end means the
    window spans midnight.
    """

    enabled: bool = True
    reminder_minutes: int = Field(default=30, ge=0)
    overdue_enabled: bool = True
    completion_reminders: bool = True
    email_notifications: bool = False
    quiet_hours_enabled: bool = True
    quiet_hours_start: str = Field(default="22:00", pattern=r"^\d{2}:\d{2}$")
    quiet_hours_end: str = Field(default="08:00", pattern=r"^\d{2}:\d{2}$")


class MoodAnalysis(Row):
    """Keyword-based mood report over a chat session."""

    overall_mood: OverallMood = "neutral"
    emotions: list[str] = Field(default_factory=list)
    stress_level: StressLevel = "low"
    recommendations: list[str] = Field(default_factory=list)
    summary: str = ""


class ReportData(Row):
    session_id: str = ""
    conversation_id: str | None = None
    duration_seconds: int = 0
    duration_formatted: str = ""
    started_at: datetime | None = None
    ended_at: datetime | None = None
    session_config: dict[str, Any] = Field(default_factory=dict)
    analytics_events: list[Any] = Field(default_factory=list)


class ReportInsights(Row):
    session_quality: SessionQuality = "brief"
    engagement_level: EngagementLevel = "low"
    technical_issues: int = 0
    interaction_count: int = 0


class ReportMoodAnalysis(Row):
    overall_sentiment: str = ""
    stress_indicators: str = ""
    engagement_quality: str = ""
    emotional_state: str = ""
    confidence_score: float = Field(default=0.0, ge=0, le=1)


class EngagementMetrics(Row):
    total_interactions: int = 0
    session_completion_rate: float = 0
    average_response_time: str = ""
    user_satisfaction_score: float = 0
    ai_response_quality: float = 0


class SessionReport(Row):
    """A generated video-session report (``session_reports`` table).

    Reports are computed server-side by ``generate_session_report``; the
    client only reads them.
    """

    id: str
    video_session_id: str | None = None
    report_type: ReportType = "post_session"
    report_data: ReportData = Field(default_factory=ReportData)
    insights: ReportInsights = Field(default_factory=ReportInsights)
    recommendations: list[str] = Field(default_factory=list)
    mood_analysis: ReportMoodAnalysis = Field(default_factory=ReportMoodAnalysis)
    engagement_metrics: EngagementMetrics = Field(default_factory=EngagementMetrics)
    generated_at: datetime
    created_at: datetime | None = None
