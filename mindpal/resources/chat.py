"""Chat session store and keyword mood analysis."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any

from mindpal.backend.types import eq
from mindpal.errors import validation_choice, validation_required
from mindpal.models import ChatMessage, ChatSession, MoodAnalysis
from mindpal.notify import NoticeLevel
from mindpal.resources.base import RemoteResource, ResourceContext, first_row

logger = logging.getLogger(__name__)

SESSION_LIMIT = 20
MESSAGE_TYPES = ("user", "ai")

POSITIVE_WORDS = frozenset(
    {"happy", "good", "great", "excellent", "wonderful", "amazing", "love", "joy", "excited"}
)
NEGATIVE_WORDS = frozenset(
    {"sad", "bad", "terrible", "awful", "hate", "angry", "depressed", "worried", "anxious"}
)
STRESS_WORDS = frozenset({"stress", "pressure", "overwhelmed", "busy", "tired", "exhausted", "deadline"})


def analyze_mood_from_text(text: str) -> MoodAnalysis:
    """Keyword-count mood analysis of free text.

    Words are whitespace-separated and compared lowercase, so punctuation
    attached to a word prevents a match.
    """
    words = re.split(r"\s+", text.lower())
    positive = sum(word in POSITIVE_WORDS for word in words)
    negative = sum(word in NEGATIVE_WORDS for word in words)
    stress = sum(word in STRESS_WORDS for word in words)

    if positive > negative:
        overall = "positive"
    elif negative > positive:
        overall = "negative"
    else:
        overall = "neutral"

    emotions: list[str] = []
    if positive:
        emotions += ["happiness", "contentment"]
    if negative:
        emotions += ["sadness", "frustration"]
    if stress:
        emotions += ["stress", "anxiety"]

    stress_level = "high" if stress > 3 else "medium" if stress > 1 else "low"

    recommendations: list[str] = []
    if overall == "negative":
        recommendations += [
            "Consider practicing mindfulness or meditation",
            "Reach out to friends or family for support",
        ]
    if stress_level == "high":
        recommendations += [
            "Take regular breaks throughout your day",
            "Try deep breathing exercises",
        ]

    summary = (
        f"Based on your conversation, you seem to be feeling {overall} "
        f"with a {stress_level} stress level."
    )
    if emotions:
        summary += f" Main emotions detected: {', '.join(emotions)}."

    return MoodAnalysis(
        overall_mood=overall,
        emotions=emotions,
        stress_level=stress_level,
        recommendations=recommendations,
        summary=summary,
    )


def default_title(today: date | None = None) -> str:
    today = today or date.today()
    return f"Chat {today.month}/{today.day}/{today.year}"


class ChatStore(RemoteResource):
    """Chat sessions, the selected session and its messages."""

    table = "chat_sessions"
    messages_table = "chat_messages"
    analytics_table = "mood_analytics"

    def __init__(self, context: ResourceContext) -> None:
        super().__init__(context)
        self.sessions: tuple[ChatSession, ...] = ()
        self.current_session: ChatSession | None = None
        self.messages: tuple[ChatMessage, ...] = ()

    def reset(self) -> None:
        self.sessions = ()
        self.current_session = None
        self.messages = ()

    def select_session(self, session: ChatSession | None) -> None:
        previous = self.current_session
        self.current_session = session
        if session is None or previous is None or previous.id != session.id:
            self.messages = ()

    async def load_sessions(self) -> bool:
        """Load the most recently updated sessions."""
        user = self.user

        async def fetch():
            return await self._client.select(
                self.table,
                filters=[eq("user_id", user.id)],
                order="updated_at",
                ascending=False,
                limit=SESSION_LIMIT,
            )

        def apply(rows: Any) -> None:
            self.sessions = tuple(ChatSession.model_validate(row) for row in rows or [])

        return await self._load("load", fetch, apply, error_message="Failed to load chat sessions")

    async def load_messages(self, session_id: str) -> bool:
        """Load messages of the selected session.

        Rows arriving after another session was selected are dropped.
        """
        user = self.user

        async def fetch():
            return await self._client.select(
                self.messages_table,
                filters=[eq("session_id", session_id), eq("user_id", user.id)],
                order="created_at",
                ascending=True,
            )

        def apply(rows: Any) -> bool:
            if self.current_session is None or self.current_session.id != session_id:
                logger.debug("Dropping messages for %s; selection changed", session_id)
                return False
            self.messages = tuple(ChatMessage.model_validate(row) for row in rows or [])
            return True

        return await self._load(
            f"load_messages:{session_id}", fetch, apply, error_message="Failed to load messages"
        )

    async def create_session(self, title: str | None = None) -> ChatSession | None:
        user = self._require_user()
        row = {"user_id": user.id, "title": (title or "").strip() or default_title()}
        ok, data = await self._write(
            "create",
            lambda: self._client.insert(self.table, [row]),
            success_message="New chat session created!",
            error_message="Failed to create new session",
        )
        created = first_row(data) if ok else None
        if created is None:
            return None
        session = ChatSession.model_validate(created)
        if self._owns(user.id):
            self.sessions = (session, *self.sessions)
            self.current_session = session
            self.messages = ()
        return session

    async def add_message(self, session_id: str, message_type: str, content: str) -> ChatMessage | None:
        if message_type not in MESSAGE_TYPES:
            raise validation_choice("message_type", message_type, MESSAGE_TYPES)
        if not content.strip():
            raise validation_required("content")
        user = self._require_user()

        row = {
            "session_id": session_id,
            "user_id": user.id,
            "message_type": message_type,
            "content": content,
        }
        ok, data = await self._write(
            "add_message",
            lambda: self._client.insert(self.messages_table, [row]),
            error_message="Failed to save message",
        )
        created = first_row(data) if ok else None
        if created is None:
            return None
        message = ChatMessage.model_validate(created)
        if self._owns(user.id) and self.current_session is not None and self.current_session.id == session_id:
            self.messages = (*self.messages, message)
        return message

    async def delete_session(self, session_id: str) -> bool:
        user = self._require_user()
        ok, _ = await self._write(
            "delete",
            lambda: self._client.delete(self.table, [eq("id", session_id), eq("user_id", user.id)]),
            success_message="Chat session deleted",
            error_message="Failed to delete session",
        )
        if ok and self._owns(user.id):
            self.sessions = tuple(s for s in self.sessions if s.id != session_id)
            if self.current_session is not None and self.current_session.id == session_id:
                self.select_session(None)
        return ok

    async def update_session_title(self, session_id: str, title: str) -> bool:
        title = title.strip()
        if not title:
            raise validation_required("title")
        user = self._require_user()

        ok, _ = await self._write(
            "update",
            lambda: self._client.update(
                self.table,
                {"title": title, "updated_at": datetime.now().astimezone().isoformat()},
                [eq("id", session_id), eq("user_id", user.id)],
            ),
            success_message="Session title updated",
            error_message="Failed to update title",
        )
        if ok and self._owns(user.id):
            self.sessions = tuple(
                s.model_copy(update={"title": title}) if s.id == session_id else s for s in self.sessions
            )
            if self.current_session is not None and self.current_session.id == session_id:
                self.current_session = self.current_session.model_copy(update={"title": title})
        return ok

    async def generate_mood_report(self, session_id: str) -> MoodAnalysis | None:
        """Analyse the user's messages in a session and store the report.

        Fetching the messages and storing the report form one action with
        a single error notice.
        """
        user = self._require_user()
        self._ctx.monitor.require_connection("generate report")

        try:
            rows = await self._attempt(
                "report.fetch",
                lambda: self._client.select(
                    self.messages_table,
                    columns="content,message_type",
                    filters=[eq("session_id", session_id), eq("user_id", user.id)],
                ),
            )
            text = " ".join(row["content"] for row in rows or [] if row.get("message_type") == "user")
            analysis = analyze_mood_from_text(text)
            await self._attempt(
                "report.store",
                lambda: self._client.insert(
                    self.analytics_table,
                    [
                        {
                            "user_id": user.id,
                            "session_id": session_id,
                            "analysis_type": "mood_report",
                            "analysis_data": analysis.model_dump(),
                        }
                    ],
                ),
            )
        except Exception as e:
            await self._handle_failure("report", e, "Failed to generate mood report")
            return None

        self._notify(NoticeLevel.SUCCESS, "Mood report generated!")
        return analysis
