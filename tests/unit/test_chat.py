"""Tests for chat sessions and keyword mood analysis."""

import asyncio
from datetime import date

import pytest

from mindpal.errors import ConnectivityError, ValidationError
from mindpal.models import ChatSession
from mindpal.notify import NoticeLevel
from mindpal.resources.chat import ChatStore, analyze_mood_from_text, default_title
from tests.helpers import server_error


@pytest.fixture
def store(context):
    return ChatStore(context)


def session_row(session_id, updated_at, title="Chat"):
    return {"id": session_id, "user_id": "user-1", "title": title, "updated_at": updated_at}


class TestAnalyzeMood:
    def test_positive_text(self):
        analysis = analyze_mood_from_text("I feel happy and great today")

        assert analysis.overall_mood == "positive"
        assert analysis.emotions == ["happiness", "contentment"]
        assert analysis.stress_level == "low"
        assert analysis.recommendations == []

    def test_negative_text_gets_recommendations(self):
        analysis = analyze_mood_from_text("so sad and worried")

        assert analysis.overall_mood == "negative"
        assert "Reach out to friends or family for support" in analysis.recommendations

    def test_stress_levels(self):
        assert analyze_mood_from_text("busy tired").stress_level == "medium"
        high = analyze_mood_from_text("stress pressure deadline busy tired")
        assert high.stress_level == "high"
        assert "Try deep breathing exercises" in high.recommendations

    def test_empty_text_is_neutral(self):
        analysis = analyze_mood_from_text("")

        assert analysis.overall_mood == "neutral"
        assert analysis.emotions == []
        assert analysis.summary == (
            "Based on your conversation, you seem to be feeling neutral with a low stress level."
        )

    def test_punctuation_prevents_match(self):
        assert analyze_mood_from_text("happy!").overall_mood == "neutral"

    def test_summary_lists_emotions(self):
        analysis = analyze_mood_from_text("happy but anxious")
        assert analysis.summary.endswith(
            "Main emotions detected: happiness, contentment, sadness, frustration."
        )


def test_default_title():
    assert default_title(date(2024, 3, 7)) == "Chat 3/7/2024"


class TestSessions:
    @pytest.mark.asyncio
    async def test_load_sessions_most_recent_first(self, store, backend):
        backend.seed(
            "chat_sessions",
            session_row("s1", "2024-01-01T00:00:00+00:00"),
            session_row("s2", "2024-01-05T00:00:00+00:00"),
        )

        assert await store.load_sessions() is True
        assert [s.id for s in store.sessions] == ["s2", "s1"]

    @pytest.mark.asyncio
    async def test_load_sessions_limited_to_twenty(self, store, backend):
        backend.seed(
            "chat_sessions",
            *(session_row(f"s{i}", f"2024-01-{i:02d}T00:00:00+00:00") for i in range(1, 26)),
        )

        await store.load_sessions()

        assert len(store.sessions) == 20
        assert store.sessions[0].id == "s25"

    @pytest.mark.asyncio
    async def test_create_session_selects_it(self, store, notifier):
        session = await store.create_session()

        assert session.title.startswith("Chat ")
        assert store.current_session == session
        assert store.messages == ()
        assert notifier.messages(NoticeLevel.SUCCESS) == ["New chat session created!"]

    @pytest.mark.asyncio
    async def test_add_message_to_current_session(self, store, backend):
        session = await store.create_session("Evening check-in")

        await store.add_message(session.id, "user", "I feel happy")
        await store.add_message(session.id, "ai", "Glad to hear it!")

        assert [m.message_type for m in store.messages] == ["user", "ai"]
        assert backend.count("insert", "chat_messages") == 2

    @pytest.mark.asyncio
    async def test_add_message_validates(self, store):
        with pytest.raises(ValidationError):
            await store.add_message("s1", "system", "hi")
        with pytest.raises(ValidationError):
            await store.add_message("s1", "user", "   ")

    @pytest.mark.asyncio
    async def test_load_messages_in_order(self, store, backend):
        backend.seed(
            "chat_messages",
            {"id": "b", "session_id": "s1", "user_id": "user-1", "message_type": "ai", "content": "2",
             "created_at": "2024-01-01T10:01:00+00:00"},
            {"id": "a", "session_id": "s1", "user_id": "user-1", "message_type": "user", "content": "1",
             "created_at": "2024-01-01T10:00:00+00:00"},
            {"id": "c", "session_id": "s2", "user_id": "user-1", "message_type": "user", "content": "x",
             "created_at": "2024-01-01T09:00:00+00:00"},
        )

        store.select_session(ChatSession(id="s1"))

        assert await store.load_messages("s1") is True

        assert [m.id for m in store.messages] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_switching_session_drops_stale_messages(self, store, backend):
        backend.seed(
            "chat_messages",
            {"id": "a1", "session_id": "A", "user_id": "user-1", "message_type": "user", "content": "old"},
            {"id": "b1", "session_id": "B", "user_id": "user-1", "message_type": "user", "content": "new"},
        )
        backend.delay = 0.01
        store.select_session(ChatSession(id="A"))
        first = asyncio.create_task(store.load_messages("A"))
        await asyncio.sleep(0)

        store.select_session(ChatSession(id="B"))
        assert await store.load_messages("B") is True

        assert await first is False
        assert store.current_session.id == "B"
        assert [m.id for m in store.messages] == ["b1"]

    @pytest.mark.asyncio
    async def test_messages_for_unselected_session_are_ignored(self, store, backend):
        backend.seed(
            "chat_messages",
            {"id": "a1", "session_id": "A", "user_id": "user-1", "message_type": "user", "content": "x"},
        )
        store.select_session(ChatSession(id="B"))

        assert await store.load_messages("A") is False

        assert store.messages == ()

    @pytest.mark.asyncio
    async def test_delete_current_session_clears_selection(self, store):
        session = await store.create_session("Temp")

        assert await store.delete_session(session.id) is True

        assert store.sessions == ()
        assert store.current_session is None

    @pytest.mark.asyncio
    async def test_update_title(self, store):
        session = await store.create_session("Old")

        assert await store.update_session_title(session.id, " New ") is True

        assert store.sessions[0].title == "New"
        assert store.current_session.title == "New"


class TestMoodReport:
    @pytest.mark.asyncio
    async def test_report_from_user_messages(self, store, backend, notifier):
        backend.seed(
            "chat_messages",
            {"id": "1", "session_id": "s1", "user_id": "user-1", "message_type": "user", "content": "so sad"},
            {"id": "2", "session_id": "s1", "user_id": "user-1", "message_type": "ai", "content": "happy happy"},
        )

        analysis = await store.generate_mood_report("s1")

        assert analysis.overall_mood == "negative"
        stored = backend.tables["mood_analytics"][0]
        assert stored["analysis_type"] == "mood_report"
        assert stored["analysis_data"]["overall_mood"] == "negative"
        assert notifier.messages(NoticeLevel.SUCCESS) == ["Mood report generated!"]

    @pytest.mark.asyncio
    async def test_report_failure_notifies_once(self, store, backend, notifier):
        backend.fail_next(server_error(), server_error(), server_error())

        assert await store.generate_mood_report("s1") is None
        assert notifier.messages() == ["Failed to generate mood report"]

    @pytest.mark.asyncio
    async def test_report_offline(self, store, monitor):
        monitor.on_browser_offline()
        with pytest.raises(ConnectivityError):
            await store.generate_mood_report("s1")
