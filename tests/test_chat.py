"""Unit tests for the conversation controller."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from pydantic import ValidationError

from moodline.chat import CompanionChat, session_title
from moodline.config import (
    CONNECTION_ERROR_TITLE,
    DEFAULT_SESSION_TITLE,
    FALLBACK_REPLY,
    GREETING_MESSAGE,
)
from moodline.errors import ReplyInProgressError
from moodline.storage import create_companion_store
from moodline.transport import ChatTransport

from conftest import DONE_FRAME, sse_frame


class BlockingTransport(ChatTransport):
    """Transport whose reply stays open until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def stream_reply(self, user_message, history):
        yield sse_frame("Still here.").encode()
        self.started.set()
        await self.release.wait()
        yield DONE_FRAME.encode()

    async def close(self):
        pass


@pytest_asyncio.fixture
async def memory_store():
    store = create_companion_store("memory")
    await store.connect()
    yield store
    await store.disconnect()


class TestSessionTitle:
    """Tests for titles derived from the first message."""

    def test_short_message(self):
        assert session_title("  I feel   anxious\ntoday ") == "I feel anxious today"

    def test_long_message_truncated(self):
        title = session_title("a" * 80)

        assert title == "a" * 50 + "..."


class TestCompanionChat:
    """Tests for sending messages and streaming replies."""

    @pytest.mark.asyncio
    async def test_greeting_shown_but_not_sent(self, store, scripted_transport):
        """Test the greeting opens the conversation and stays out of history."""
        transport = scripted_transport([[sse_frame("Hello!"), DONE_FRAME]])
        chat = await CompanionChat.open(store, transport)

        assert chat.messages[0].content == GREETING_MESSAGE

        await chat.send("hi")
        await chat.close()

        user_message, history = transport.calls[0]
        assert user_message == "hi"
        assert history == []

    @pytest.mark.asyncio
    async def test_turn_is_persisted(self, store, scripted_transport):
        """Test both messages, the title and the detected mood are stored."""
        transport = scripted_transport([[
            sse_frame("Congratulations!\nMOOD_LO"),
            sse_frame("G:excited,5,new job\n"),
            sse_frame("How do you feel?"),
            DONE_FRAME,
        ]])
        chat = await CompanionChat.open(store, transport)
        deltas = []

        outcome = await chat.send("I got the job!", on_delta=deltas.append)
        await chat.close()

        assert outcome.text == "Congratulations!\nHow do you feel?"
        assert "".join(deltas) == outcome.text
        assert [m.content for m in chat.messages[1:]] == ["I got the job!", outcome.text]
        assert chat.messages[-1] is outcome.message

        stored = await store.get_messages(chat.session.id)
        assert [(m.content, m.is_user) for m in stored] == [
            ("I got the job!", True),
            (outcome.text, False),
        ]
        assert (await store.get_session(chat.session.id)).title == "I got the job!"

        moods = await store.list_mood_entries(chat.session.id)
        assert len(moods) == 1
        assert (moods[0].mood, moods[0].intensity, moods[0].note) == ("excited", 5, "new job")
        assert moods[0].context == "conversation"
        assert chat.queue.failures == []

    @pytest.mark.asyncio
    async def test_history_grows_and_title_set_once(self, store, scripted_transport):
        """Test later turns carry earlier messages and keep the first title."""
        transport = scripted_transport([
            [sse_frame("First reply"), DONE_FRAME],
            [sse_frame("Second reply"), DONE_FRAME],
        ])
        chat = await CompanionChat.open(store, transport)

        await chat.send("first")
        await chat.send("second")
        await chat.close()

        _, history = transport.calls[1]
        assert [m.content for m in history] == ["first", "First reply"]
        assert chat.session.title == "first"
        assert (await store.get_session(chat.session.id)).title == "first"

    @pytest.mark.asyncio
    async def test_transport_failure_shows_fallback(self, memory_store, scripted_transport):
        """Test a failed reply notifies and appends the fallback message."""
        notices = []
        transport = scripted_transport([[sse_frame("Partial"), sse_frame(" answer")]], fail_after=1)
        chat = await CompanionChat.open(
            memory_store, transport, on_error=lambda title, text: notices.append((title, text))
        )

        outcome = await chat.send("help")
        await chat.close()

        assert outcome.failed
        assert notices == [(CONNECTION_ERROR_TITLE, "Try again later.")]
        assert [m.content for m in chat.messages[1:]] == ["help", "Partial", FALLBACK_REPLY]

        stored = await memory_store.get_messages(chat.session.id)
        assert [m.content for m in stored] == ["help", "Partial"]

    @pytest.mark.asyncio
    async def test_second_send_while_streaming_rejected(self, memory_store):
        """Test only one reply streams at a time."""
        transport = BlockingTransport()
        chat = await CompanionChat.open(memory_store, transport)

        first = asyncio.create_task(chat.send("one"))
        await transport.started.wait()

        assert chat.is_replying
        with pytest.raises(ReplyInProgressError):
            await chat.send("two")

        transport.release.set()
        outcome = await first
        await chat.close()

        assert outcome.completed
        assert not chat.is_replying

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, memory_store, scripted_transport):
        chat = await CompanionChat.open(memory_store, scripted_transport())

        with pytest.raises(ValueError):
            await chat.send("   ")

    @pytest.mark.asyncio
    async def test_resume_stored_session(self, store, scripted_transport):
        """Test reopening a session restores its history after the greeting."""
        session = await store.create_session("Earlier")
        await store.add_message(session.id, "hello again", is_user=True)
        await store.add_message(session.id, "Welcome back.", is_user=False)
        transport = scripted_transport([[sse_frame("Go on."), DONE_FRAME]])

        chat = await CompanionChat.open(store, transport, session_id=session.id)
        await chat.send("next")
        await chat.close()

        assert chat.session.title == "Earlier"
        assert [m.content for m in chat.messages] == [
            GREETING_MESSAGE, "hello again", "Welcome back.", "next", "Go on."
        ]
        _, history = transport.calls[0]
        assert [m.content for m in history] == ["hello again", "Welcome back."]

    @pytest.mark.asyncio
    async def test_resume_missing_session(self, memory_store, scripted_transport):
        with pytest.raises(KeyError):
            await CompanionChat.open(memory_store, scripted_transport(), session_id="missing")

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_break_chat(self, memory_store, scripted_transport):
        """Test a failing store is recorded while the reply still arrives."""
        transport = scripted_transport([[sse_frame("I'm listening."), DONE_FRAME]])
        session = await memory_store.create_session()
        chat = CompanionChat(memory_store, transport, session)
        broken = AsyncMock(side_effect=ConnectionError("messages table unavailable"))

        with patch.object(memory_store, "add_message", broken):
            outcome = await chat.send("anyone there?")
            await chat.close()

        assert outcome.text == "I'm listening."
        assert not outcome.failed
        assert len(chat.queue.failures) == 2
        assert all(isinstance(f.error, ConnectionError) for f in chat.queue.failures)
        assert (await memory_store.get_session(session.id)).title == "anyone there?"


class TestMoodCheckIn:
    """Tests for moods logged by the user."""

    @pytest.mark.asyncio
    async def test_log_mood(self, store, scripted_transport):
        chat = await CompanionChat.open(store, scripted_transport())

        entry = await chat.log_mood("Calm", 7, "after a walk")

        entries = await store.list_mood_entries(chat.session.id)
        assert entries == [entry]
        assert entry.mood == "calm"
        assert entry.context == "pre-conversation"
        assert chat.session.title == DEFAULT_SESSION_TITLE

    @pytest.mark.asyncio
    async def test_out_of_range_intensity(self, memory_store, scripted_transport):
        chat = await CompanionChat.open(memory_store, scripted_transport())

        with pytest.raises(ValidationError):
            await chat.log_mood("happy", 11)
        assert await memory_store.list_mood_entries() == []
