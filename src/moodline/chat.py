"""Conversation controller tying a transport, the reply pipeline and a store together."""

from collections.abc import Callable
from typing import Any

from loguru import logger

from .config import (
    CONNECTION_ERROR_TITLE,
    FALLBACK_REPLY,
    GREETING_MESSAGE,
    MOOD_CONTEXT_CONVERSATION,
    MOOD_CONTEXT_PRE_CONVERSATION,
    SESSION_TITLE_MAX_LENGTH,
)
from .errors import ChatTransportError, ReplyInProgressError
from .storage import ChatSession, CompanionStore, MoodEntry
from .stream import ChatMessage, MoodDirective, PersistenceQueue, ReplyOutcome, consume_reply
from .transport import ChatTransport

ErrorNotifier = Callable[[str, str], Any]
DeltaListener = Callable[[str], Any]


def session_title(first_message: str) -> str:
    """Title for a new session, derived from its first user message."""
    title = " ".join(first_message.split())
    if len(title) > SESSION_TITLE_MAX_LENGTH:
        title = title[:SESSION_TITLE_MAX_LENGTH].rstrip() + "..."
    return title


class CompanionChat:
    """One conversation with the companion.

    Only one reply may stream at a time; send() refuses to start another
    while a reply is in flight. Persistence runs on a PersistenceQueue and
    never interrupts the visible conversation.
    """

    def __init__(
        self,
        store: CompanionStore,
        transport: ChatTransport,
        session: ChatSession,
        history: list[ChatMessage] | None = None,
        queue: PersistenceQueue | None = None,
        on_error: ErrorNotifier | None = None,
    ):
        self._store = store
        self._transport = transport
        self._session = session
        self._queue = queue or PersistenceQueue()
        self._on_error = on_error
        self._greeting = ChatMessage(content=GREETING_MESSAGE, is_user=False)
        self._messages: list[ChatMessage] = [self._greeting, *(history or [])]
        self._replying = False

    @classmethod
    async def open(
        cls,
        store: CompanionStore,
        transport: ChatTransport,
        session_id: str | None = None,
        **kwargs: Any
    ) -> "CompanionChat":
        """Resume a stored session, or start a new one.

        Raises:
            KeyError: If session_id does not exist
        """
        if session_id is None:
            session = await store.create_session()
            return cls(store, transport, session, **kwargs)

        session = await store.get_session(session_id)
        if session is None:
            raise KeyError(session_id)
        stored = await store.get_messages(session_id)
        history = [
            ChatMessage(id=m.id, content=m.content, is_user=m.is_user, timestamp=m.created_at)
            for m in stored
        ]
        return cls(store, transport, session, history=history, **kwargs)

    @property
    def session(self) -> ChatSession:
        return self._session

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def queue(self) -> PersistenceQueue:
        return self._queue

    @property
    def is_replying(self) -> bool:
        return self._replying

    def _history(self) -> list[ChatMessage]:
        return [m for m in self._messages if m is not self._greeting]

    async def send(self, content: str, on_delta: DeltaListener | None = None) -> ReplyOutcome:
        """Send a user message and stream the companion's reply.

        Args:
            content: Text typed by the user
            on_delta: Called with each piece of visible reply text

        Returns:
            Outcome of the streamed turn. On transport failure the outcome
            carries the error, the notifier is called and a fallback reply is
            appended to the conversation.

        Raises:
            ReplyInProgressError: If a reply is still streaming
            ValueError: If content is blank
        """
        if self._replying:
            raise ReplyInProgressError("Wait for the current reply to finish")
        content = content.strip()
        if not content:
            raise ValueError("Message is empty")

        self._replying = True
        try:
            return await self._exchange(content, on_delta)
        finally:
            self._replying = False

    async def _exchange(self, content: str, on_delta: DeltaListener | None) -> ReplyOutcome:
        session_id = self._session.id
        history = self._history()
        first_message = not any(m.is_user for m in history)

        self._messages.append(ChatMessage(content=content, is_user=True))
        await self._queue.submit(
            self._store.add_message(session_id, content, True),
            f"user message in session {session_id}",
        )
        if first_message:
            self._session.title = session_title(content)
            self._queue.submit(
                self._store.rename_session(session_id, self._session.title),
                f"title of session {session_id}",
            )

        def record_mood(directive: MoodDirective) -> None:
            entry = MoodEntry(
                session_id=session_id,
                mood=directive.mood,
                intensity=directive.intensity,
                note=directive.note,
                context=MOOD_CONTEXT_CONVERSATION,
            )
            logger.info(f"Detected mood {entry.mood} ({entry.intensity}/5)")
            self._queue.submit(self._store.log_mood(entry), f"mood entry {entry.mood}")

        def record_reply(message: ChatMessage) -> None:
            self._queue.submit(
                self._store.add_message(session_id, message.content, False),
                f"assistant message in session {session_id}",
            )

        def show(text: str, message: ChatMessage) -> None:
            if self._messages[-1] is not message:
                self._messages.append(message)
            if on_delta is not None:
                on_delta(text)

        outcome = await consume_reply(
            self._transport.stream_reply(content, history),
            mood_sink=record_mood,
            message_sink=record_reply,
            on_delta=show,
        )

        if outcome.failed:
            error = outcome.error
            notice = error.user_message if isinstance(error, ChatTransportError) else str(error)
            if self._on_error is not None:
                self._on_error(CONNECTION_ERROR_TITLE, notice)
            self._messages.append(ChatMessage(content=FALLBACK_REPLY, is_user=False))

        return outcome

    async def log_mood(self, mood: str, intensity: int, note: str | None = None) -> MoodEntry:
        """Record a check-in entered by the user before talking.

        Raises:
            pydantic.ValidationError: If intensity or note are out of bounds
        """
        entry = MoodEntry(
            session_id=self._session.id,
            mood=mood,
            intensity=intensity,
            note=note,
            context=MOOD_CONTEXT_PRE_CONVERSATION,
        )
        return await self._store.log_mood(entry)

    async def close(self) -> None:
        """Wait for outstanding persistence."""
        await self._queue.drain()
