"""In-memory companion store.

Simple dict-based storage for session-only use.
Data is lost when the application exits.
"""

from itertools import count

from ..config import DEFAULT_SESSION_TITLE
from .base import CompanionStore
from .models import ChatSession, MoodEntry, StoredMessage, utcnow


class InMemoryCompanionStore(CompanionStore):
    """In-memory companion store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._messages: dict[str, list[StoredMessage]] = {}
        self._moods: list[MoodEntry] = []
        # Tie-breaker for sessions touched within the same clock tick
        self._touch_counter = count()
        self._touched: dict[str, int] = {}

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""
        pass

    def _touch(self, session: ChatSession) -> None:
        session.updated_at = utcnow()
        self._touched[session.id] = next(self._touch_counter)

    async def create_session(self, title: str | None = None) -> ChatSession:
        session = ChatSession(title=title or DEFAULT_SESSION_TITLE)
        self._sessions[session.id] = session
        self._messages[session.id] = []
        self._touched[session.id] = next(self._touch_counter)
        return session

    async def get_session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    async def list_sessions(self) -> list[ChatSession]:
        return sorted(
            self._sessions.values(),
            key=lambda s: (s.updated_at, self._touched[s.id]),
            reverse=True,
        )

    async def rename_session(self, session_id: str, title: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        session.title = title
        self._touch(session)

    async def delete_session(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        self._messages.pop(session_id, None)
        self._touched.pop(session_id, None)
        return True

    async def add_message(self, session_id: str, content: str, is_user: bool) -> StoredMessage:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        message = StoredMessage(session_id=session_id, content=content, is_user=is_user)
        self._messages[session_id].append(message)
        self._touch(session)
        return message

    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        return list(self._messages.get(session_id, []))

    async def search_messages(self, query: str, limit: int = 50) -> list[StoredMessage]:
        needle = query.lower()
        matches = [
            message
            for messages in self._messages.values()
            for message in messages
            if needle in message.content.lower()
        ]
        matches.sort(key=lambda m: m.created_at, reverse=True)
        return matches[:limit]

    async def search_sessions(self, query: str) -> list[ChatSession]:
        needle = query.lower()
        return [
            session
            for session in await self.list_sessions()
            if needle in session.title.lower()
            or any(needle in m.content.lower() for m in self._messages[session.id])
        ]

    async def log_mood(self, entry: MoodEntry) -> MoodEntry:
        self._moods.append(entry)
        return entry

    async def list_mood_entries(self, session_id: str | None = None) -> list[MoodEntry]:
        entries = [
            entry for entry in self._moods
            if session_id is None or entry.session_id == session_id
        ]
        return sorted(entries, key=lambda e: e.created_at)

    @property
    def backend_type(self) -> str:
        return "memory"
