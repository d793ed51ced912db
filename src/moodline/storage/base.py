"""Abstract base class for companion storage backends.

This module defines the interface for sessions, messages and mood entries.
The abstraction hides:
- Storage format and schema
- Persistence mechanism (in-memory, SQLite, hosted tables)
- Connection management
"""

from abc import ABC, abstractmethod

from .models import ChatSession, MoodEntry, StoredMessage


class CompanionStore(ABC):
    """Abstract companion store."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backend gracefully."""

    @abstractmethod
    async def create_session(self, title: str | None = None) -> ChatSession:
        """Create a new chat session."""

    @abstractmethod
    async def get_session(self, session_id: str) -> ChatSession | None:
        """Fetch a session, None if it does not exist."""

    @abstractmethod
    async def list_sessions(self) -> list[ChatSession]:
        """All sessions, most recently updated first."""

    @abstractmethod
    async def rename_session(self, session_id: str, title: str) -> None:
        """Change a session title."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its messages.

        Returns:
            True if a session was deleted
        """

    @abstractmethod
    async def add_message(self, session_id: str, content: str, is_user: bool) -> StoredMessage:
        """Append a message to a session and bump the session's updated_at.

        Raises:
            KeyError: If the session does not exist
        """

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        """Messages of a session in insertion order."""

    @abstractmethod
    async def search_messages(self, query: str, limit: int = 50) -> list[StoredMessage]:
        """Messages containing query, case-insensitively, newest first."""

    @abstractmethod
    async def search_sessions(self, query: str) -> list[ChatSession]:
        """Sessions whose title or any message contains query, case-insensitively.

        Ordered like list_sessions(), most recently updated first.
        """

    @abstractmethod
    async def log_mood(self, entry: MoodEntry) -> MoodEntry:
        """Persist a mood entry."""

    @abstractmethod
    async def list_mood_entries(self, session_id: str | None = None) -> list[MoodEntry]:
        """Mood entries oldest first, optionally restricted to one session."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "CompanionStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
