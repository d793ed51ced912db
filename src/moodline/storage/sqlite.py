"""SQLite companion store.

Persists sessions, messages and mood entries in a SQLite database file.
Uses aiosqlite for async access.
"""

from datetime import datetime
from pathlib import Path

import aiosqlite

from ..config import DEFAULT_SESSION_TITLE
from ..errors import StoreNotConnectedError
from .base import CompanionStore
from .models import ChatSession, MoodEntry, StoredMessage, utcnow

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chat_sessions (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        content TEXT NOT NULL,
        is_user INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (session_id) REFERENCES chat_sessions(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_chat_messages_session
    ON chat_messages(session_id, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS mood_entries (
        id TEXT PRIMARY KEY,
        session_id TEXT,
        mood TEXT NOT NULL,
        intensity INTEGER NOT NULL,
        note TEXT,
        context TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)


def _session_from_row(row: tuple) -> ChatSession:
    session_id, title, created_at, updated_at = row
    return ChatSession(
        id=session_id,
        title=title,
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )


def _message_from_row(row: tuple) -> StoredMessage:
    message_id, session_id, content, is_user, created_at = row
    return StoredMessage(
        id=message_id,
        session_id=session_id,
        content=content,
        is_user=bool(is_user),
        created_at=datetime.fromisoformat(created_at),
    )


def _mood_from_row(row: tuple) -> MoodEntry:
    entry_id, session_id, mood, intensity, note, context, created_at = row
    return MoodEntry(
        id=entry_id,
        session_id=session_id,
        mood=mood,
        intensity=intensity,
        note=note,
        context=context,
        created_at=datetime.fromisoformat(created_at),
    )


class SQLiteCompanionStore(CompanionStore):
    """SQLite-backed companion store.

    Supports persistent storage across sessions.
    """

    def __init__(self, path: str | Path = "./moodline.db"):
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StoreNotConnectedError("SQLite store is not connected")
        return self._connection

    async def connect(self) -> None:
        """Open the database and create the schema."""
        if self._connection is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA foreign_keys = ON")
        for statement in _SCHEMA:
            await self._connection.execute(statement)
        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def create_session(self, title: str | None = None) -> ChatSession:
        session = ChatSession(title=title or DEFAULT_SESSION_TITLE)
        await self._conn.execute(
            "INSERT INTO chat_sessions (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (session.id, session.title, session.created_at.isoformat(), session.updated_at.isoformat()),
        )
        await self._conn.commit()
        return session

    async def get_session(self, session_id: str) -> ChatSession | None:
        async with self._conn.execute(
            "SELECT id, title, created_at, updated_at FROM chat_sessions WHERE id = ?",
            (session_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _session_from_row(row) if row else None

    async def list_sessions(self) -> list[ChatSession]:
        async with self._conn.execute(
            """
            SELECT id, title, created_at, updated_at
            FROM chat_sessions
            ORDER BY updated_at DESC, rowid DESC
            """
        ) as cursor:
            rows = await cursor.fetchall()
        return [_session_from_row(row) for row in rows]

    async def rename_session(self, session_id: str, title: str) -> None:
        cursor = await self._conn.execute(
            "UPDATE chat_sessions SET title = ?, updated_at = ? WHERE id = ?",
            (title, utcnow().isoformat(), session_id),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            raise KeyError(session_id)

    async def delete_session(self, session_id: str) -> bool:
        cursor = await self._conn.execute(
            "DELETE FROM chat_sessions WHERE id = ?",
            (session_id,)
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def add_message(self, session_id: str, content: str, is_user: bool) -> StoredMessage:
        if await self.get_session(session_id) is None:
            raise KeyError(session_id)

        message = StoredMessage(session_id=session_id, content=content, is_user=is_user)
        await self._conn.execute(
            """
            INSERT INTO chat_messages (id, session_id, content, is_user, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (message.id, session_id, content, int(is_user), message.created_at.isoformat()),
        )
        await self._conn.execute(
            "UPDATE chat_sessions SET updated_at = ? WHERE id = ?",
            (message.created_at.isoformat(), session_id),
        )
        await self._conn.commit()
        return message

    async def get_messages(self, session_id: str) -> list[StoredMessage]:
        async with self._conn.execute(
            """
            SELECT id, session_id, content, is_user, created_at
            FROM chat_messages
            WHERE session_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (session_id,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [_message_from_row(row) for row in rows]

    async def search_messages(self, query: str, limit: int = 50) -> list[StoredMessage]:
        # instr() keeps % and _ in the query literal
        async with self._conn.execute(
            """
            SELECT id, session_id, content, is_user, created_at
            FROM chat_messages
            WHERE instr(lower(content), lower(?)) > 0
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (query, limit)
        ) as cursor:
            rows = await cursor.fetchall()
        return [_message_from_row(row) for row in rows]

    async def search_sessions(self, query: str) -> list[ChatSession]:
        async with self._conn.execute(
            """
            SELECT id, title, created_at, updated_at
            FROM chat_sessions
            WHERE instr(lower(title), lower(?)) > 0
               OR id IN (
                   SELECT session_id FROM chat_messages
                   WHERE instr(lower(content), lower(?)) > 0
               )
            ORDER BY updated_at DESC, rowid DESC
            """,
            (query, query)
        ) as cursor:
            rows = await cursor.fetchall()
        return [_session_from_row(row) for row in rows]

    async def log_mood(self, entry: MoodEntry) -> MoodEntry:
        await self._conn.execute(
            """
            INSERT INTO mood_entries
            (id, session_id, mood, intensity, note, context, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.session_id,
                entry.mood,
                entry.intensity,
                entry.note,
                entry.context,
                entry.created_at.isoformat(),
            ),
        )
        await self._conn.commit()
        return entry

    async def list_mood_entries(self, session_id: str | None = None) -> list[MoodEntry]:
        query = """
            SELECT id, session_id, mood, intensity, note, context, created_at
            FROM mood_entries
        """
        params: tuple = ()
        if session_id is not None:
            query += " WHERE session_id = ?"
            params = (session_id,)
        query += " ORDER BY created_at ASC, rowid ASC"

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [_mood_from_row(row) for row in rows]

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
