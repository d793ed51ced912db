"""Data models for companion storage.

These models define sessions, stored messages and mood entries independent
of the storage backend used.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from ..config import (
    DEFAULT_SESSION_TITLE,
    MOOD_CONTEXT_PRE_CONVERSATION,
    MOOD_ENTRY_MAX_INTENSITY,
    MOOD_ENTRY_MIN_INTENSITY,
    MOOD_NOTE_MAX_LENGTH,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class ChatSession(BaseModel):
    """A conversation listed in the sidebar."""

    id: str = Field(default_factory=new_id)
    title: str = Field(default=DEFAULT_SESSION_TITLE)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StoredMessage(BaseModel):
    """A persisted chat message."""

    id: str = Field(default_factory=new_id)
    session_id: str
    content: str
    is_user: bool
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def role(self) -> str:
        return "user" if self.is_user else "assistant"


class MoodEntry(BaseModel):
    """A logged mood, entered by the user or detected in a conversation."""

    id: str = Field(default_factory=new_id)
    session_id: str | None = None
    mood: str = Field(min_length=1)
    intensity: int = Field(ge=MOOD_ENTRY_MIN_INTENSITY, le=MOOD_ENTRY_MAX_INTENSITY)
    note: str | None = Field(default=None, max_length=MOOD_NOTE_MAX_LENGTH)
    context: str = Field(default=MOOD_CONTEXT_PRE_CONVERSATION)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("mood", mode="before")
    @classmethod
    def _normalize_mood(cls, value: str) -> str:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("note", mode="before")
    @classmethod
    def _normalize_note(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value
