"""Data models for the streaming reply pipeline."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DIRECTIVE_MAX_INTENSITY, DIRECTIVE_MIN_INTENSITY


class DecoderState(str, Enum):
    """Lifecycle of a StreamFrameDecoder."""

    IDLE = "idle"
    BUFFERING = "buffering"
    COMPLETE = "complete"


class AccumulatorState(str, Enum):
    """Lifecycle of the in-progress assistant message."""

    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


class ChatMessage(BaseModel):
    """A message in a conversation.

    Only the in-flight assistant message is ever mutated, and only its content.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    content: str = Field(description="Text shown to the user")
    is_user: bool = Field(description="True for messages typed by the user")
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def role(self) -> str:
        """Chat-completion role of the message sender."""
        return "user" if self.is_user else "assistant"


class StreamDelta(BaseModel):
    """One text fragment decoded from an event frame."""

    model_config = ConfigDict(frozen=True)

    text: str


class MoodDirective(BaseModel):
    """Mood record embedded by the model in its reply."""

    model_config = ConfigDict(frozen=True)

    mood: str = Field(min_length=1)
    intensity: int = Field(ge=DIRECTIVE_MIN_INTENSITY, le=DIRECTIVE_MAX_INTENSITY)
    note: str | None = None

    @field_validator("mood")
    @classmethod
    def _normalize_mood(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("note")
    @classmethod
    def _normalize_note(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class Extraction(BaseModel):
    """Result of feeding one fragment through the DirectiveExtractor."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    directives: tuple[MoodDirective, ...] = ()

    @property
    def directive(self) -> MoodDirective | None:
        """The first directive found in this step, if any."""
        return self.directives[0] if self.directives else None


class ReplyOutcome(BaseModel):
    """Summary of one streamed assistant turn."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    message: ChatMessage | None = Field(
        default=None,
        description="Finalized assistant message, None if no text arrived"
    )
    directives: list[MoodDirective] = Field(default_factory=list)
    error: Exception | None = Field(
        default=None,
        description="Transport error that ended the stream early"
    )
    completed: bool = Field(
        default=False,
        description="True when the stream ended with its terminator frame"
    )

    @property
    def text(self) -> str:
        return self.message.content if self.message else ""

    @property
    def failed(self) -> bool:
        return self.error is not None
