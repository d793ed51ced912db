"""
moodline: a mental health companion chat client with mood tracking.

The streaming reply pipeline hides the event-stream wire format and the
embedded mood directive convention; transports and stores hide how messages
reach the model and where conversations are kept.
"""

__version__ = "0.1.0"

from .chat import CompanionChat
from .errors import (
    AccumulatorClosedError,
    ChatTransportError,
    MoodlineError,
    ReplyInProgressError,
    StoreNotConnectedError,
)
from .storage import ChatSession, CompanionStore, MoodEntry, StoredMessage, create_companion_store
from .stream import (
    ChatMessage,
    ConversationAccumulator,
    DirectiveExtractor,
    MoodDirective,
    PersistenceQueue,
    ReplyOutcome,
    StreamFrameDecoder,
    consume_reply,
)
from .transport import ChatTransport, create_chat_transport
from .trends import MoodTrends, summarize_moods

__all__ = [
    "AccumulatorClosedError",
    "ChatMessage",
    "ChatSession",
    "ChatTransport",
    "ChatTransportError",
    "CompanionChat",
    "CompanionStore",
    "ConversationAccumulator",
    "DirectiveExtractor",
    "MoodDirective",
    "MoodEntry",
    "MoodTrends",
    "MoodlineError",
    "PersistenceQueue",
    "ReplyInProgressError",
    "ReplyOutcome",
    "StoreNotConnectedError",
    "StoredMessage",
    "StreamFrameDecoder",
    "consume_reply",
    "create_chat_transport",
    "create_companion_store",
    "summarize_moods",
]
