"""Streaming reply handling.

Hides the stream wire format and the embedded mood directive convention from
the rest of the package.
"""

from .accumulator import ConversationAccumulator
from .decoder import StreamFrameDecoder, extract_delta_text
from .directives import DirectiveExtractor, parse_directive
from .models import (
    AccumulatorState,
    ChatMessage,
    DecoderState,
    Extraction,
    MoodDirective,
    ReplyOutcome,
    StreamDelta,
)
from .pipeline import PersistenceFailure, PersistenceQueue, consume_reply

__all__ = [
    "AccumulatorState",
    "ChatMessage",
    "ConversationAccumulator",
    "DecoderState",
    "DirectiveExtractor",
    "Extraction",
    "MoodDirective",
    "PersistenceFailure",
    "PersistenceQueue",
    "ReplyOutcome",
    "StreamDelta",
    "StreamFrameDecoder",
    "consume_reply",
    "extract_delta_text",
    "parse_directive",
]
