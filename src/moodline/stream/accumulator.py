"""Accumulation of clean text deltas into the in-progress assistant message."""

from collections.abc import Callable
from typing import Any

from loguru import logger

from ..errors import AccumulatorClosedError
from .models import AccumulatorState, ChatMessage

FinalizeHook = Callable[[ChatMessage], Any]


class ConversationAccumulator:
    """Owns the single assistant message of one turn.

    The message is created on the first non-empty delta and its content grows
    with every following delta. finalize() closes the turn; it is idempotent
    and calls the finalize hook at most once, only if a message exists.
    """

    def __init__(self, on_finalize: FinalizeHook | None = None):
        self._on_finalize = on_finalize
        self._state = AccumulatorState.EMPTY
        self._message: ChatMessage | None = None

    @property
    def state(self) -> AccumulatorState:
        return self._state

    @property
    def message(self) -> ChatMessage | None:
        return self._message

    @property
    def text(self) -> str:
        return self._message.content if self._message else ""

    def append(self, text: str) -> ChatMessage | None:
        """Append clean text; empty text leaves the state unchanged.

        Raises:
            AccumulatorClosedError: If the turn is already finalized
        """
        if self._state is AccumulatorState.FINALIZED:
            raise AccumulatorClosedError("Cannot append to a finalized assistant message")
        if not text:
            return self._message

        if self._message is None:
            self._message = ChatMessage(content=text, is_user=False)
            self._state = AccumulatorState.ACCUMULATING
        else:
            self._message.content += text
        return self._message

    def finalize(self) -> ChatMessage | None:
        """Close the turn and hand the full text to the finalize hook."""
        if self._state is AccumulatorState.FINALIZED:
            return self._message
        self._state = AccumulatorState.FINALIZED

        if self._message is not None and self._on_finalize is not None:
            try:
                self._on_finalize(self._message)
            except Exception as e:
                logger.opt(exception=e).error("Assistant message finalize hook failed")
        return self._message
