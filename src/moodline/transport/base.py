from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from ..config import (
    CONNECTION_ERROR_MESSAGE,
    HISTORY_WINDOW,
    PAYMENT_REQUIRED_MESSAGE,
    RATE_LIMIT_MESSAGE,
)
from ..errors import ChatTransportError
from ..stream.models import ChatMessage


def error_for_status(status_code: int, detail: str | None = None) -> ChatTransportError:
    """Map a failed HTTP status to a ChatTransportError with a user-facing message."""
    if status_code == 429:
        user_message = RATE_LIMIT_MESSAGE
    elif status_code == 402:
        user_message = PAYMENT_REQUIRED_MESSAGE
    else:
        user_message = CONNECTION_ERROR_MESSAGE

    message = f"Chat endpoint returned {status_code}"
    if detail:
        message = f"{message}: {detail}"
    return ChatTransportError(message, status_code=status_code, user_message=user_message)


def recent_history(history: list[ChatMessage], limit: int = HISTORY_WINDOW) -> list[ChatMessage]:
    """The trailing window of the conversation sent along with a new message."""
    if limit <= 0:
        return []
    return list(history[-limit:])


class ChatTransport(ABC):
    """Abstract base class for chat transports.

    This module hides the design decision of how a user message reaches the
    model. Implementations must:
    - Send the user message and recent conversation history
    - Return the raw streaming body (``data: {json}`` frames) unparsed
    - Raise ChatTransportError for network failures and non-success statuses

    Supports async context manager protocol for proper resource cleanup:
        async with transport:
            async for chunk in transport.stream_reply("hi", history):
                ...
    """

    @abstractmethod
    def stream_reply(
        self,
        user_message: str,
        history: list[ChatMessage],
    ) -> AsyncIterator[bytes]:
        """Stream the raw reply body for a user message.

        Args:
            user_message: Text typed by the user
            history: Conversation so far, oldest first (excluding user_message)

        Yields:
            Raw byte chunks at arbitrary boundaries

        Raises:
            ChatTransportError: On network failure or non-success status
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "ChatTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
