"""Transport for a hosted chat function that proxies to the LLM gateway."""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from loguru import logger

from ..config import CONNECTION_ERROR_MESSAGE, DEFAULT_REQUEST_TIMEOUT
from ..errors import ChatTransportError
from ..stream.models import ChatMessage
from .base import ChatTransport, error_for_status, recent_history


def _history_payload(history: list[ChatMessage]) -> list[dict[str, Any]]:
    return [
        {
            "content": message.content,
            "isUser": message.is_user,
            "timestamp": message.timestamp.isoformat(),
        }
        for message in recent_history(history)
    ]


def _error_detail(body: bytes) -> str | None:
    """Pull the ``error`` field out of a JSON error body, else the raw text."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text or None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return text or None


class HttpChatTransport(ChatTransport):
    """Posts messages to a chat endpoint and relays its event stream.

    Hidden design decisions:
    - Request body shape (``userMessage`` / ``conversationHistory``)
    - Bearer authentication with a session token, never a provider key
    - Error body decoding
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        **client_kwargs: Any
    ):
        """Initialize HTTP transport.

        Args:
            url: Chat endpoint URL
            token: Optional bearer token identifying the user session
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (owned by the caller)
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        self._url = url
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, **client_kwargs)

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def stream_reply(
        self,
        user_message: str,
        history: list[ChatMessage],
    ) -> AsyncIterator[bytes]:
        body = {
            "userMessage": user_message,
            "conversationHistory": _history_payload(history),
        }

        try:
            async with self._client.stream(
                "POST", self._url, json=body, headers=self._headers()
            ) as response:
                if response.is_error:
                    detail = _error_detail(await response.aread())
                    logger.error(f"Chat endpoint error {response.status_code}: {detail}")
                    raise error_for_status(response.status_code, detail)

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            raise ChatTransportError(
                f"Chat request to {self._url} failed: {e}",
                user_message=CONNECTION_ERROR_MESSAGE,
            ) from e

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
