"""Direct transport to an OpenAI-compatible LLM gateway.

This transport plays the role of the hosted chat function: it builds the
companion prompt, holds the gateway key (read from server-side configuration)
and relays the gateway's raw event stream.
"""

from collections.abc import AsyncIterator
from typing import Any

import httpx
from loguru import logger
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from ..config import CONNECTION_ERROR_MESSAGE, DEFAULT_GATEWAY_MODEL, HISTORY_WINDOW
from ..errors import ChatTransportError
from ..prompts import get_companion_prompt
from ..stream.models import ChatMessage
from .base import ChatTransport, error_for_status, recent_history
from .websearch import prepare_user_message


def build_gateway_messages(
    user_message: str,
    history: list[ChatMessage],
    search_context: str = "",
    history_window: int = HISTORY_WINDOW,
) -> list[dict[str, str]]:
    """Assemble the chat completion messages for one turn.

    The system prompt comes first, then the trailing history window mapped to
    user/assistant roles, then the new user message.
    """
    messages = [{"role": "system", "content": get_companion_prompt(search_context)}]
    messages.extend(
        {"role": message.role, "content": message.content}
        for message in recent_history(history, history_window)
    )
    messages.append({"role": "user", "content": user_message})
    return messages


class GatewayChatTransport(ChatTransport):
    """OpenAI-compatible gateway transport.

    Hidden design decisions:
    - Gateway client initialization and authentication
    - Companion system prompt and history window
    - Web search enrichment of ``[Web Search]`` messages
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GATEWAY_MODEL,
        base_url: str | None = None,
        search_client: httpx.AsyncClient | None = None,
        **client_kwargs: Any
    ):
        """Initialize gateway transport.

        Args:
            api_key: Gateway API key (server-held secret)
            model: Model to request
            base_url: Optional gateway base URL
            search_client: Optional httpx client for web search lookups
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, **client_kwargs)
        self._owns_search_client = search_client is None
        self._search_client = search_client or httpx.AsyncClient(timeout=10.0)

    @property
    def model(self) -> str:
        return self._model

    async def stream_reply(
        self,
        user_message: str,
        history: list[ChatMessage],
    ) -> AsyncIterator[bytes]:
        prompt_message, context = await prepare_user_message(self._search_client, user_message)
        messages = build_gateway_messages(prompt_message, history, context)

        try:
            async with self._client.chat.completions.with_streaming_response.create(
                model=self._model,
                messages=messages,
                stream=True,
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except APIStatusError as e:
            logger.error(f"Gateway error {e.status_code}: {e.message}")
            raise error_for_status(e.status_code, e.message) from e
        except APIConnectionError as e:
            raise ChatTransportError(
                f"Gateway request failed: {e}",
                user_message=CONNECTION_ERROR_MESSAGE,
            ) from e
        except httpx.HTTPError as e:
            # Body reads bypass the SDK's error mapping
            raise ChatTransportError(
                f"Gateway stream interrupted: {e}",
                user_message=CONNECTION_ERROR_MESSAGE,
            ) from e

    async def close(self) -> None:
        """Close the gateway client and the search client if owned."""
        await self._client.close()
        if self._owns_search_client:
            await self._search_client.aclose()
