from typing import Any

from .base import ChatTransport


def create_chat_transport(kind: str, **config: Any) -> ChatTransport:
    """Create a chat transport instance.

    This factory function hides the instantiation logic for different transports.

    Args:
        kind: Transport type ('http' or 'gateway')
        **config: Transport-specific configuration
            For http:
                - url: str (required)
                - token: str | None
                - timeout: float (default: 60.0)
            For gateway:
                - api_key: str (required)
                - model: str (default: 'google/gemini-2.5-flash')
                - base_url: str | None

    Returns:
        Initialized chat transport

    Raises:
        ValueError: If transport type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> transport = create_chat_transport(
        ...     "http",
        ...     url="https://example.functions.dev/chat",
        ...     token="session-token"
        ... )
    """
    kind_lower = kind.lower()

    if kind_lower == "http":
        if "url" not in config:
            raise TypeError("HTTP transport requires 'url' in config")
        from .http import HttpChatTransport
        return HttpChatTransport(**config)

    if kind_lower == "gateway":
        if "api_key" not in config:
            raise TypeError("Gateway transport requires 'api_key' in config")
        from .gateway import GatewayChatTransport
        return GatewayChatTransport(**config)

    raise ValueError(
        f"Unsupported transport: {kind}. "
        f"Supported transports: 'http', 'gateway'"
    )
