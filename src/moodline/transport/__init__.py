from .base import ChatTransport, error_for_status, recent_history
from .factory import create_chat_transport
from .gateway import GatewayChatTransport, build_gateway_messages
from .http import HttpChatTransport

__all__ = [
    "ChatTransport",
    "GatewayChatTransport",
    "HttpChatTransport",
    "build_gateway_messages",
    "create_chat_transport",
    "error_for_status",
    "recent_history",
]
