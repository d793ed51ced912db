"""Storage for sessions, chat history and mood entries."""

from .base import CompanionStore
from .factory import create_companion_store
from .models import ChatSession, MoodEntry, StoredMessage

__all__ = [
    "ChatSession",
    "CompanionStore",
    "MoodEntry",
    "StoredMessage",
    "create_companion_store",
]
