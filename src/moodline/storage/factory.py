"""Factory for creating companion stores."""

from typing import Any

from .base import CompanionStore


def create_companion_store(backend: str = "memory", **kwargs: Any) -> CompanionStore:
    """Create a companion store.

    Args:
        backend: Backend type ("memory" or "sqlite")
        **kwargs: Backend-specific configuration
            For sqlite:
                - path: str | Path (default: ./moodline.db)

    Returns:
        CompanionStore instance (call connect() before use)

    Raises:
        ValueError: If backend type is not supported
    """
    if backend == "memory":
        from .in_memory import InMemoryCompanionStore
        return InMemoryCompanionStore(**kwargs)

    elif backend == "sqlite":
        from .sqlite import SQLiteCompanionStore
        return SQLiteCompanionStore(**kwargs)

    raise ValueError(
        f"Unsupported store backend: {backend}. "
        f"Supported backends: memory, sqlite"
    )
