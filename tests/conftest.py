"""Pytest configuration and shared fixtures."""
import json
import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from moodline.errors import ChatTransportError
from moodline.storage import create_companion_store
from moodline.stream import ChatMessage
from moodline.transport import ChatTransport


def sse_frame(content: str | None = None, **delta) -> str:
    """One ``data:`` frame carrying a chat completion delta."""
    if content is not None:
        delta["content"] = content
    payload = {"id": "chatcmpl-1", "choices": [{"index": 0, "delta": delta}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


DONE_FRAME = "data: [DONE]\n\n"


async def iterate_chunks(chunks) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


class ScriptedTransport(ChatTransport):
    """Transport that replays canned chunks and records what it was sent."""

    def __init__(self, replies: list[list[str]] | None = None, fail_after: int | None = None):
        self.replies = list(replies or [])
        self.fail_after = fail_after
        self.calls: list[tuple[str, list[ChatMessage]]] = []
        self.closed = False

    async def stream_reply(self, user_message, history):
        self.calls.append((user_message, list(history)))
        chunks = self.replies.pop(0) if self.replies else [DONE_FRAME]
        for i, chunk in enumerate(chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise ChatTransportError("connection reset", user_message="Try again later.")
            yield chunk.encode("utf-8")

    async def close(self):
        self.closed = True


@pytest.fixture
def sse():
    """Frame builder."""
    return sse_frame


@pytest.fixture
def done_frame():
    return DONE_FRAME


@pytest.fixture
def chunk_stream():
    """Turn a list of str/bytes chunks into an async byte iterator."""
    return iterate_chunks


@pytest.fixture
def scripted_transport():
    return ScriptedTransport


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """A connected store for each backend."""
    if request.param == "sqlite":
        backend = create_companion_store("sqlite", path=tmp_path / "moodline.db")
    else:
        backend = create_companion_store("memory")
    await backend.connect()
    yield backend
    await backend.disconnect()


@pytest.fixture(scope="session")
def gateway_api_key():
    """Return the gateway key from environment."""
    return os.getenv("GATEWAY_API_KEY")
