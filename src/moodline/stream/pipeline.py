"""Reply pipeline: raw stream bytes to a finalized assistant message.

raw chunks -> StreamFrameDecoder -> deltas -> DirectiveExtractor
    -> clean text -> ConversationAccumulator
    -> directives -> mood sink
"""

import asyncio
from collections.abc import AsyncIterable, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from loguru import logger

from ..errors import ChatTransportError
from .accumulator import ConversationAccumulator, FinalizeHook
from .decoder import StreamFrameDecoder
from .directives import DirectiveExtractor, DirectiveSink
from .models import ChatMessage, Extraction, ReplyOutcome

DeltaCallback = Callable[[str, ChatMessage], Any]
CompletionCallback = Callable[[ReplyOutcome], Any]


@dataclass(frozen=True)
class PersistenceFailure:
    """A persistence task that raised."""

    description: str
    error: BaseException


class PersistenceQueue:
    """Fire-and-forget persistence with observable failures.

    Submitted coroutines run as tasks on the current event loop. The caller
    never waits for them while streaming; failures are logged and recorded.
    drain() waits for everything submitted so far.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._failures: list[PersistenceFailure] = []

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def failures(self) -> list[PersistenceFailure]:
        return list(self._failures)

    def submit(self, operation: Awaitable[Any], description: str) -> asyncio.Task[None]:
        """Schedule a persistence coroutine."""
        task = asyncio.ensure_future(self._run(operation, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every submitted task has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks)

    async def _run(self, operation: Awaitable[Any], description: str) -> None:
        try:
            await operation
        except Exception as e:
            logger.opt(exception=e).error(f"Persistence failed: {description}")
            self._failures.append(PersistenceFailure(description, e))
        else:
            logger.debug(f"Persisted: {description}")


async def consume_reply(
    chunks: AsyncIterable[bytes],
    *,
    mood_sink: DirectiveSink | None = None,
    message_sink: FinalizeHook | None = None,
    on_delta: DeltaCallback | None = None,
    on_complete: CompletionCallback | None = None,
) -> ReplyOutcome:
    """Stream one assistant turn.

    Args:
        chunks: Raw response body of the chat endpoint
        mood_sink: Called once per extracted mood directive
        message_sink: Called with the finalized assistant message
        on_delta: Called with each clean text piece and the growing message
        on_complete: Called exactly once with the outcome, whether the stream
            completed, failed or was cancelled

    Returns:
        ReplyOutcome; transport errors are reported in ``outcome.error``
        together with whatever text had arrived before the failure
    """
    decoder = StreamFrameDecoder()
    extractor = DirectiveExtractor(sink=mood_sink)
    accumulator = ConversationAccumulator(on_finalize=message_sink)
    outcome = ReplyOutcome()

    def apply(extraction: Extraction) -> None:
        if not extraction.text:
            return
        message = accumulator.append(extraction.text)
        if on_delta is not None and message is not None:
            on_delta(extraction.text, message)

    try:
        async with aclosing(decoder.decode(chunks)) as deltas:
            async for delta in deltas:
                apply(extractor.feed(delta.text))
        apply(extractor.flush())
        outcome.completed = decoder.terminated
        if not decoder.terminated:
            logger.debug("Stream ended without a terminator frame")
    except ChatTransportError as e:
        logger.error(f"Chat stream failed after {len(accumulator.text)} characters: {e}")
        outcome.error = e
        apply(extractor.flush())
    finally:
        decoder.close()
        outcome.message = accumulator.finalize()
        outcome.directives = extractor.directives
        if on_complete is not None:
            on_complete(outcome)

    return outcome
