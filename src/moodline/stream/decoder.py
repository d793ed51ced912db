"""Incremental decoder for server-sent-event chat completion streams.

The decoder owns the partial-line buffer for exactly one stream. Bytes arrive
at arbitrary boundaries; only complete lines are interpreted, and a data line
whose JSON payload does not parse is held back until more bytes arrive.
"""

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from loguru import logger

from ..config import SSE_COMMENT_PREFIX, SSE_DATA_PREFIX, SSE_DONE_SENTINEL
from .models import DecoderState, StreamDelta


def extract_delta_text(payload: Any) -> str | None:
    """Return ``choices[0].delta.content`` when it is a non-empty string."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def _data_payload(line: str) -> str | None:
    """Classify a line; returns the trimmed payload of a data line, else None."""
    if not line.strip() or line.startswith(SSE_COMMENT_PREFIX):
        return None
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()


class StreamFrameDecoder:
    """Turns raw stream bytes into ordered text deltas.

    States:
        IDLE: nothing buffered
        BUFFERING: a partial line, or a data line awaiting the rest of its
            JSON payload, is held
        COMPLETE: the terminator frame was seen, input ended, or the consumer
            closed the decoder; every further call yields nothing

    Usage:
        decoder = StreamFrameDecoder()
        for chunk in chunks:
            for delta in decoder.feed(chunk):
                print(delta.text, end="")
        decoder.finish()
    """

    def __init__(self) -> None:
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._held_payload: str | None = None
        self._state = DecoderState.IDLE
        self._terminated = False

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state is DecoderState.COMPLETE

    @property
    def terminated(self) -> bool:
        """True when the stream ended with its ``[DONE]`` frame."""
        return self._terminated

    @property
    def pending(self) -> str:
        """Text buffered but not yet interpreted."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[StreamDelta]:
        """Consume one chunk and return the deltas it completed."""
        if self.is_complete:
            return []

        if isinstance(chunk, bytes):
            chunk = self._text_decoder.decode(chunk)
        self._buffer += chunk

        deltas = self._drain()
        self._update_state()
        return deltas

    def finish(self) -> list[StreamDelta]:
        """Give residual buffered content one best-effort pass at end of input."""
        if self.is_complete:
            return []

        self._buffer += self._text_decoder.decode(b"", final=True)
        deltas = self._drain()

        if not self.is_complete:
            residual = self._buffer
            if self._held_payload is not None:
                residual = f"{SSE_DATA_PREFIX} {self._held_payload}\n{residual}"
            for line in residual.split("\n"):
                payload = _data_payload(line.rstrip("\r"))
                if payload is None:
                    continue
                if payload == SSE_DONE_SENTINEL:
                    self._terminated = True
                    break
                try:
                    text = extract_delta_text(json.loads(payload))
                except json.JSONDecodeError:
                    logger.debug(f"Dropping unparsable residual frame: {payload[:100]!r}")
                    continue
                if text:
                    deltas.append(StreamDelta(text=text))

        self.close()
        return deltas

    def close(self) -> None:
        """Release the buffer; the decoder yields nothing afterwards."""
        self._buffer = ""
        self._held_payload = None
        self._text_decoder.reset()
        self._state = DecoderState.COMPLETE

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamDelta]:
        """Decode an async byte stream into deltas.

        Abandoning the iteration closes the decoder, so no partial state
        survives into another stream.
        """
        try:
            async for chunk in chunks:
                for delta in self.feed(chunk):
                    yield delta
                if self.is_complete:
                    break
            for delta in self.finish():
                yield delta
        finally:
            self.close()

    def _drain(self) -> list[StreamDelta]:
        deltas: list[StreamDelta] = []

        if self._held_payload is not None and not self._resume_held(deltas):
            return deltas

        while not self.is_complete:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]

            payload = _data_payload(line)
            if payload is None:
                continue
            if payload == SSE_DONE_SENTINEL:
                logger.debug("Stream terminator received")
                self._terminated = True
                self.close()
                break

            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                # Halt this chunk; the payload may be completed by the next one
                logger.debug(f"Holding back incomplete frame: {payload[:100]!r}")
                self._held_payload = payload
                break

            text = extract_delta_text(data)
            if text:
                deltas.append(StreamDelta(text=text))

        return deltas

    def _resume_held(self, deltas: list[StreamDelta]) -> bool:
        """Retry a held payload joined with the next complete line.

        Returns False while the next line has not fully arrived yet.
        """
        newline = self._buffer.find("\n")
        if newline == -1:
            return False

        continuation = self._buffer[:newline].rstrip("\r")
        held, self._held_payload = self._held_payload, None
        try:
            data = json.loads(f"{held}\n{continuation}", strict=False)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed stream frame: {held[:100]!r}")
            return True

        self._buffer = self._buffer[newline + 1:]
        text = extract_delta_text(data)
        if text:
            deltas.append(StreamDelta(text=text))
        return True

    def _update_state(self) -> None:
        if self.is_complete:
            return
        if self._buffer or self._held_payload is not None:
            self._state = DecoderState.BUFFERING
        else:
            self._state = DecoderState.IDLE
