"""Extraction of embedded mood directives from assistant text.

The model is asked to append a line of the form::

    MOOD_LOG:<mood>,<intensity>[,<note>]

to its replies. The line is internal syntax: it is removed from the text shown
to the user and turned into a MoodDirective. Because replies arrive in small
fragments, a marker may be split across fragments; text that could still turn
into a marker is held back until the next fragment decides it.
"""

from collections.abc import Callable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from ..config import DIRECTIVE_MAX_INTENSITY, DIRECTIVE_MIN_INTENSITY, MOOD_LOG_MARKER
from .models import Extraction, MoodDirective

DirectiveSink = Callable[[MoodDirective], Any]

_VALID_INTENSITIES = {
    str(value) for value in range(DIRECTIVE_MIN_INTENSITY, DIRECTIVE_MAX_INTENSITY + 1)
}


def parse_directive(line: str) -> MoodDirective | None:
    """Parse a directive line that starts with the marker.

    Grammar (whitespace around tokens is ignored)::

        directive := MARKER mood "," digit [ [","] note ]
        mood      := letter+
        digit     := "1" .. "5"
        note      := any text up to end of line

    Returns:
        The parsed directive, or None if the line does not follow the grammar
    """
    if not line.startswith(MOOD_LOG_MARKER):
        return None
    body = line[len(MOOD_LOG_MARKER):].rstrip("\r\n")

    mood, comma, rest = body.partition(",")
    mood = mood.strip()
    if not comma or not mood or not (mood.isascii() and mood.isalpha()):
        return None

    rest = rest.lstrip()
    if not rest or rest[0] not in _VALID_INTENSITIES:
        return None
    intensity, rest = rest[0], rest[1:]

    # The intensity is exactly one digit: "4," "4 " or end of line
    if rest and not (rest[0] == "," or rest[0].isspace()):
        return None
    rest = rest.lstrip()
    if rest.startswith(","):
        rest = rest[1:]

    try:
        return MoodDirective(mood=mood, intensity=int(intensity), note=rest)
    except ValidationError:
        return None


def _partial_marker_length(text: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of the marker."""
    for size in range(min(len(MOOD_LOG_MARKER) - 1, len(text)), 0, -1):
        if text.endswith(MOOD_LOG_MARKER[:size]):
            return size
    return 0


class DirectiveExtractor:
    """Removes mood directives from streamed text and reports them to a sink.

    The sink is called synchronously, once per directive, before the clean
    text of the same step is returned. A failing sink is logged and never
    affects the returned text.
    """

    def __init__(self, sink: DirectiveSink | None = None):
        self._sink = sink
        self._pending = ""
        self._directives: list[MoodDirective] = []

    @property
    def directives(self) -> list[MoodDirective]:
        """All directives extracted so far."""
        return list(self._directives)

    @property
    def pending(self) -> str:
        """Text held back because it may belong to a directive."""
        return self._pending

    def feed(self, fragment: str) -> Extraction:
        """Process one text fragment."""
        return self._scan(self._pending + fragment, final=False)

    def flush(self) -> Extraction:
        """Release held-back text at end of stream.

        A directive still waiting for its end of line is parsed up to the end
        of the text.
        """
        return self._scan(self._pending, final=True)

    def _scan(self, text: str, final: bool) -> Extraction:
        clean: list[str] = []
        found: list[MoodDirective] = []
        self._pending = ""

        while text:
            start = text.find(MOOD_LOG_MARKER)
            if start == -1:
                keep = 0 if final else _partial_marker_length(text)
                clean.append(text[:len(text) - keep])
                self._pending = text[len(text) - keep:]
                break

            clean.append(text[:start])
            end = text.find("\n", start)
            if end == -1:
                if not final:
                    self._pending = text[start:]
                    break
                line, text = text[start:], ""
            else:
                line, text = text[start:end], text[end + 1:]

            directive = parse_directive(line)
            if directive is None:
                logger.debug(f"Dropped malformed mood directive: {line[:100]!r}")
                continue
            found.append(directive)
            self._emit(directive)

        return Extraction(text="".join(clean), directives=tuple(found))

    def _emit(self, directive: MoodDirective) -> None:
        self._directives.append(directive)
        if self._sink is None:
            return
        try:
            self._sink(directive)
        except Exception as e:
            logger.opt(exception=e).error(f"Mood directive sink failed for {directive.mood!r}")
