"""FlowParser: turns the lines of a script into an ordered directive stream."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tripline.exceptions import ParseError
from tripline.models.directive import Directive
from tripline.parser.lines import LineParser, default_line_parsers

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"


class FlowParser:
    """Runs every line through the first line parser that accepts it.

    Blank lines and ``#`` comments are skipped but still count towards
    line numbers, so errors point at the line the author sees.
    """

    def __init__(self, parsers: Sequence[LineParser] | None = None) -> None:
        self._parsers = list(parsers) if parsers is not None else default_line_parsers()

    def parse(self, lines: Sequence[str]) -> list[Directive]:
        """Parse *lines* in order.

        Raises:
            ParseError: With the message shape
                ``"<cause> on line <index>/<total>"``.
        """
        if lines is None:
            raise TypeError("lines must not be None")
        total = len(lines)
        directives: list[Directive] = []
        for index, line in enumerate(lines, start=1):
            text = (line or "").strip()
            if not text or text.startswith(COMMENT_PREFIX):
                continue
            parser = next((p for p in self._parsers if p.accept(text)), None)
            if parser is None:
                raise ParseError(
                    f'Unable to find matching parser for "{text}" on line {index}/{total}',
                    index,
                )
            try:
                directives.append(parser.parse(index))
            except ParseError as exc:
                raise ParseError(f"{exc.message} on line {index}/{total}", index) from exc
        logger.debug("Parsed %d directive(s) from %d line(s)", len(directives), total)
        return directives
