"""Line-level parsers: one script line in, one Directive out.

Grammar of a line::

    <prefix><identifier>[(<policy options>) | [<policy options>]] [<options>]

    !heal(cooldown=5s) amount=4
    ?health[negated=true] below=10
    @player.join

The prefix picks the kind (``!`` action, ``?`` requirement, ``@`` trigger).
Policy options go to the node's ActionConfig/RequirementConfig/TriggerConfig;
the trailing options go to the factory's own options model.
"""

from __future__ import annotations

import re
from abc import ABC

from tripline.exceptions import ParseError
from tripline.models.directive import Directive, DirectiveKind

_GRAMMAR = re.compile(
    r"""
    ^(?P<identifier>[A-Za-z0-9_][\w.:\-]*)
    (?:\((?P<paren>[^()]*)\)|\[(?P<bracket>[^\[\]]*)\])?
    (?:\s+(?P<options>.*?))?
    \s*$
    """,
    re.VERBOSE,
)


class LineParser(ABC):
    """Parses lines of a single directive kind.

    Call :meth:`accept` first; :meth:`parse` works on the last accepted line.
    """

    kind: DirectiveKind

    def __init__(self) -> None:
        self._input: str | None = None

    @property
    def input(self) -> str | None:
        """The last accepted line."""
        return self._input

    def accept(self, line: str | None) -> bool:
        """Whether *line* belongs to this parser's kind."""
        if line is None:
            return False
        text = line.strip()
        if len(text) < 2 or text[0] != self.kind.prefix or text[1].isspace():
            return False
        self._input = text
        return True

    def parse(self, source_index: int = 0) -> Directive:
        """Turn the accepted line into a Directive.

        Raises:
            ParseError: If no line was accepted or the line is malformed.
        """
        if self._input is None:
            raise ParseError(f"{type(self).__name__}.parse() called before accept()")
        match = _GRAMMAR.match(self._input[1:])
        if match is None:
            raise ParseError(f'Invalid {self.kind.value} syntax: "{self._input}"')
        context_options = match.group("paren")
        if context_options is None:
            context_options = match.group("bracket") or ""
        return Directive(
            kind=self.kind,
            identifier=match.group("identifier"),
            raw_options=(match.group("options") or "").strip(),
            source_index=source_index,
            context_options=context_options.strip(),
        )


class ActionLineParser(LineParser):
    kind = DirectiveKind.ACTION


class RequirementLineParser(LineParser):
    kind = DirectiveKind.REQUIREMENT


class TriggerLineParser(LineParser):
    kind = DirectiveKind.TRIGGER


def default_line_parsers() -> list[LineParser]:
    return [ActionLineParser(), RequirementLineParser(), TriggerLineParser()]
