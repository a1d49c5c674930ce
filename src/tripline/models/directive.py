"""Directive models: one parsed script line each."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class DirectiveKind(str, enum.Enum):
    """Kind of a script line, decided by its leading character."""

    ACTION = "action"
    REQUIREMENT = "requirement"
    TRIGGER = "trigger"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @classmethod
    def from_prefix(cls, prefix: str) -> DirectiveKind:
        for kind, value in _PREFIXES.items():
            if value == prefix:
                return kind
        raise ValueError(f"Unknown directive prefix: {prefix!r}")


_PREFIXES: dict[DirectiveKind, str] = {
    DirectiveKind.ACTION: "!",
    DirectiveKind.REQUIREMENT: "?",
    DirectiveKind.TRIGGER: "@",
}


@dataclass(frozen=True)
class Directive:
    """A single typed script line.

    Immutable: created once per compile pass and discarded afterwards.

    Attributes:
        kind: Action, requirement or trigger.
        identifier: Name the factory is registered under.
        raw_options: Option text for the factory's own config
            (everything after the identifier).
        source_index: 1-based line number, used only for error messages.
        context_options: Option text inside ``(...)`` or ``[...]`` directly
            after the identifier. Holds node policies such as cooldown.
    """

    kind: DirectiveKind
    identifier: str
    raw_options: str = ""
    source_index: int = 0
    context_options: str = ""

    def __str__(self) -> str:
        text = f"{self.kind.prefix}{self.identifier}"
        if self.context_options:
            text += f"({self.context_options})"
        if self.raw_options:
            text += f" {self.raw_options}"
        return text
