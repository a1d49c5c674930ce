"""Configuration models for Tripline.

ActionConfig, RequirementConfig and TriggerConfig hold the node policies
written in ``(...)`` after an identifier, e.g. ``!heal(cooldown=5s)``.
RuntimeSettings controls how a compiled Script reacts when triggers fire.

Each config declares its option schema explicitly: field aliases give the
option names, and ``positional`` lists the fields filled by bare values.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_DURATION_PART = re.compile(r"(\d+)(ms|s|m|h|d)", re.IGNORECASE)

_UNIT_MS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}


def parse_duration(value: Any) -> int:
    """Convert a duration option to milliseconds.

    Plain numbers are milliseconds. Strings may carry unit suffixes and be
    compound: ``"250ms"``, ``"5s"``, ``"1m30s"``, ``"2h"``, ``"1d"``.

    Raises:
        ValueError: If the value is negative or not a recognisable duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        ms = int(value)
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.isdigit():
            ms = int(text)
        else:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"Invalid duration: {value!r}")
            ms = sum(int(n) * _UNIT_MS[u] for n, u in parts)
    else:
        raise ValueError(f"Invalid duration: {value!r}")
    if ms < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return ms


def format_duration(ms: int) -> str:
    """Render milliseconds as a short human string, e.g. ``1m 30s``."""
    if ms < 1000:
        return f"{ms}ms"
    parts = []
    remaining = ms
    for unit in ("d", "h", "m", "s"):
        size = _UNIT_MS[unit]
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts)


class OptionConfig(BaseModel):
    """Base for every config bound from script option text."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    positional: ClassVar[tuple[str, ...]] = ()


class ActionConfig(OptionConfig):
    """Execution policy of an action node."""

    cooldown_ms: int = Field(
        default=0, validation_alias=AliasChoices("cooldown", "cooldown_ms")
    )
    delay_ms: int = Field(
        default=0, validation_alias=AliasChoices("delay", "delay_ms")
    )
    execute_once: bool = Field(
        default=False, validation_alias=AliasChoices("execute_once", "once")
    )

    @field_validator("cooldown_ms", "delay_ms", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> int:
        return parse_duration(value)


class RequirementConfig(OptionConfig):
    """Evaluation policy of a requirement node."""

    negated: bool = Field(
        default=False, validation_alias=AliasChoices("negated", "negate", "not")
    )


class TriggerConfig(OptionConfig):
    """Firing policy of a trigger node."""

    cooldown_ms: int = Field(
        default=0, validation_alias=AliasChoices("cooldown", "cooldown_ms")
    )

    @field_validator("cooldown_ms", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> int:
        return parse_duration(value)


class RuntimeSettings(BaseModel):
    """Per-script runtime settings."""

    auto_trigger: bool = True  # run trigger actions even with no listeners
    execute_actions: bool = True  # False: fire() only checks guards and notifies
