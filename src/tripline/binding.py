"""Config binder: turns option text into typed config models.

Option text is a flat list of entries separated by whitespace, ``,`` or
``;``. An entry is either a bare positional value or a named value, where
``key=value`` and ``key:value`` are equivalent. The colon form only names
an option the target model declares (by field name or alias); otherwise
the entry is positional text, so ``http://host`` needs no quoting. Quotes
keep spaces inside a value. Dotted keys address nested models::

    foo number=2                 -> {"name": "foo", "number": "2"}
    cooldown:5s, delay=10s       -> {"cooldown": "5s", "delay": "10s"}
    target.radius=4;name:"a b"   -> {"target": {"radius": "4"}, "name": "a b"}

Positional values map onto the model's explicit ``positional`` field list.
Type coercion and validation are left to pydantic.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol, TypeVar

from pydantic import AliasChoices, BaseModel, ValidationError

from tripline.exceptions import BindError

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=BaseModel)

_KEY = re.compile(r"^[A-Za-z_][\w\-]*(\.[A-Za-z_][\w\-]*)*$")
_SEPARATORS = frozenset(" \t,;")


class Binder(Protocol):
    """Interface the forest compiler binds option text through."""

    def bind(self, raw_options: str, config_type: type[ConfigT] | None) -> ConfigT | None:
        ...


def split_entries(raw_options: str) -> list[str]:
    """Split option text into entries, honouring single and double quotes.

    Raises:
        BindError: If a quote is left open.
    """
    entries: list[str] = []
    current: list[str] = []
    quote: str | None = None
    for char in raw_options:
        if quote is not None:
            current.append(char)
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
            current.append(char)
        elif char in _SEPARATORS:
            if current:
                entries.append("".join(current))
                current = []
        else:
            current.append(char)
    if quote is not None:
        raise BindError(f"Unterminated quote in options: {raw_options}")
    if current:
        entries.append("".join(current))
    return entries


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _split_named(entry: str, names: frozenset[str] | None = None) -> tuple[str, str] | None:
    """Return (key, value) when *entry* is a named option, else None.

    With *names*, a ``key:value`` entry only counts as named when the first
    segment of its key is one of *names*, so ``http://host`` or ``a:b`` stay
    positional text. ``key=value`` is always named.
    """
    cuts = sorted(p for p in (entry.find("="), entry.find(":")) if p > 0)
    for cut in cuts:
        key = entry[:cut]
        if not _KEY.match(key):
            continue
        if entry[cut] == ":" and names is not None and key.split(".")[0] not in names:
            continue
        return key, _unquote(entry[cut + 1:])
    return None


def option_names(config_type: type[BaseModel]) -> frozenset[str]:
    """Top-level names an option may be given under: field names and aliases."""
    names: set[str] = set()
    for name, info in config_type.model_fields.items():
        names.add(name)
        if info.alias:
            names.add(info.alias)
        alias = info.validation_alias
        if isinstance(alias, str):
            names.add(alias)
        elif isinstance(alias, AliasChoices):
            names.update(choice for choice in alias.choices if isinstance(choice, str))
    return frozenset(names)


def _assign(data: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    node = data
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            raise BindError(f"Option '{part}' cannot be both a value and a section")
        node = child
    if parts[-1] in node:
        raise BindError(f"Option '{key}' is given more than once")
    node[parts[-1]] = value


def parse_options(
    raw_options: str,
    positional: tuple[str, ...] = (),
    names: frozenset[str] | None = None,
) -> dict[str, Any]:
    """Parse option text into a (possibly nested) mapping.

    *names* restricts which keys the ``key:value`` form recognises; see
    :func:`_split_named`.

    Raises:
        BindError: On unbalanced quotes, duplicate keys, or more positional
            values than *positional* names.
    """
    data: dict[str, Any] = {}
    position = 0
    for entry in split_entries(raw_options):
        named = _split_named(entry, names)
        if named is not None:
            _assign(data, *named)
            continue
        if position >= len(positional):
            raise BindError(
                f"Unexpected positional option '{_unquote(entry)}' "
                f"(accepts {len(positional)} positional value(s))"
            )
        _assign(data, positional[position], _unquote(entry))
        position += 1
    return data


class ConfigBinder:
    """Default binder backed by pydantic validation."""

    def bind(self, raw_options: str, config_type: type[ConfigT] | None) -> ConfigT | None:
        """Bind *raw_options* onto a new instance of *config_type*.

        Returns None when *config_type* is None and no options were given.

        Raises:
            BindError: If the options cannot be parsed or fail validation.
        """
        raw_options = (raw_options or "").strip()
        if config_type is None:
            if raw_options:
                raise BindError(f"Takes no options, got: {raw_options}")
            return None

        positional = tuple(getattr(config_type, "positional", ()))
        data = parse_options(raw_options, positional, option_names(config_type))
        try:
            config = config_type.model_validate(data)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise BindError(
                f"Invalid options for {config_type.__name__}: {details}"
            ) from exc
        logger.debug("Bound %r onto %s", raw_options, config_type.__name__)
        return config
