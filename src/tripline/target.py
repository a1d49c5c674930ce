"""Typed target wrappers and the adapter registry that produces them.

Nodes never inspect raw values to decide whether they apply. They ask the
Target wrapper whether its source matches their declared target type, and
key their bookkeeping on the wrapper's stable ``unique_id()``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Target(Generic[T]):
    """A runtime value plus a stable identity.

    Subclass and override :meth:`unique_id` when the wrapped value has a
    natural identity (a player UUID, a database key). The default uses
    ``id()`` of the source, which is only stable for the source's lifetime.

    Example::

        class PlayerTarget(Target[Player]):
            def unique_id(self) -> str:
                return str(self.source.uuid)
    """

    def __init__(self, source: T) -> None:
        self._source = source

    @property
    def source(self) -> T:
        return self._source

    def unique_id(self) -> str:
        return f"{type(self._source).__qualname__}:{id(self._source)}"

    def is_type(self, target_type: type | None) -> bool:
        """Whether the wrapped value is an instance of *target_type*.

        ``None`` and ``object`` accept every target.
        """
        if target_type is None or target_type is object:
            return True
        return isinstance(self._source, target_type)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Target):
            return NotImplemented
        return self.unique_id() == other.unique_id()

    def __hash__(self) -> int:
        return hash(self.unique_id())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._source!r})"


TargetAdapter = Callable[[Any], "Target[Any] | None"]


class TargetRegistry:
    """Maps native value types to Target adapters.

    ``wrap()`` walks the value's MRO so the most specific registered
    adapter wins. Values that already are Targets pass through unchanged.
    """

    def __init__(self, *, fallback: TargetAdapter | None = None) -> None:
        self._adapters: dict[type, TargetAdapter] = {}
        self._fallback = fallback
        self._lock = threading.Lock()

    def register(self, native_type: type, adapter: TargetAdapter) -> None:
        """Register *adapter* for *native_type* (replacing any previous one)."""
        with self._lock:
            self._adapters[native_type] = adapter

    def unregister(self, native_type: type) -> None:
        with self._lock:
            self._adapters.pop(native_type, None)

    def wrap(self, value: Any) -> Target[Any] | None:
        """Wrap *value* in a Target, or return None if no adapter matches."""
        if value is None:
            return None
        if isinstance(value, Target):
            return value
        with self._lock:
            adapters = dict(self._adapters)
        for klass in type(value).__mro__:
            adapter = adapters.get(klass)
            if adapter is not None:
                return adapter(value)
        if self._fallback is not None:
            return self._fallback(value)
        logger.debug("No target adapter for %s", type(value).__qualname__)
        return None


# Wraps any non-None value into a plain Target unless a specific adapter is registered.
default_registry = TargetRegistry(fallback=Target)
