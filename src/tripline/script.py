"""Script: a compiled forest bundled with the context it runs in.

This is the entry point most callers need::

    script = Script.compile([
        "@player.join",
        "?level min=5",
        "!greet(once=true) welcome",
    ], provider=provider)

    script.fire("player.join", player)

Raw values are wrapped into Targets through a TargetRegistry. A value
no adapter can wrap is not evaluated and yields an EMPTY result.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from tripline.binding import Binder
from tripline.engine.compiler import Forest, ForestCompiler
from tripline.engine.nodes import ActionNode, RequirementNode, TriggerNode
from tripline.engine.runtime import ExecutionContext
from tripline.models.config import RuntimeSettings
from tripline.models.result import CombinedResult, FutureResult, Result
from tripline.providers import FactoryProvider
from tripline.target import Target, TargetRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TriggerEvent:
    """Passed to trigger listeners when a trigger's guards pass."""

    trigger: TriggerNode
    target: Target[Any]

    @property
    def identifier(self) -> str:
        return self.trigger.identifier


TriggerListener = Callable[[TriggerEvent], None]


class Script:
    """A compiled forest plus its execution context and target registry."""

    def __init__(
        self,
        forest: Forest,
        *,
        context: ExecutionContext | None = None,
        registry: TargetRegistry | None = None,
        name: str | None = None,
    ) -> None:
        self._forest = forest
        self._context = context if context is not None else ExecutionContext()
        self._registry = registry if registry is not None else default_registry
        self._listeners: list[TriggerListener] = []
        self._lock = threading.Lock()
        self.name = name or forest.namespace

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def compile(
        cls,
        lines: Sequence[str],
        *,
        provider: FactoryProvider | None = None,
        binder: Binder | None = None,
        settings: RuntimeSettings | None = None,
        context: ExecutionContext | None = None,
        registry: TargetRegistry | None = None,
        name: str | None = None,
    ) -> Script:
        """Compile *lines* into a ready-to-run Script.

        Raises:
            CompileError: If any line is malformed or unknown.
        """
        forest = ForestCompiler(provider, binder).compile_lines(lines, namespace=name)
        if context is None:
            context = ExecutionContext(settings=settings or RuntimeSettings())
        elif settings is not None:
            context = replace(context, settings=settings)
        return cls(forest, context=context, registry=registry, name=name)

    @classmethod
    def load(cls, path: str | Path, **kwargs: Any) -> Script:
        """Compile the script file at *path*.

        The path doubles as the node namespace, so bookkeeping in a
        persistent store survives recompiling the same file.
        """
        path = Path(path)
        lines = path.read_text(encoding="utf-8").splitlines()
        kwargs.setdefault("name", str(path))
        return cls.compile(lines, **kwargs)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def forest(self) -> Forest:
        return self._forest

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def settings(self) -> RuntimeSettings:
        return self._context.settings

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def wrap(self, value: Any) -> Target[Any] | None:
        return self._registry.wrap(value)

    def test(self, value: Any) -> CombinedResult:
        """Evaluate every guard in the script without running anything.

        Covers top-level requirements and the guards of top-level
        actions and triggers.
        """
        target = self.wrap(value)
        if target is None:
            return CombinedResult.of([Result.empty()])
        results = []
        for node in self._forest:
            if isinstance(node, (RequirementNode, ActionNode, TriggerNode)):
                results.append(node.test(target, self._context))
        return CombinedResult.of(results)

    def execute(self, value: Any) -> FutureResult:
        """Execute every top-level action for *value*.

        Runs regardless of ``settings.execute_actions``; that setting only
        governs actions run as a consequence of :meth:`fire`.
        """
        target = self.wrap(value)
        if target is None:
            return FutureResult.completed(Result.empty())
        return FutureResult.all(
            action.execute(target, self._context) for action in self._forest.actions
        )

    def fire(self, identifier: str, value: Any) -> FutureResult:
        """Fire every trigger registered under *identifier* for *value*."""
        target = self.wrap(value)
        if target is None:
            return FutureResult.completed(Result.empty())
        wanted = identifier.lower()
        triggers = [t for t in self._forest.triggers if t.identifier.lower() == wanted]
        if not triggers:
            logger.debug("Script %s has no trigger '%s'", self.name, identifier)
            return FutureResult.completed(Result.empty())

        with self._lock:
            listeners = list(self._listeners)
        settings = self._context.settings
        run_actions = settings.execute_actions and (settings.auto_trigger or bool(listeners))

        def _notify(trigger: TriggerNode, fired_target: Target[Any]) -> None:
            event = TriggerEvent(trigger=trigger, target=fired_target)
            for listener in listeners:
                listener(event)

        return FutureResult.all(
            trigger.fire(
                target,
                self._context,
                execute_actions=run_actions,
                on_fire=_notify if listeners else None,
            )
            for trigger in triggers
        )

    def on_trigger(self, listener: TriggerListener) -> TriggerListener:
        """Register *listener* for every trigger of this script.

        Usable as a decorator. Listeners run after a trigger's guards pass
        and before its actions.
        """
        with self._lock:
            self._listeners.append(listener)
        return listener

    def remove_listener(self, listener: TriggerListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def combine(self, other: Script) -> Script:
        """Return a Script running both forests in this script's context."""
        combined = Script(
            self._forest + other.forest,
            context=self._context,
            registry=self._registry,
            name=self.name,
        )
        with self._lock:
            combined._listeners.extend(self._listeners)
        with other._lock:
            combined._listeners.extend(other._listeners)
        return combined

    def __repr__(self) -> str:
        return f"Script(name={self.name!r}, nodes={len(self._forest)})"
