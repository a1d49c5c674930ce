"""Execution nodes produced by the forest compiler.

RequirementNode tests a target, ActionNode runs a body (then its nested
actions), TriggerNode fires a list of actions once its guards pass.

Structure (children, guards) is only mutable while the compiler builds
the forest; ``freeze()`` seals it. The only state that changes at run
time is last-execution bookkeeping, and that lives in the context's
ExecutionStore keyed by ``(node_id, target.unique_id())``, not here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, ClassVar

from tripline.engine.runtime import (
    ExecutionContext,
    call_guarded,
    check_requirements,
)
from tripline.models.config import ActionConfig, RequirementConfig, TriggerConfig
from tripline.models.directive import DirectiveKind
from tripline.models.result import FutureResult, Result
from tripline.storage.repositories import Acquisition
from tripline.target import Target

logger = logging.getLogger(__name__)


class Node:
    """Common state of every compiled node."""

    kind: ClassVar[DirectiveKind]

    def __init__(
        self,
        identifier: str,
        *,
        node_id: str,
        func: Callable[..., Any] | None = None,
        target_type: type | None = None,
        options: Any = None,
        config: Any = None,
        source_index: int = 0,
    ) -> None:
        self.identifier = identifier
        self.node_id = node_id
        self.func = func
        self.target_type = target_type
        self.options = options
        self.config = config
        self.source_index = source_index
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def accepts(self, target: Target[Any]) -> bool:
        """Whether *target* has the type this node was declared for."""
        if target.is_type(self.target_type):
            return True
        logger.debug(
            "%s '%s' skipped: %s is not %s",
            self.kind.value,
            self.identifier,
            type(target.source).__qualname__,
            getattr(self.target_type, "__qualname__", self.target_type),
        )
        return False

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"{type(self).__name__} '{self.identifier}' is frozen")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r}, line={self.source_index})"


class RequirementNode(Node):
    """A guard: a pure or stateful test over a target."""

    kind = DirectiveKind.REQUIREMENT
    config: RequirementConfig

    def test(self, target: Target[Any], context: ExecutionContext | None = None) -> Result:
        """Return EMPTY on type mismatch, else the wrapped test outcome."""
        if not self.accepts(target):
            return Result.empty()
        context = context or ExecutionContext.default()
        return call_guarded(
            self,
            target,
            context,
            none_means=Result.failure(),
            negate=getattr(self.config, "negated", False),
        )


class _GuardedNode(Node):
    """Node holding ordered guards and ordered child actions."""

    def __init__(self, identifier: str, **kwargs: Any) -> None:
        super().__init__(identifier, **kwargs)
        self._requirements: list[RequirementNode] = []
        self._actions: list[ActionNode] = []

    @property
    def requirements(self) -> tuple[RequirementNode, ...]:
        return tuple(self._requirements)

    @property
    def actions(self) -> tuple[ActionNode, ...]:
        return tuple(self._actions)

    def add_requirement(self, requirement: RequirementNode) -> None:
        self._check_mutable()
        self._requirements.append(requirement)

    def add_requirements(self, requirements: list[RequirementNode]) -> None:
        for requirement in requirements:
            self.add_requirement(requirement)

    def add_action(self, action: ActionNode) -> None:
        self._check_mutable()
        self._actions.append(action)

    def freeze(self) -> None:
        super().freeze()
        for requirement in self._requirements:
            requirement.freeze()
        for action in self._actions:
            action.freeze()

    def test(self, target: Target[Any], context: ExecutionContext | None = None) -> Result:
        """Evaluate only the guards of this node."""
        if not self.accepts(target):
            return Result.empty()
        context = context or ExecutionContext.default()
        return check_requirements(self._requirements, target, context).to_result()


class ActionNode(_GuardedNode):
    """An action with guards, execution policy, and nested child actions.

    Children run after this action's body succeeds, against the same
    target, and their results are combined into this action's result.
    """

    kind = DirectiveKind.ACTION
    config: ActionConfig

    def last_execution(
        self, target: Target[Any], context: ExecutionContext | None = None
    ) -> int | None:
        context = context or ExecutionContext.default()
        return context.store.last_execution(self.node_id, target.unique_id())

    def execute(
        self, target: Target[Any], context: ExecutionContext | None = None
    ) -> FutureResult:
        """Run this action for *target*.

        Order: type check, execute-once, cooldown, guards, then the body
        (now, or after ``delay`` on the context's scheduler), then nested
        actions. Never raises for ordinary denials; they come back as
        EMPTY or FAILURE.
        """
        if not self.accepts(target):
            return FutureResult.completed(Result.empty())
        context = context or ExecutionContext.default()
        config = self.config
        target_id = target.unique_id()

        denial = context.store.check(
            self.node_id,
            target_id,
            context.now(),
            cooldown_ms=config.cooldown_ms,
            execute_once=config.execute_once,
        )
        if denial is not None:
            logger.debug("Action '%s' denied for %r: %s", self.identifier, target, denial)
            return FutureResult.completed(Result.failure(denial))

        guards = check_requirements(self._requirements, target, context)
        if guards.is_failure:
            return FutureResult.completed(guards)

        # Re-checked atomically: a concurrent execution may have won the slot.
        acquisition = context.store.try_acquire(
            self.node_id,
            target_id,
            context.now(),
            cooldown_ms=config.cooldown_ms,
            execute_once=config.execute_once,
        )
        if not acquisition.granted:
            logger.debug(
                "Action '%s' lost execution slot for %r: %s",
                self.identifier,
                target,
                acquisition.reason,
            )
            return FutureResult.completed(Result.failure(acquisition.reason))

        if config.delay_ms > 0 and context.scheduler is not None:
            future = FutureResult.pending()
            logger.debug("Scheduling action '%s' in %dms", self.identifier, config.delay_ms)
            context.scheduler.run_later(
                lambda: self._run_deferred(target, context, acquisition, future),
                config.delay_ms,
            )
            return future

        return self._run(target, context, acquisition)

    def _run(
        self,
        target: Target[Any],
        context: ExecutionContext,
        acquisition: Acquisition,
    ) -> FutureResult:
        target_id = target.unique_id()
        result = call_guarded(self, target, context, none_means=Result.success())
        if result.is_failure:
            context.store.release(self.node_id, target_id, acquisition)
            return FutureResult.completed(result)

        context.store.record(self.node_id, target_id, context.now())
        if not self._actions:
            return FutureResult.completed(result)
        logger.debug(
            "Action '%s' executing %d nested action(s)", self.identifier, len(self._actions)
        )
        nested = [child.execute(target, context) for child in self._actions]
        return FutureResult.all([result, *nested])

    def _run_deferred(
        self,
        target: Target[Any],
        context: ExecutionContext,
        acquisition: Acquisition,
        future: FutureResult,
    ) -> None:
        try:
            inner = self._run(target, context, acquisition)
        except Exception as exc:
            logger.error(
                "Deferred action '%s' raised %s: %s",
                self.identifier,
                type(exc).__name__,
                exc,
            )
            future.complete(Result.failure(f"{type(exc).__name__}: {exc}"))
            return
        inner.add_done_callback(lambda done: future.complete(done.result()))


class TriggerNode(_GuardedNode):
    """A named event source owning guards and the actions it fires."""

    kind = DirectiveKind.TRIGGER
    config: TriggerConfig

    def fire(
        self,
        target: Target[Any],
        context: ExecutionContext | None = None,
        *,
        execute_actions: bool = True,
        on_fire: Callable[[TriggerNode, Target[Any]], None] | None = None,
    ) -> FutureResult:
        """Fire this trigger for *target*.

        Returns the guard failure untouched if a guard fails. Otherwise
        calls *on_fire*, runs every action in order (unless
        *execute_actions* is False) and combines their results with the
        guard outcome.
        """
        if not self.accepts(target):
            return FutureResult.completed(Result.empty())
        context = context or ExecutionContext.default()
        cooldown_ms = self.config.cooldown_ms
        target_id = target.unique_id()

        if cooldown_ms > 0:
            denial = context.store.check(
                self.node_id, target_id, context.now(), cooldown_ms=cooldown_ms
            )
            if denial is not None:
                logger.debug("Trigger '%s' denied for %r: %s", self.identifier, target, denial)
                return FutureResult.completed(Result.failure(denial))

        guards = check_requirements(self._requirements, target, context)
        if guards.is_failure:
            return FutureResult.completed(guards)

        if cooldown_ms > 0:
            acquisition = context.store.try_acquire(
                self.node_id, target_id, context.now(), cooldown_ms=cooldown_ms
            )
            if not acquisition.granted:
                return FutureResult.completed(Result.failure(acquisition.reason))

        if on_fire is not None:
            try:
                on_fire(self, target)
            except Exception:
                logger.exception("Listener of trigger '%s' raised", self.identifier)

        if not execute_actions:
            return FutureResult.completed(guards)
        logger.debug(
            "Trigger '%s' fired for %r, executing %d action(s)",
            self.identifier,
            target,
            len(self._actions),
        )
        return FutureResult.all(
            [guards.to_result(), *(action.execute(target, context) for action in self._actions)]
        )
