"""Execution runtime: context, schedulers, and result plumbing.

The runtime is what a compiled forest is evaluated against. It owns the
shared execution store (cooldown and execute-once bookkeeping), the
optional scheduler for delayed actions, and the clock. Node classes in
nodes.py call into the helpers here to run user callables without
letting their exceptions escape.

Scheduler boundary: a delayed action body that raises is turned into a
FAILURE result carrying the exception message, so one broken action can
never break the scheduler's queue.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from tripline.models.config import RuntimeSettings
from tripline.models.result import CombinedResult, Result, to_result
from tripline.storage.memory import InMemoryExecutionStore
from tripline.storage.repositories import ExecutionStore

if TYPE_CHECKING:
    from tripline.engine.nodes import Node, RequirementNode
    from tripline.target import Target

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class Scheduler(Protocol):
    """Runs a unit of work no sooner than *delay_ms* from now."""

    def run_later(self, fn: Callable[[], None], delay_ms: int) -> None:
        ...


class ImmediateScheduler:
    """Runs every unit of work synchronously, ignoring the delay."""

    def run_later(self, fn: Callable[[], None], delay_ms: int) -> None:
        fn()


class ThreadingScheduler:
    """Runs work on daemon ``threading.Timer`` threads.

    No ordering is guaranteed between units beyond "not before delay".
    """

    def __init__(self) -> None:
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()

    def run_later(self, fn: Callable[[], None], delay_ms: int) -> None:
        timer: threading.Timer

        def _run() -> None:
            try:
                fn()
            finally:
                with self._lock:
                    self._timers.discard(timer)

        timer = threading.Timer(max(delay_ms, 0) / 1000.0, _run)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()

    @property
    def pending(self) -> int:
        """Number of units not yet run."""
        with self._lock:
            return len(self._timers)

    def join(self, timeout: float | None = None) -> None:
        """Wait for every currently scheduled unit to finish."""
        with self._lock:
            timers = list(self._timers)
        for timer in timers:
            timer.join(timeout)


@dataclass
class ExecutionContext:
    """Everything an evaluation needs besides the target.

    Attributes:
        store: Last-execution bookkeeping, shared by every evaluation that
            uses this context.
        scheduler: Runs delayed action bodies. None runs them immediately.
        clock: Returns epoch milliseconds.
        settings: Script-level runtime settings.
        data: Free-form values handed to action and requirement callables.
    """

    store: ExecutionStore = field(default_factory=InMemoryExecutionStore)
    scheduler: Scheduler | None = None
    clock: Clock = wall_clock_ms
    settings: RuntimeSettings = field(default_factory=RuntimeSettings)
    data: dict[str, Any] = field(default_factory=dict)

    def now(self) -> int:
        return self.clock()

    @classmethod
    def default(cls) -> ExecutionContext:
        """Process-wide context used when a caller passes none."""
        global _default_context
        with _default_lock:
            if _default_context is None:
                _default_context = cls()
            return _default_context


_default_context: ExecutionContext | None = None
_default_lock = threading.Lock()


@dataclass(frozen=True)
class Invocation:
    """Second argument handed to every action body and requirement test."""

    node: Node
    context: ExecutionContext

    @property
    def options(self) -> Any:
        """The node's bound option model (None if it takes no options)."""
        return self.node.options

    @property
    def config(self) -> Any:
        return self.node.config

    @property
    def data(self) -> dict[str, Any]:
        return self.context.data


def coerce_outcome(outcome: Any, *, none_means: Result) -> Result:
    """Normalise what a user callable returned into a Result."""
    if outcome is None:
        return none_means
    if isinstance(outcome, (Result, CombinedResult)):
        return to_result(outcome)
    if isinstance(outcome, bool):
        return Result.of(outcome)
    raise TypeError(
        f"expected Result, bool or None, got {type(outcome).__name__}"
    )


def call_guarded(
    node: Node,
    target: Target[Any],
    context: ExecutionContext,
    *,
    none_means: Result,
    negate: bool = False,
) -> Result:
    """Invoke the node's callable, converting any exception into FAILURE.

    *negate* inverts only what the callable actually returned; a raised
    exception or an unusable return value is FAILURE either way.
    """
    if node.func is None:
        return none_means.negate() if negate else none_means
    try:
        outcome = node.func(target, Invocation(node, context))
        result = coerce_outcome(outcome, none_means=none_means)
        return result.negate() if negate else result
    except Exception as exc:
        logger.error(
            "%s '%s' raised %s: %s",
            node.kind.value.capitalize(),
            node.identifier,
            type(exc).__name__,
            exc,
        )
        return Result.failure(f"{type(exc).__name__}: {exc}")


def check_requirements(
    requirements: Iterable[RequirementNode],
    target: Target[Any],
    context: ExecutionContext,
) -> CombinedResult:
    """Evaluate guards in order as a conjunction.

    Stops at the first FAILURE; later guards are not evaluated.
    """
    results: list[Result] = []
    for requirement in requirements:
        result = requirement.test(target, context)
        results.append(result)
        if result.is_failure:
            logger.debug(
                "Requirement '%s' failed for %r: %s",
                requirement.identifier,
                target,
                list(result.messages),
            )
            break
    return CombinedResult.of(results)
