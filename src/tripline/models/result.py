"""Result algebra for requirement tests and action executions.

Every evaluation reports a Result instead of raising: SUCCESS, FAILURE,
or EMPTY (not applicable, e.g. the target has the wrong type). Results
combine by conjunction with EMPTY as the identity element, so any number
of outcomes can be merged without losing their messages.

FutureResult carries a Result that may only become available later,
when a delayed action body has run on a scheduler.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Union

from tripline.exceptions import ResultAlreadyCompletedError

logger = logging.getLogger(__name__)


class ResultStatus(str, enum.Enum):
    """Outcome of a single evaluation."""

    SUCCESS = "success"
    FAILURE = "failure"
    EMPTY = "empty"


def conjoin(statuses: Iterable[ResultStatus]) -> ResultStatus:
    """Fold statuses with logical AND, treating EMPTY as the identity."""
    combined = ResultStatus.EMPTY
    for status in statuses:
        if status is ResultStatus.FAILURE:
            return ResultStatus.FAILURE
        if status is ResultStatus.SUCCESS:
            combined = ResultStatus.SUCCESS
    return combined


@dataclass(frozen=True)
class Result:
    """An immutable outcome with optional diagnostic messages.

    Example::

        Result.success().combine(Result.failure("too far away"))
        # -> Result(status=FAILURE, messages=("too far away",))
    """

    status: ResultStatus = ResultStatus.EMPTY
    messages: tuple[str, ...] = ()

    @classmethod
    def success(cls, *messages: str) -> Result:
        return cls(ResultStatus.SUCCESS, tuple(messages))

    @classmethod
    def failure(cls, *messages: str) -> Result:
        return cls(ResultStatus.FAILURE, tuple(messages))

    @classmethod
    def empty(cls, *messages: str) -> Result:
        return cls(ResultStatus.EMPTY, tuple(messages))

    @classmethod
    def of(cls, passed: bool, *messages: str) -> Result:
        """Wrap a boolean outcome as SUCCESS or FAILURE."""
        return cls.success(*messages) if passed else cls.failure(*messages)

    @property
    def is_success(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status is ResultStatus.FAILURE

    @property
    def is_empty(self) -> bool:
        return self.status is ResultStatus.EMPTY

    def combine(self, other: AnyResult) -> Result:
        """Return the conjunction of this result and *other*."""
        other = to_result(other)
        return Result(
            conjoin((self.status, other.status)),
            self.messages + other.messages,
        )

    def negate(self) -> Result:
        """Swap SUCCESS and FAILURE. EMPTY stays EMPTY."""
        if self.is_success:
            return Result(ResultStatus.FAILURE, self.messages)
        if self.is_failure:
            return Result(ResultStatus.SUCCESS, self.messages)
        return self


@dataclass(frozen=True)
class CombinedResult:
    """Conjunction of an ordered list of results.

    Keeps the constituents so callers can inspect which requirement
    failed. Used for requirement chains.
    """

    results: tuple[Result, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, results: Iterable[AnyResult]) -> CombinedResult:
        flat: list[Result] = []
        for item in results:
            if isinstance(item, CombinedResult):
                flat.extend(item.results)
            else:
                flat.append(item)
        return cls(tuple(flat))

    @property
    def status(self) -> ResultStatus:
        return conjoin(r.status for r in self.results)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(m for r in self.results for m in r.messages)

    @property
    def is_success(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status is ResultStatus.FAILURE

    @property
    def is_empty(self) -> bool:
        return self.status is ResultStatus.EMPTY

    def combine(self, other: AnyResult) -> CombinedResult:
        return CombinedResult.of((self, other))

    def to_result(self) -> Result:
        """Collapse into a single Result carrying every message."""
        return Result(self.status, self.messages)


AnyResult = Union[Result, CombinedResult]


def to_result(value: AnyResult) -> Result:
    if isinstance(value, CombinedResult):
        return value.to_result()
    return value


class FutureResult:
    """A single-assignment Result that may complete after a delay.

    There is no cancellation. A caller that no longer cares about a
    pending result simply ignores its eventual completion.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._value: Result | None = None
        self._callbacks: list[Callable[[FutureResult], None]] = []

    @classmethod
    def pending(cls) -> FutureResult:
        return cls()

    @classmethod
    def completed(cls, value: AnyResult) -> FutureResult:
        future = cls()
        future.complete(value)
        return future

    @classmethod
    def all(cls, futures: Iterable[FutureResult | AnyResult]) -> FutureResult:
        """Combine many futures into one completing when all have completed.

        The combined value is the conjunction of the constituents, in
        their original order. An empty input completes immediately as EMPTY.
        """
        parts = [
            f if isinstance(f, FutureResult) else cls.completed(f) for f in futures
        ]
        combined = cls()
        if not parts:
            combined.complete(Result.empty())
            return combined

        remaining = len(parts)
        lock = threading.Lock()

        def _on_done(_: FutureResult) -> None:
            nonlocal remaining
            with lock:
                remaining -= 1
                last = remaining == 0
            if last:
                combined.complete(CombinedResult.of(p.result() for p in parts))

        for part in parts:
            part.add_done_callback(_on_done)
        return combined

    @property
    def done(self) -> bool:
        with self._condition:
            return self._value is not None

    def complete(self, value: AnyResult) -> None:
        """Assign the final value and run the registered callbacks.

        Raises:
            ResultAlreadyCompletedError: If a value was already assigned.
        """
        with self._condition:
            if self._value is not None:
                raise ResultAlreadyCompletedError(
                    f"FutureResult already completed with {self._value.status.value}"
                )
            self._value = to_result(value)
            callbacks, self._callbacks = self._callbacks, []
            self._condition.notify_all()
        for callback in callbacks:
            self._run_callback(callback)

    def result(self, timeout: float | None = None) -> Result:
        """Block until the value is available and return it.

        Raises:
            TimeoutError: If *timeout* seconds pass without completion.
        """
        with self._condition:
            if not self._condition.wait_for(lambda: self._value is not None, timeout):
                raise TimeoutError("FutureResult did not complete in time")
            assert self._value is not None
            return self._value

    def add_done_callback(self, callback: Callable[[FutureResult], None]) -> None:
        """Call *callback* with this future once it completes.

        Runs immediately in the calling thread if already complete.
        """
        with self._condition:
            if self._value is None:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def combine(self, other: FutureResult | AnyResult) -> FutureResult:
        """Return a new future holding the conjunction of both values."""
        return FutureResult.all((self, other))

    def _run_callback(self, callback: Callable[[FutureResult], None]) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception("FutureResult callback %r raised", callback)

    def __repr__(self) -> str:
        with self._condition:
            state = self._value.status.value if self._value is not None else "pending"
        return f"FutureResult({state})"
