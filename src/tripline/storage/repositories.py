"""Abstract execution store for per-(node, target) bookkeeping.

No SQLAlchemy imports here -- pure abstract contract plus the policy
check shared by every implementation. Concrete stores live in memory.py
and sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from tripline.models.config import format_duration

ALREADY_EXECUTED = "already executed once"


@dataclass(frozen=True)
class Acquisition:
    """Outcome of :meth:`ExecutionStore.try_acquire`.

    When granted, the store has recorded ``reserved_at`` as the last
    execution and remembers ``previous`` so the slot can be released.
    """

    granted: bool
    reason: str = ""
    reserved_at: int | None = None
    previous: int | None = None


def check_policy(
    last: int | None,
    now: int,
    *,
    cooldown_ms: int = 0,
    execute_once: bool = False,
) -> str | None:
    """Return a denial message, or None when execution is allowed."""
    if last is None:
        return None
    if execute_once:
        return ALREADY_EXECUTED
    if cooldown_ms > 0:
        remaining = last + cooldown_ms - now
        if remaining > 0:
            return f"still on cooldown, {format_duration(remaining)} remaining"
    return None


class ExecutionStore(ABC):
    """Last-execution timestamps keyed by ``(node_id, target_id)``.

    Implementations must make :meth:`try_acquire` atomic per key: two
    concurrent calls for the same node and target can never both be
    granted against the same previous timestamp.
    """

    @abstractmethod
    def last_execution(self, node_id: str, target_id: str) -> int | None:
        """Epoch milliseconds of the last recorded execution, or None."""
        ...

    @abstractmethod
    def try_acquire(
        self,
        node_id: str,
        target_id: str,
        now: int,
        *,
        cooldown_ms: int = 0,
        execute_once: bool = False,
    ) -> Acquisition:
        """Check the policy and, if allowed, record *now* in one step."""
        ...

    @abstractmethod
    def record(self, node_id: str, target_id: str, timestamp: int) -> None:
        """Unconditionally set the last execution timestamp."""
        ...

    @abstractmethod
    def release(self, node_id: str, target_id: str, acquisition: Acquisition) -> None:
        """Undo a granted acquisition if nothing has overwritten it since."""
        ...

    @abstractmethod
    def clear(self, node_id: str | None = None) -> None:
        """Forget bookkeeping for one node, or for every node."""
        ...

    def check(
        self,
        node_id: str,
        target_id: str,
        now: int,
        *,
        cooldown_ms: int = 0,
        execute_once: bool = False,
    ) -> str | None:
        """Non-mutating policy check. Returns a denial message or None."""
        return check_policy(
            self.last_execution(node_id, target_id),
            now,
            cooldown_ms=cooldown_ms,
            execute_once=execute_once,
        )
