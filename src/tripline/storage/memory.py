"""In-process execution store guarded by a single lock."""

from __future__ import annotations

import threading

from tripline.storage.repositories import Acquisition, ExecutionStore, check_policy


class InMemoryExecutionStore(ExecutionStore):
    """Dict-backed store. Safe to share between threads."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def last_execution(self, node_id: str, target_id: str) -> int | None:
        with self._lock:
            return self._entries.get((node_id, target_id))

    def try_acquire(
        self,
        node_id: str,
        target_id: str,
        now: int,
        *,
        cooldown_ms: int = 0,
        execute_once: bool = False,
    ) -> Acquisition:
        key = (node_id, target_id)
        with self._lock:
            previous = self._entries.get(key)
            reason = check_policy(
                previous, now, cooldown_ms=cooldown_ms, execute_once=execute_once
            )
            if reason is not None:
                return Acquisition(granted=False, reason=reason, previous=previous)
            self._entries[key] = now
        return Acquisition(granted=True, reserved_at=now, previous=previous)

    def record(self, node_id: str, target_id: str, timestamp: int) -> None:
        with self._lock:
            self._entries[(node_id, target_id)] = timestamp

    def release(self, node_id: str, target_id: str, acquisition: Acquisition) -> None:
        if not acquisition.granted:
            return
        key = (node_id, target_id)
        with self._lock:
            if self._entries.get(key) != acquisition.reserved_at:
                return
            if acquisition.previous is None:
                del self._entries[key]
            else:
                self._entries[key] = acquisition.previous

    def clear(self, node_id: str | None = None) -> None:
        with self._lock:
            if node_id is None:
                self._entries.clear()
            else:
                for key in [k for k in self._entries if k[0] == node_id]:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
