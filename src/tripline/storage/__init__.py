"""Execution bookkeeping stores."""

from tripline.storage.memory import InMemoryExecutionStore
from tripline.storage.repositories import Acquisition, ExecutionStore
from tripline.storage.sqlite import SqlExecutionStore

__all__ = [
    "Acquisition",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "SqlExecutionStore",
]
