"""Shared test fixtures for Tripline.

The sample vocabulary itself lives in tests/samples.py so test modules
and fixtures share one copy of the sample classes.
"""

from __future__ import annotations

import pytest

from tripline.engine.compiler import ForestCompiler
from tripline.engine.runtime import ExecutionContext
from tripline.providers import FactoryProvider
from tripline.storage.memory import InMemoryExecutionStore
from tripline.target import Target, TargetRegistry
from tests.samples import ManualClock, Player, PlayerTarget, QueueScheduler, make_provider


@pytest.fixture
def provider() -> FactoryProvider:
    return make_provider()


@pytest.fixture
def compiler(provider: FactoryProvider) -> ForestCompiler:
    return ForestCompiler(provider)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler() -> QueueScheduler:
    return QueueScheduler()


@pytest.fixture
def context(clock: ManualClock) -> ExecutionContext:
    """Context with a manual clock and no scheduler (delays run inline)."""
    return ExecutionContext(store=InMemoryExecutionStore(), clock=clock)


@pytest.fixture
def registry() -> TargetRegistry:
    reg = TargetRegistry(fallback=Target)
    reg.register(Player, PlayerTarget)
    return reg


@pytest.fixture
def steve() -> Player:
    return Player("steve", level=10)


@pytest.fixture
def alex() -> Player:
    return Player("alex", level=2)
