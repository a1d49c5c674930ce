"""Compiler and runtime for directive forests."""

from tripline.engine.compiler import Forest, ForestCompiler
from tripline.engine.nodes import ActionNode, Node, RequirementNode, TriggerNode
from tripline.engine.runtime import (
    ExecutionContext,
    ImmediateScheduler,
    Invocation,
    Scheduler,
    ThreadingScheduler,
)

__all__ = [
    "Forest",
    "ForestCompiler",
    "Node",
    "ActionNode",
    "RequirementNode",
    "TriggerNode",
    "ExecutionContext",
    "Invocation",
    "Scheduler",
    "ImmediateScheduler",
    "ThreadingScheduler",
]
