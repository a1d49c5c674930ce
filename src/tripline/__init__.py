"""Tripline: declarative trigger/requirement/action scripts.

Scripts are flat lists of lines. ``@`` lines name triggers, ``?`` lines
name requirements and ``!`` lines name actions; the compiler infers the
nesting from their order and the runtime evaluates the resulting forest
against typed targets.
"""

from tripline._version import __version__

# Core entry point
from tripline.script import Script, TriggerEvent, TriggerListener

# Results
from tripline.models.result import (
    AnyResult,
    CombinedResult,
    FutureResult,
    Result,
    ResultStatus,
)

# Directives and configuration
from tripline.models.directive import Directive, DirectiveKind
from tripline.models.config import (
    ActionConfig,
    OptionConfig,
    RequirementConfig,
    RuntimeSettings,
    TriggerConfig,
    format_duration,
    parse_duration,
)

# Parsing, binding, compiling
from tripline.parser.flow import FlowParser
from tripline.binding import Binder, ConfigBinder
from tripline.engine.compiler import Forest, ForestCompiler

# Nodes and runtime
from tripline.engine.nodes import ActionNode, Node, RequirementNode, TriggerNode
from tripline.engine.runtime import (
    ExecutionContext,
    ImmediateScheduler,
    Invocation,
    Scheduler,
    ThreadingScheduler,
)

# Factories and targets
from tripline.providers import Factory, FactoryProvider, default_provider
from tripline.target import Target, TargetRegistry, default_registry

# Execution stores
from tripline.storage import ExecutionStore, InMemoryExecutionStore, SqlExecutionStore

# Exceptions
from tripline.exceptions import (
    BindError,
    CompileError,
    DuplicateFactoryError,
    FactoryNotFoundError,
    ParseError,
    ResultAlreadyCompletedError,
    SchemaVersionError,
    TriplineError,
)

__all__ = [
    "__version__",
    # Core
    "Script",
    "TriggerEvent",
    "TriggerListener",
    # Results
    "AnyResult",
    "CombinedResult",
    "FutureResult",
    "Result",
    "ResultStatus",
    # Directives and configuration
    "Directive",
    "DirectiveKind",
    "ActionConfig",
    "OptionConfig",
    "RequirementConfig",
    "RuntimeSettings",
    "TriggerConfig",
    "format_duration",
    "parse_duration",
    # Parsing, binding, compiling
    "FlowParser",
    "Binder",
    "ConfigBinder",
    "Forest",
    "ForestCompiler",
    # Nodes and runtime
    "Node",
    "ActionNode",
    "RequirementNode",
    "TriggerNode",
    "ExecutionContext",
    "Invocation",
    "Scheduler",
    "ImmediateScheduler",
    "ThreadingScheduler",
    # Factories and targets
    "Factory",
    "FactoryProvider",
    "default_provider",
    "Target",
    "TargetRegistry",
    "default_registry",
    # Stores
    "ExecutionStore",
    "InMemoryExecutionStore",
    "SqlExecutionStore",
    # Exceptions
    "TriplineError",
    "ParseError",
    "BindError",
    "CompileError",
    "FactoryNotFoundError",
    "DuplicateFactoryError",
    "ResultAlreadyCompletedError",
    "SchemaVersionError",
]
