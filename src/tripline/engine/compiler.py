"""Forest compiler: flat directive stream in, forest of execution nodes out.

Scripts have no block syntax. Structure is inferred from directive kind
and adjacency in one forward pass:

- Requirements collect in a pending list until the next action or
  trigger adopts them as guards. They also end action nesting.
- An action directly after another action (nothing in between) becomes
  a nested child of the open action. Otherwise it is a new top-level
  action, or is appended to every open trigger, and adopts the pending
  requirements.
- A trigger adopts the pending requirements. Triggers stacked with no
  action between them stay open together and all receive the actions
  that follow; stacked triggers without requirements of their own share
  the guards of the trigger above them. Once an open trigger holds an
  action, the next trigger starts a new group. Triggers always end
  action nesting.
- Requirements left pending at the end are dropped, unless the stream
  holds nothing but requirements: then the forest is those requirements.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Sequence
from typing import overload

from tripline.binding import Binder, ConfigBinder
from tripline.engine.nodes import ActionNode, Node, RequirementNode, TriggerNode
from tripline.exceptions import BindError, CompileError, FactoryNotFoundError, ParseError
from tripline.models.directive import Directive, DirectiveKind
from tripline.parser.flow import FlowParser
from tripline.providers import FactoryProvider, default_provider

logger = logging.getLogger(__name__)


class Forest(Sequence[Node]):
    """Ordered top-level nodes of a compiled script.

    Elements are ActionNodes and TriggerNodes in the order they were
    opened, or only RequirementNodes for a requirement-only script.
    """

    def __init__(self, nodes: Iterable[Node] = (), *, namespace: str = "") -> None:
        self._nodes: tuple[Node, ...] = tuple(nodes)
        self.namespace = namespace

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._nodes

    @property
    def actions(self) -> tuple[ActionNode, ...]:
        return tuple(n for n in self._nodes if isinstance(n, ActionNode))

    @property
    def triggers(self) -> tuple[TriggerNode, ...]:
        return tuple(n for n in self._nodes if isinstance(n, TriggerNode))

    @property
    def requirements(self) -> tuple[RequirementNode, ...]:
        return tuple(n for n in self._nodes if isinstance(n, RequirementNode))

    @overload
    def __getitem__(self, index: int) -> Node: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Node]: ...

    def __getitem__(self, index):  # type: ignore[no-untyped-def]
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __add__(self, other: Forest) -> Forest:
        return Forest(self._nodes + tuple(other), namespace=self.namespace)

    def __repr__(self) -> str:
        return f"Forest({list(self._nodes)!r})"


class _Assembly:
    """Mutable state of one compile pass."""

    def __init__(self) -> None:
        self.forest: list[Node] = []
        self.pending: list[RequirementNode] = []
        self.all_requirements: list[RequirementNode] = []
        self.current_action: ActionNode | None = None
        self.open_triggers: list[TriggerNode] = []
        self.group_has_actions = False
        self.only_requirements = True

    def add_requirement(self, node: RequirementNode) -> None:
        self.pending.append(node)
        self.all_requirements.append(node)
        self.current_action = None

    def add_action(self, node: ActionNode) -> None:
        self.only_requirements = False
        if self.current_action is not None:
            self.current_action.add_action(node)
            return

        node.add_requirements(self._take_pending())
        if self.open_triggers:
            for trigger in self.open_triggers:
                trigger.add_action(node)
            self.group_has_actions = True
        else:
            self.forest.append(node)
        self.current_action = node

    def add_trigger(self, node: TriggerNode) -> None:
        self.only_requirements = False
        guards = self._take_pending()
        if self.open_triggers and not self.group_has_actions:
            if not guards:
                guards = list(self.open_triggers[-1].requirements)
            self.open_triggers.append(node)
        else:
            self.open_triggers = [node]
            self.group_has_actions = False
        node.add_requirements(guards)
        self.forest.append(node)
        self.current_action = None

    def finish(self) -> list[Node]:
        if self.only_requirements:
            result: list[Node] = list(self.all_requirements)
        else:
            if self.pending:
                logger.debug("Dropping %d trailing requirement(s)", len(self.pending))
            result = list(self.forest)
        for node in result:
            node.freeze()
        return result

    def _take_pending(self) -> list[RequirementNode]:
        pending, self.pending = self.pending, []
        return pending


class ForestCompiler:
    """Compiles directive streams using a factory provider and a binder.

    Example::

        compiler = ForestCompiler(provider)
        forest = compiler.compile_lines([
            "?health below=10",
            "!heal(cooldown=30s) amount=4",
        ])
    """

    def __init__(
        self,
        provider: FactoryProvider | None = None,
        binder: Binder | None = None,
        parser: FlowParser | None = None,
    ) -> None:
        self._provider = provider if provider is not None else default_provider
        self._binder = binder if binder is not None else ConfigBinder()
        self._parser = parser if parser is not None else FlowParser()

    def compile(
        self,
        directives: Iterable[Directive],
        *,
        namespace: str | None = None,
        total_lines: int | None = None,
    ) -> Forest:
        """Compile *directives* into a Forest in a single forward pass.

        Args:
            directives: Ordered directive stream.
            namespace: Prefix for node ids. Pass a stable name (e.g. the
                script's path) to keep execution bookkeeping valid across
                recompiles and restarts. Defaults to a random id.
            total_lines: Line count shown in error messages. Defaults to
                the highest source index seen.

        Raises:
            CompileError: When a factory is missing or options can't be bound.
        """
        directives = list(directives)
        namespace = namespace or uuid.uuid4().hex[:12]
        if total_lines is None:
            total_lines = max((d.source_index for d in directives), default=0)

        assembly = _Assembly()
        for position, directive in enumerate(directives, start=1):
            node = self._create(directive, namespace, position, total_lines)
            if isinstance(node, RequirementNode):
                assembly.add_requirement(node)
            elif isinstance(node, ActionNode):
                assembly.add_action(node)
            elif isinstance(node, TriggerNode):
                assembly.add_trigger(node)

        forest = Forest(assembly.finish(), namespace=namespace)
        logger.info(
            "Compiled %d directive(s) into %d top-level node(s)",
            len(directives),
            len(forest),
        )
        return forest

    def compile_lines(
        self, lines: Sequence[str], *, namespace: str | None = None
    ) -> Forest:
        """Parse script *lines* and compile them.

        Raises:
            CompileError: For unparsable lines as well as compile failures.
        """
        try:
            directives = self._parser.parse(lines)
        except ParseError as exc:
            raise CompileError(exc.message, exc.source_index or 0) from exc
        return self.compile(directives, namespace=namespace, total_lines=len(lines))

    def _create(
        self,
        directive: Directive,
        namespace: str,
        position: int,
        total_lines: int,
    ) -> Node:
        index = directive.source_index or position
        where = f"on line {index}/{max(total_lines, index)}"

        try:
            factory = self._provider.require(directive.kind, directive.identifier)
            options = self._binder.bind(directive.raw_options, factory.options_type)
            config = self._binder.bind(directive.context_options, factory.config_type)
        except (BindError, FactoryNotFoundError) as exc:
            raise CompileError(f"{exc} {where}", index) from exc

        return factory.create(
            node_id=f"{namespace}:{index}:{directive.kind.value}:{factory.identifier}",
            options=options,
            config=config,
            source_index=index,
        )
