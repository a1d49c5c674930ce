"""Factory registry keyed by directive kind and identifier.

Script authors refer to actions, requirements and triggers by identifier.
Plugin code registers the callables behind those identifiers here, either
directly or through the decorator helpers::

    provider = FactoryProvider()

    @provider.action("heal", target=Player, options=HealOptions)
    def heal(target, call):
        target.source.health += call.options.amount

Identifiers are resolved once, at compile time, never at run time.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from tripline.exceptions import DuplicateFactoryError, FactoryNotFoundError
from tripline.models.config import ActionConfig, RequirementConfig, TriggerConfig
from tripline.models.directive import DirectiveKind

if TYPE_CHECKING:
    from tripline.engine.nodes import Node

logger = logging.getLogger(__name__)

# Policy config bound from the (...) part of a line, per kind.
CONTEXT_CONFIG_TYPES: dict[DirectiveKind, type[BaseModel]] = {
    DirectiveKind.ACTION: ActionConfig,
    DirectiveKind.REQUIREMENT: RequirementConfig,
    DirectiveKind.TRIGGER: TriggerConfig,
}


@dataclass(frozen=True)
class Factory:
    """Creates nodes for one identifier.

    Attributes:
        kind: Which directive kind this factory serves.
        identifier: Name used in scripts (matched case-insensitively).
        func: Action body or requirement test. None for triggers, which
            are fired from outside.
        target_type: Values the node applies to. None accepts any target.
        options_type: Pydantic model the line's option text binds onto.
        description: Human-readable summary shown by the CLI.
    """

    kind: DirectiveKind
    identifier: str
    func: Callable[..., Any] | None = None
    target_type: type | None = None
    options_type: type[BaseModel] | None = None
    description: str = ""

    @property
    def config_type(self) -> type[BaseModel]:
        return CONTEXT_CONFIG_TYPES[self.kind]

    def create(
        self,
        *,
        node_id: str,
        options: BaseModel | None,
        config: BaseModel | None,
        source_index: int = 0,
    ) -> Node:
        """Instantiate the node this factory describes."""
        from tripline.engine.nodes import ActionNode, RequirementNode, TriggerNode

        node_cls = {
            DirectiveKind.ACTION: ActionNode,
            DirectiveKind.REQUIREMENT: RequirementNode,
            DirectiveKind.TRIGGER: TriggerNode,
        }[self.kind]
        return node_cls(
            self.identifier,
            node_id=node_id,
            func=self.func,
            target_type=self.target_type,
            options=options,
            config=config if config is not None else self.config_type(),
            source_index=source_index,
        )


class FactoryProvider:
    """Registry of factories, one namespace per directive kind."""

    def __init__(self) -> None:
        self._factories: dict[tuple[DirectiveKind, str], Factory] = {}
        self._lock = threading.Lock()

    def register(self, factory: Factory) -> Factory:
        """Register *factory*.

        Raises:
            DuplicateFactoryError: If the identifier is taken for this kind.
        """
        key = (factory.kind, factory.identifier.lower())
        with self._lock:
            if key in self._factories:
                raise DuplicateFactoryError(factory.kind.value, factory.identifier)
            self._factories[key] = factory
        logger.debug("Registered %s '%s'", factory.kind.value, factory.identifier)
        return factory

    def unregister(self, kind: DirectiveKind, identifier: str) -> None:
        with self._lock:
            self._factories.pop((kind, identifier.lower()), None)

    def get(self, kind: DirectiveKind, identifier: str) -> Factory | None:
        """Return the factory for *identifier*, or None if absent."""
        with self._lock:
            return self._factories.get((kind, identifier.lower()))

    def require(self, kind: DirectiveKind, identifier: str) -> Factory:
        """Like :meth:`get` but raises when the identifier is unknown.

        Raises:
            FactoryNotFoundError: If no factory is registered.
        """
        factory = self.get(kind, identifier)
        if factory is None:
            raise FactoryNotFoundError(kind.value, identifier)
        return factory

    def factories(self, kind: DirectiveKind | None = None) -> list[Factory]:
        """All registered factories, sorted by kind then identifier."""
        with self._lock:
            items = list(self._factories.values())
        if kind is not None:
            items = [f for f in items if f.kind == kind]
        order = list(DirectiveKind)
        return sorted(items, key=lambda f: (order.index(f.kind), f.identifier.lower()))

    def identifiers(self, kind: DirectiveKind) -> list[str]:
        return [f.identifier for f in self.factories(kind)]

    def clear(self) -> None:
        with self._lock:
            self._factories.clear()

    # ------------------------------------------------------------------
    # Decorator helpers
    # ------------------------------------------------------------------

    def action(
        self,
        identifier: str,
        *,
        target: type | None = None,
        options: type[BaseModel] | None = None,
        description: str = "",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register the decorated function as an action body."""
        return self._decorator(DirectiveKind.ACTION, identifier, target, options, description)

    def requirement(
        self,
        identifier: str,
        *,
        target: type | None = None,
        options: type[BaseModel] | None = None,
        description: str = "",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register the decorated function as a requirement test."""
        return self._decorator(DirectiveKind.REQUIREMENT, identifier, target, options, description)

    def trigger(
        self,
        identifier: str,
        *,
        target: type | None = None,
        options: type[BaseModel] | None = None,
        description: str = "",
    ) -> Factory:
        """Register a trigger identifier. Triggers have no body."""
        return self.register(
            Factory(
                kind=DirectiveKind.TRIGGER,
                identifier=identifier,
                target_type=target,
                options_type=options,
                description=description,
            )
        )

    def _decorator(
        self,
        kind: DirectiveKind,
        identifier: str,
        target: type | None,
        options: type[BaseModel] | None,
        description: str,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def wrap(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(
                Factory(
                    kind=kind,
                    identifier=identifier,
                    func=func,
                    target_type=target,
                    options_type=options,
                    description=description or (func.__doc__ or "").strip().split("\n")[0],
                )
            )
            return func

        return wrap


# Process-wide provider used by the CLI and by plugins that don't bring their own.
default_provider = FactoryProvider()
