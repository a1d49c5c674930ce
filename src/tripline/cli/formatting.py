"""Rich formatting helpers for the Tripline CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from tripline.engine.nodes import ActionNode, Node, RequirementNode, TriggerNode
from tripline.models.config import format_duration

if TYPE_CHECKING:
    from tripline.engine.compiler import Forest
    from tripline.providers import Factory

_KIND_STYLE = {
    "action": "green",
    "requirement": "yellow",
    "trigger": "cyan",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def _policy(node: Node) -> str:
    parts = []
    config = node.config
    if isinstance(node, (ActionNode, TriggerNode)) and config.cooldown_ms:
        parts.append(f"cooldown {format_duration(config.cooldown_ms)}")
    if isinstance(node, ActionNode):
        if config.delay_ms:
            parts.append(f"delay {format_duration(config.delay_ms)}")
        if config.execute_once:
            parts.append("once")
    if isinstance(node, RequirementNode) and config.negated:
        parts.append("negated")
    return f" [dim]({', '.join(parts)})[/dim]" if parts else ""


def _label(node: Node) -> str:
    kind = node.kind.value
    style = _KIND_STYLE[kind]
    return (
        f"[{style}]{node.kind.prefix}{escape(node.identifier)}[/{style}]"
        f"{_policy(node)} [dim]line {node.source_index}[/dim]"
    )


def _add_children(branch: Tree, node: Node) -> None:
    for requirement in getattr(node, "requirements", ()):
        branch.add(_label(requirement))
    for action in getattr(node, "actions", ()):
        _add_children(branch.add(_label(action)), action)


def format_forest(forest: Forest, console: Console, *, title: str = "script") -> None:
    """Display a compiled forest as a tree: guards first, then actions."""
    if len(forest) == 0:
        console.print("[dim]Empty script.[/dim]")
        return
    root = Tree(f"[bold]{escape(title)}[/bold]")
    for node in forest:
        _add_children(root.add(_label(node)), node)
    console.print(root)


def format_factories(factories: list[Factory], console: Console) -> None:
    """Display registered factories in a table."""
    if not factories:
        console.print("[dim]No identifiers registered.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Kind", style="cyan")
    table.add_column("Identifier")
    table.add_column("Target", style="dim")
    table.add_column("Options", style="dim")
    table.add_column("Description")

    for factory in factories:
        table.add_row(
            factory.kind.value,
            escape(factory.identifier),
            getattr(factory.target_type, "__name__", "any"),
            factory.options_type.__name__ if factory.options_type else "",
            escape(factory.description),
        )

    console.print(table)
