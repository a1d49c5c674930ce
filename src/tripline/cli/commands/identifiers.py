"""tripline identifiers -- list registered action/requirement/trigger factories."""

from __future__ import annotations

import click

from tripline.cli.formatting import format_factories, get_console


@click.command()
@click.option(
    "--kind",
    type=click.Choice(["action", "requirement", "trigger"]),
    default=None,
    help="Only show factories of this kind.",
)
def identifiers(kind: str | None) -> None:
    """List every identifier known to the default provider."""
    from tripline.models.directive import DirectiveKind
    from tripline.providers import default_provider

    selected = DirectiveKind(kind) if kind else None
    format_factories(default_provider.factories(selected), get_console())
