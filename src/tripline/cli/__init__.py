"""Tripline CLI -- check scripts and inspect registered identifiers.

This module is NEVER imported from tripline/__init__.py.
It is only loaded via the ``tripline`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import importlib

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install tripline[cli]"
    ) from None

from tripline.cli.formatting import format_error, get_console


@click.group()
@click.option(
    "--plugin",
    "plugins",
    multiple=True,
    envvar="TRIPLINE_PLUGINS",
    help="Module that registers factories on the default provider (repeatable).",
)
@click.pass_context
def cli(ctx: click.Context, plugins: tuple[str, ...]) -> None:
    """Tripline: compile and inspect trigger/requirement/action scripts."""
    ctx.ensure_object(dict)
    _load_plugins(plugins)
    ctx.obj["plugins"] = plugins


def _load_plugins(plugins: tuple[str, ...]) -> None:
    """Import each plugin module so its factories get registered."""
    for name in plugins:
        try:
            importlib.import_module(name)
        except ImportError as e:
            format_error(f"Cannot import plugin '{name}': {e}", get_console())
            raise SystemExit(1) from None


# Register subcommands after cli group is defined
from tripline.cli.commands.check import check  # noqa: E402
from tripline.cli.commands.identifiers import identifiers  # noqa: E402

cli.add_command(check)
cli.add_command(identifiers)
