"""tripline check -- compile a script file and show its forest."""

from __future__ import annotations

from pathlib import Path

import click

from tripline.cli.formatting import format_error, format_forest, get_console


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--quiet", "-q", is_flag=True, help="Only report errors.")
def check(path: Path, quiet: bool) -> None:
    """Compile PATH against the registered identifiers and print its structure."""
    from tripline.engine.compiler import ForestCompiler
    from tripline.exceptions import CompileError

    console = get_console()
    lines = path.read_text(encoding="utf-8").splitlines()
    try:
        forest = ForestCompiler().compile_lines(lines, namespace=str(path))
    except CompileError as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    if quiet:
        return
    format_forest(forest, console, title=str(path))
    console.print(
        f"[green]OK[/green] {len(forest.triggers)} trigger(s), "
        f"{len(forest.actions)} action(s), "
        f"{len(forest.requirements)} requirement(s)",
        highlight=False,
    )
