"""
CLI: ``spine-agent monit``: monit configuration helpers.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console

from spine_agent.apply_plan.monit import normalize_stanzas

app = typer.Typer(no_args_is_help=True)
err_console = Console(stderr=True)


@app.command("normalize")
def normalize(
    source: Path = typer.Argument(..., help="Rendered monit file, or '-' for stdin."),
) -> None:
    """Print the single-line form of a monit file with default modes applied."""
    if str(source) == "-":
        text = sys.stdin.read()
    else:
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            err_console.print(f"[bold red]Error[/bold red]: cannot read {source}: {exc}")
            raise typer.Exit(code=1) from exc
    typer.echo(normalize_stanzas(text))
