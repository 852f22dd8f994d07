"""
Root Typer application for the spine-agent CLI.

Usage::

    spine-agent job install ccdb postgres.yml --config apply.yml
    spine-agent job configure ccdb postgres.yml --config apply.yml --index 3
    spine-agent job apply ccdb postgres.yml --config apply.yml --index 3
    spine-agent job render templates/foo.erb --config apply.yml
    spine-agent monit normalize monit
"""

from __future__ import annotations

import typer
from typer import Typer

from spine_agent.core.logging import configure_logging
from spine_agent.core.settings import AgentSettings

app = Typer(
    name="spine-agent",
    help="spine-agent: install job templates and generate monit configuration.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from spine_agent import __version__

        typer.echo(f"spine-agent {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """spine-agent CLI: apply jobs on this node."""
    settings = AgentSettings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.json_logs,
    )


from spine_agent.cli.jobs import app as jobs_app  # noqa: E402
from spine_agent.cli.monit import app as monit_app  # noqa: E402

app.add_typer(jobs_app, name="job", help="Install, configure and render jobs.")
app.add_typer(monit_app, name="monit", help="Monit configuration helpers.")
