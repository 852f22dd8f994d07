"""
CLI: ``spine-agent job``: drive a single job through install/configure.

The job spec file holds one job template spec
(``name``/``version``/``sha1``/``blobstore_id``); the config file holds the
apply spec the templates are rendered against (``job``, ``index``,
``properties``, ...). Both may be YAML or JSON.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.table import Table

from spine_agent.apply_plan import ConfigBinding, Job, TemplateRenderer
from spine_agent.core.errors import AgentError
from spine_agent.core.settings import AgentSettings

app = typer.Typer(no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)


# ── Helpers ──────────────────────────────────────────────────────────────


def load_document(path: Path) -> Any:
    """Load a YAML (or JSON) document, exiting with a message on failure."""
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        err_console.print(f"[bold red]Error[/bold red]: cannot read {path}: {exc}")
        raise typer.Exit(code=1) from exc
    except yaml.YAMLError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {path} is not valid YAML: {exc}")
        raise typer.Exit(code=1) from exc


def make_settings(base_dir: Path | None, blobstore_dir: Path | None) -> AgentSettings:
    overrides: dict[str, Any] = {}
    if base_dir is not None:
        overrides["base_dir"] = base_dir
    if blobstore_dir is not None:
        overrides["blobstore_dir"] = blobstore_dir
    return AgentSettings(**overrides)


def make_binding(config: Path | None) -> ConfigBinding | None:
    if config is None:
        return None
    document = load_document(config)
    if document is not None and not isinstance(document, dict):
        err_console.print(f"[bold red]Error[/bold red]: {config} must contain a mapping")
        raise typer.Exit(code=1)
    try:
        return ConfigBinding.from_config(document)
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc


def make_job(
    job_name: str,
    spec_file: Path,
    config: Path | None,
    base_dir: Path | None,
    blobstore_dir: Path | None,
) -> Job:
    try:
        return Job.from_spec(
            job_name,
            load_document(spec_file),
            make_binding(config),
            settings=make_settings(base_dir, blobstore_dir),
        )
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc


def _print_job(job: Job, stanzas: list[Path] | None = None) -> None:
    table = Table(title=f"Job {job.qualified_name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("version", job.spec.version)
    table.add_row("install path", str(job.install_path))
    table.add_row("link path", str(job.link_path))
    for stanza in stanzas or []:
        table.add_row("monit", stanza.name)
    console.print(table)


# ── Commands ─────────────────────────────────────────────────────────────

_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Apply spec to render templates against.")
_BASE_DIR_OPTION = typer.Option(None, "--base-dir", help="Agent base directory.")
_BLOBSTORE_OPTION = typer.Option(None, "--blobstore-dir", help="Local content store directory.")


@app.command("install")
def install(
    job_name: str = typer.Argument(..., help="Release job name."),
    spec_file: Path = typer.Argument(..., help="Job template spec (YAML/JSON)."),
    config: Path | None = _CONFIG_OPTION,
    base_dir: Path | None = _BASE_DIR_OPTION,
    blobstore_dir: Path | None = _BLOBSTORE_OPTION,
) -> None:
    """Fetch, render and link a job template."""
    job = make_job(job_name, spec_file, config, base_dir, blobstore_dir)
    try:
        job.install()
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc
    _print_job(job)


@app.command("configure")
def configure(
    job_name: str = typer.Argument(..., help="Release job name."),
    spec_file: Path = typer.Argument(..., help="Job template spec (YAML/JSON)."),
    index: int = typer.Option(0, "--index", "-i", min=0, help="Job index (monit file order)."),
    config: Path | None = _CONFIG_OPTION,
    base_dir: Path | None = _BASE_DIR_OPTION,
) -> None:
    """Generate and link monit configuration for an installed job."""
    job = make_job(job_name, spec_file, config, base_dir, None)
    try:
        stanzas = job.configure(index)
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc
    _print_job(job, stanzas)


@app.command("apply")
def apply(
    job_name: str = typer.Argument(..., help="Release job name."),
    spec_file: Path = typer.Argument(..., help="Job template spec (YAML/JSON)."),
    index: int = typer.Option(0, "--index", "-i", min=0, help="Job index (monit file order)."),
    config: Path | None = _CONFIG_OPTION,
    base_dir: Path | None = _BASE_DIR_OPTION,
    blobstore_dir: Path | None = _BLOBSTORE_OPTION,
) -> None:
    """Install a job, then configure its monit stanzas."""
    job = make_job(job_name, spec_file, config, base_dir, blobstore_dir)
    try:
        job.install()
        stanzas = job.configure(index)
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc
    _print_job(job, stanzas)


@app.command("render")
def render(
    template: Path = typer.Argument(..., help="Template file to render."),
    config: Path = typer.Option(..., "--config", "-c", help="Apply spec to render against."),
) -> None:
    """Render one template to stdout (for debugging templates)."""
    binding = make_binding(config)
    try:
        source = template.read_text(encoding="utf-8")
        rendered = TemplateRenderer().render(source, binding, name=template.name)
    except OSError as exc:
        err_console.print(f"[bold red]Error[/bold red]: cannot read {template}: {exc}")
        raise typer.Exit(code=1) from exc
    except AgentError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {template.name}: {exc.message}")
        raise typer.Exit(code=1) from exc
    typer.echo(rendered, nl=False)
