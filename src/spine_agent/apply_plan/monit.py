"""
Monit configuration for installed jobs.

Every job may ship a ``monit`` template (and auxiliary ``<stem>.monit``
templates) next to its manifest. ``MonitConfigurator.configure`` renders
them, normalizes the stanzas and publishes one file per source::

    <install path>/0003_ccdb.postgres.monitrc
    <install path>/0003_ccdb.postgres_extra.monitrc
    <base>/monit/job/0003_ccdb.postgres.monitrc       → symlink to the above
    <base>/monit/job/0003_ccdb.postgres_extra.monitrc → symlink to the above

Monit only needs to scan ``<base>/monit/job`` to find every job's stanzas,
and the zero-padded index prefix keeps them in job order.

Stanza normalization
--------------------
The agent owns process lifecycle, so monit must not start or restart
processes on its own. Every ``check`` stanza therefore gets ``mode manual``
unless it already declares a mode::

    check process nats                   check process nats start program
      start program "bla"        ──►     "bla" stop program "bla bla" mode manual
      stop program "bla bla"

A ``mode`` word inside a double-quoted string (a program argument, say) is
not a mode declaration. Blocks are collapsed onto one line and joined with
single spaces, blank lines are dropped.

Tags:
    monit, supervision, stanza, symlink, spine-agent
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from spine_agent.apply_plan.binding import ConfigBinding
from spine_agent.apply_plan.installer import POST_INSTALL_HOOK, harden_tree, replace_symlink
from spine_agent.apply_plan.manifest import MonitSource, discover_monit_sources
from spine_agent.apply_plan.rendering import TemplateRenderer
from spine_agent.apply_plan.spec import InstallPlan, JobSpec
from spine_agent.core.errors import AgentError, ConfigurationError, TemplateRenderError
from spine_agent.core.logging import LogContext, get_logger
from spine_agent.core.protocols import HookRunner
from spine_agent.core.settings import AgentSettings

logger = get_logger(__name__)

MANUAL_MODE = "mode manual"

_CHECK_HEADER = re.compile(r"^check\s+\S+\s+\S+")
_TOKEN = re.compile(r'"[^"]*"|\S+')


def declares_mode(stanza: str) -> bool:
    """True if an unquoted ``mode`` token appears in the stanza."""
    return any(token == "mode" for token in _TOKEN.findall(stanza))


def normalize_stanzas(text: str) -> str:
    """Collapse monit stanzas to single lines, adding ``mode manual`` where missing.

    Lines before the first ``check`` header are kept (joined) but never
    receive a mode.
    """
    preamble: list[str] = []
    blocks: list[list[str]] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _CHECK_HEADER.match(line):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
        else:
            preamble.append(line)

    parts = []
    if preamble:
        parts.append(" ".join(preamble))
    for block in blocks:
        stanza = " ".join(block)
        if not declares_mode(stanza):
            stanza = f"{stanza} {MANUAL_MODE}"
        parts.append(stanza)

    return " ".join(parts)


@dataclass(frozen=True)
class SupervisionStanza:
    """Normalized monit configuration for one source of a job."""

    job_name: str
    segment: str
    index: int
    text: str

    @property
    def filename(self) -> str:
        return f"{self.index:04d}_{self.job_name}.{self.segment}.monitrc"


class MonitConfigurator:
    """Renders, normalizes and publishes monit configuration for installed jobs."""

    def __init__(
        self,
        settings: AgentSettings,
        hooks: HookRunner,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.settings = settings
        self.hooks = hooks
        self.renderer = renderer or TemplateRenderer()

    def configure(self, spec: JobSpec, index: int, binding: ConfigBinding | None) -> list[Path]:
        """Write and link the job's stanza files, then run the post_install hook.

        Returns the written stanza files in source order.

        Raises:
            ConfigurationError: a monit template failed to render or a file
                could not be written
        """
        plan = InstallPlan.for_spec(self.settings.base_dir, spec)
        job = spec.qualified_name

        with LogContext(job=job, phase="configure"):
            logger.info("job.configure.started", index=index)
            try:
                stanzas = [
                    self._build_stanza(spec, source, int(index), binding)
                    for source in discover_monit_sources(plan.install_path)
                ]
                written = [self._publish(plan, stanza) for stanza in stanzas]

                if self.settings.harden_permissions:
                    harden_tree(plan.install_path)

                self.hooks.run(POST_INSTALL_HOOK, spec.template, plan.install_path)
            except TemplateRenderError as exc:
                raise self._failed(
                    job,
                    f"failed to process monit template '{exc.template_name}': {exc.message}",
                    exc,
                ) from exc
            except AgentError as exc:
                raise self._failed(job, exc.message, exc) from exc
            except OSError as exc:
                raise self._failed(job, f"system call error: {exc}", exc) from exc

            logger.info("job.configure.completed", stanzas=len(written))
        return written

    def _build_stanza(
        self, spec: JobSpec, source: MonitSource, index: int, binding: ConfigBinding | None
    ) -> SupervisionStanza:
        rendered = self.renderer.render(
            source.path.read_text(encoding="utf-8"), binding, name=source.name
        )
        return SupervisionStanza(
            job_name=spec.job_name,
            segment=f"{spec.template}{source.suffix}",
            index=index,
            text=normalize_stanzas(rendered),
        )

    def _publish(self, plan: InstallPlan, stanza: SupervisionStanza) -> Path:
        path = plan.install_path / stanza.filename
        path.write_text(stanza.text, encoding="utf-8")
        replace_symlink(self.settings.monit_job_dir / stanza.filename, path)
        logger.debug("monit.stanza.written", file=stanza.filename)
        return path

    @staticmethod
    def _failed(job: str, reason: str, cause: BaseException) -> ConfigurationError:
        logger.error("job.configure.failed", reason=reason)
        return ConfigurationError(job, reason, cause=cause)


__all__ = [
    "MANUAL_MODE",
    "MonitConfigurator",
    "SupervisionStanza",
    "declares_mode",
    "normalize_stanzas",
]
