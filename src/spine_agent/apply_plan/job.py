"""One job of an apply plan.

``Job`` ties a validated spec and its configuration binding to the
installer and the monit configurator so callers can drive a job through
its lifecycle without wiring collaborators themselves::

    settings = AgentSettings(base_dir="/var/vcap")
    binding = ConfigBinding.from_config(apply_spec)
    job = Job.from_spec("ccdb", apply_spec["job"]["templates"][0], binding, settings=settings)
    job.install()
    job.configure(index=0)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from spine_agent.apply_plan.binding import ConfigBinding
from spine_agent.apply_plan.installer import JobInstaller
from spine_agent.apply_plan.monit import MonitConfigurator
from spine_agent.apply_plan.rendering import TemplateRenderer
from spine_agent.apply_plan.spec import InstallPlan, JobSpec
from spine_agent.blobstore import LocalBlobstore
from spine_agent.core.protocols import ContentStore, HookRunner
from spine_agent.core.settings import AgentSettings
from spine_agent.hooks import ScriptHookRunner


class Job:
    """A job template revision together with its configuration binding."""

    def __init__(
        self,
        spec: JobSpec,
        binding: ConfigBinding | None = None,
        *,
        settings: AgentSettings,
        content_store: ContentStore | None = None,
        hooks: HookRunner | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.spec = spec
        self.binding = binding
        self.settings = settings
        self.plan = InstallPlan.for_spec(settings.base_dir, spec)

        hooks = hooks or ScriptHookRunner(settings.hook_timeout_seconds)
        renderer = renderer or TemplateRenderer()
        self.installer = JobInstaller(
            settings,
            content_store or LocalBlobstore(settings.blobs_dir),
            hooks,
            renderer,
        )
        self.configurator = MonitConfigurator(settings, hooks, renderer)

    @classmethod
    def from_spec(
        cls,
        job_name: str,
        raw_spec: Any,
        binding: ConfigBinding | None = None,
        **kwargs: Any,
    ) -> Job:
        """Validate a raw job spec mapping and build the job."""
        return cls(JobSpec.parse(job_name, raw_spec), binding, **kwargs)

    @property
    def name(self) -> str:
        return self.spec.job_name

    @property
    def template(self) -> str:
        return self.spec.template

    @property
    def qualified_name(self) -> str:
        return self.spec.qualified_name

    @property
    def install_path(self) -> Path:
        return self.plan.install_path

    @property
    def link_path(self) -> Path:
        return self.plan.link_path

    def install(self) -> None:
        self.installer.install(self.spec, self.binding)

    def configure(self, index: int) -> list[Path]:
        return self.configurator.configure(self.spec, index, self.binding)

    def __repr__(self) -> str:
        return f"Job({self.qualified_name!r}, version={self.spec.version!r})"


__all__ = ["Job"]
