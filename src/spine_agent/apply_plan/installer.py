"""
Job installation: unpack, validate, render, place, link.

``JobInstaller.install(spec, binding)`` turns a job spec into an installed
and activated job revision::

    <base>/data/jobs/<template>/<version>/     ← bundle unpacked + templates rendered
    <base>/jobs/<template> → data/jobs/<template>/<version>

Steps, each aborting the install on failure:

    1. content store unpacks (blobstore_id, sha1) into the install path
    2. job.MF is read and validated; without a binding only a manifest
       declaring no templates is acceptable
    3. every manifest template is rendered from templates/<source> and
       written to <install path>/<destination>
    4. the post_install hook runs from the new install path
    5. the link path is atomically repointed at the install path

Every failure surfaces as ``InstallationError`` whose message starts with
``Failed to install job '<job>.<template>':``. Files written by a failed
attempt are left in place; the next attempt overwrites them, since the same
(template, version) always installs into the same directory.

Tags:
    install, templates, symlink, idempotent, spine-agent
"""

from __future__ import annotations

import os
from pathlib import Path

from spine_agent.apply_plan.binding import ConfigBinding
from spine_agent.apply_plan.manifest import JobManifest, load_manifest
from spine_agent.apply_plan.rendering import TemplateRenderer
from spine_agent.apply_plan.spec import InstallPlan, JobSpec
from spine_agent.core.errors import (
    AgentError,
    ContentStoreError,
    InstallationError,
    ManifestError,
    NoBindingError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRenderError,
)
from spine_agent.core.logging import LogContext, get_logger
from spine_agent.core.protocols import ContentStore, HookRunner
from spine_agent.core.settings import AgentSettings

logger = get_logger(__name__)

POST_INSTALL_HOOK = "post_install"

EXECUTABLE_DIR = "bin"


def replace_symlink(link_path: Path, target: Path) -> None:
    """Point ``link_path`` at ``target``, replacing any existing link atomically."""
    link_path.parent.mkdir(parents=True, exist_ok=True)
    staging = link_path.with_name(f".{link_path.name}.{os.getpid()}.tmp")
    if staging.is_symlink() or staging.exists():
        staging.unlink()
    staging.symlink_to(target.absolute())
    os.replace(staging, link_path)


def harden_tree(root: Path) -> None:
    """Drop every "other" permission bit below ``root``."""
    for directory, _, files in os.walk(root):
        for path in [Path(directory)] + [Path(directory) / name for name in files]:
            if path.is_symlink():
                continue
            mode = path.stat().st_mode & 0o7777
            path.chmod(mode & ~0o007)


class JobInstaller:
    """Installs job revisions below ``settings.base_dir``.

    Parameters
    ----------
    settings
        Agent settings; only the layout and ``harden_permissions`` are used.
    content_store
        Unpacks bundles (``unpack(blobstore_id, checksum, destination)``).
    hooks
        Runs the ``post_install`` hook once templates are in place.
    renderer
        Template renderer, a sandboxed Jinja2 one by default.
    """

    def __init__(
        self,
        settings: AgentSettings,
        content_store: ContentStore,
        hooks: HookRunner,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.settings = settings
        self.content_store = content_store
        self.hooks = hooks
        self.renderer = renderer or TemplateRenderer()

    def plan_for(self, spec: JobSpec) -> InstallPlan:
        return InstallPlan.for_spec(self.settings.base_dir, spec)

    def install(self, spec: JobSpec, binding: ConfigBinding | None = None) -> InstallPlan:
        """Install and activate one job revision.

        Raises:
            InstallationError: any step failed; ``cause`` holds the reason
        """
        plan = self.plan_for(spec)
        job = spec.qualified_name

        with LogContext(job=job, phase="install"):
            logger.info(
                "job.install.started",
                version=spec.version,
                install_path=str(plan.install_path),
                bound=binding is not None,
            )
            try:
                self._unpack(spec, plan)
                manifest = self._load_manifest(plan, binding)
                self._render_templates(manifest, plan, binding)

                if self.settings.harden_permissions:
                    harden_tree(plan.install_path)

                self.hooks.run(POST_INSTALL_HOOK, spec.template, plan.install_path)
                replace_symlink(plan.link_path, plan.install_path)
            except TemplateRenderError as exc:
                raise self._failed(
                    job,
                    f"failed to process configuration template '{exc.template_name}': {exc.message}",
                    exc,
                ) from exc
            except AgentError as exc:
                raise self._failed(job, exc.message, exc) from exc
            except OSError as exc:
                raise self._failed(job, f"system call error: {exc}", exc) from exc

            logger.info("job.install.completed", link_path=str(plan.link_path))
        return plan

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _unpack(self, spec: JobSpec, plan: InstallPlan) -> None:
        try:
            self.content_store.unpack(spec.blobstore_id, spec.checksum, plan.install_path)
        except Exception as exc:
            reason = exc.message if isinstance(exc, AgentError) else str(exc)
            raise ContentStoreError(
                f"failed to unpack job template: {reason}", cause=exc
            ).with_context(path=str(plan.install_path)) from exc
        logger.debug("job.bundle.unpacked", blobstore_id=spec.blobstore_id)

    def _load_manifest(self, plan: InstallPlan, binding: ConfigBinding | None) -> JobManifest:
        try:
            manifest = load_manifest(plan.install_path)
        except ManifestError as exc:
            if binding is None:
                raise NoBindingError() from exc
            raise

        if binding is None and manifest.has_templates:
            raise NoBindingError()
        return manifest

    def _render_templates(
        self, manifest: JobManifest, plan: InstallPlan, binding: ConfigBinding | None
    ) -> None:
        root = plan.install_path.resolve()

        for source, destination in manifest.templates.items():
            source_path = plan.templates_dir / source
            if not source_path.is_file():
                raise TemplateNotFoundError(source)

            output_path = plan.install_path / destination
            if not output_path.resolve().is_relative_to(root):
                raise TemplateError(
                    f"template '{source}' destination '{destination}' is outside the job directory"
                )

            rendered = self.renderer.render(
                source_path.read_text(encoding="utf-8"), binding, name=source
            )

            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(rendered, encoding="utf-8")
            if output_path.parent.name == EXECUTABLE_DIR:
                output_path.chmod(0o755)

            logger.debug("job.template.rendered", template=source, destination=destination)

    @staticmethod
    def _failed(job: str, reason: str, cause: BaseException) -> InstallationError:
        logger.error("job.install.failed", reason=reason)
        return InstallationError(job, reason, cause=cause)


__all__ = ["JobInstaller", "POST_INSTALL_HOOK", "harden_tree", "replace_symlink"]
