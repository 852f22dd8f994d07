"""Job hook scripts.

A job may ship lifecycle scripts in its ``bin`` directory. The agent runs
them from the revision it just installed, not through the link path, so a
first install and an upgrade both run the new revision's script::

    <base>/data/jobs/<template>/<version>/bin/post_install

A missing script is not an error. A script that exists but is not
executable, cannot be started, times out or exits non-zero raises
``HookError``. Hooks can run more than once for the same revision (after
install and again after configure), so scripts must be idempotent.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from spine_agent.core.errors import ErrorContext, HookError
from spine_agent.core.logging import get_logger

logger = get_logger(__name__)

HOOK_PATH = "/usr/sbin:/usr/bin:/sbin:/bin"


class ScriptHookRunner:
    """Runs ``<job_dir>/bin/<hook>`` scripts."""

    def __init__(self, timeout_seconds: int = 600):
        self.timeout_seconds = timeout_seconds

    def hook_path(self, hook_name: str, job_dir: Path) -> Path:
        return Path(job_dir) / "bin" / hook_name

    def run(self, hook_name: str, template: str, job_dir: Path) -> None:
        path = self.hook_path(hook_name, job_dir)
        if not path.exists():
            logger.debug("hook.skipped", hook=hook_name, template=template, job_dir=str(job_dir))
            return

        context = ErrorContext(template=template, path=str(path))
        if not path.is_file() or not os.access(path, os.X_OK):
            raise HookError(
                f"{hook_name} hook for {template} is not an executable file", context=context
            )

        env = {
            "PATH": HOOK_PATH,
            "SPINE_AGENT_JOB_TEMPLATE": template,
            "SPINE_AGENT_JOB_DIR": str(job_dir),
        }
        try:
            result = subprocess.run(
                [str(path)],
                capture_output=True,
                text=True,
                env=env,
                cwd=job_dir,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise HookError(
                f"{hook_name} hook for {template} timed out after {self.timeout_seconds}s",
                context=context,
                cause=exc,
            ) from exc
        except OSError as exc:
            raise HookError(
                f"{hook_name} hook for {template} could not be started: {exc}",
                context=context,
                cause=exc,
            ) from exc

        if result.returncode != 0:
            raise HookError(
                f"{hook_name} hook for {template} failed, "
                f"exit status {result.returncode}, stderr: {result.stderr.strip()}",
                context=context,
            )

        logger.info("hook.completed", hook=hook_name, template=template, job_dir=str(job_dir))


__all__ = ["ScriptHookRunner"]
