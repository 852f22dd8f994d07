"""Agent settings.

Settings are passed to the installer and the monit configurator at
construction time; nothing in the agent reads a global base directory.

Every field can be overridden with a ``SPINE_AGENT_*`` environment variable
or a ``.env`` file::

    SPINE_AGENT_BASE_DIR=/var/vcap
    SPINE_AGENT_HARDEN_PERMISSIONS=true

Layout derived from ``base_dir``::

    <base_dir>/data/jobs/<template>/<version>   install trees
    <base_dir>/jobs/<template>                  active version symlinks
    <base_dir>/monit/job/                       shared stanza directory
    <base_dir>/data/blobs/                      local content store

Tags:
    settings, configuration, pydantic, environment, spine-agent
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentSettings(BaseSettings):
    """Spine agent configuration.

    Fields
    ──────
    base_dir             : Root of the agent's persisted layout
    blobstore_dir        : Directory of the local content store
    log_level            : Structlog log level
    json_logs            : Force JSON (True) / console (False) logs, auto if unset
    harden_permissions   : Strip "other" permissions from install trees
    hook_timeout_seconds : Upper bound for a single hook script run
    """

    model_config = SettingsConfigDict(
        env_prefix="SPINE_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Layout ───────────────────────────────────────────────────
    base_dir: Path = Field(default=Path("/var/vcap"), description="Agent base directory")
    blobstore_dir: Path | None = Field(
        default=None,
        description="Local content store directory (defaults to <base_dir>/data/blobs)",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Install behaviour ────────────────────────────────────────
    harden_permissions: bool = False
    hook_timeout_seconds: int = Field(default=600, ge=1)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def jobs_dir(self) -> Path:
        return self.base_dir / "jobs"

    @property
    def data_jobs_dir(self) -> Path:
        return self.base_dir / "data" / "jobs"

    @property
    def monit_job_dir(self) -> Path:
        return self.base_dir / "monit" / "job"

    @property
    def blobs_dir(self) -> Path:
        return self.blobstore_dir or self.base_dir / "data" / "blobs"
