"""Job spec and install plan.

The orchestrator describes each job template of an apply plan as::

    {"name": "postgres", "version": "2", "sha1": "badcafe", "blobstore_id": "beefdad"}

``JobSpec.parse`` validates that mapping and pairs it with the release job
name. ``InstallPlan`` derives where the job lives on disk; the same
(template, version) always maps to the same install path, which is what
makes re-installing a version idempotent, while the link path names only
the template so activating another version is a single symlink swap.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spine_agent.apply_plan.manifest import yaml_type_name
from spine_agent.core.errors import InvalidJobSpecError

REQUIRED_SPEC_KEYS = ("name", "version", "sha1", "blobstore_id")


class JobSpec(BaseModel):
    """Identity of one installable job revision."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_name: str = Field(..., min_length=1, description="Release job name")
    template: str = Field(..., alias="name", min_length=1, description="Job template name")
    version: str = Field(..., min_length=1)
    checksum: str = Field(..., alias="sha1", description="SHA-1 of the bundle")
    blobstore_id: str = Field(..., description="Content store key of the bundle")

    @field_validator("version", "checksum", "blobstore_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def parse(cls, job_name: str, raw: Any) -> JobSpec:
        """Validate a raw job template spec.

        Raises:
            InvalidJobSpecError: spec is not a mapping or lacks required keys
        """
        if not isinstance(raw, Mapping):
            raise InvalidJobSpecError(
                f"Invalid job spec, Hash expected, {yaml_type_name(raw)} given"
            )

        missing = [key for key in REQUIRED_SPEC_KEYS if key not in raw]
        if missing:
            raise InvalidJobSpecError(f"Invalid {job_name} job spec, {', '.join(missing)} missing")

        try:
            return cls.model_validate(
                {"job_name": job_name, **{key: raw[key] for key in REQUIRED_SPEC_KEYS}}
            )
        except ValidationError as exc:
            raise InvalidJobSpecError(f"Invalid {job_name} job spec, {exc}", cause=exc) from exc

    @property
    def qualified_name(self) -> str:
        return f"{self.job_name}.{self.template}"


@dataclass(frozen=True)
class InstallPlan:
    """Derived on-disk locations of a job revision."""

    install_path: Path
    link_path: Path

    @classmethod
    def for_spec(cls, base_dir: Path, spec: JobSpec) -> InstallPlan:
        return cls(
            install_path=base_dir / "data" / "jobs" / spec.template / spec.version,
            link_path=base_dir / "jobs" / spec.template,
        )

    @property
    def templates_dir(self) -> Path:
        return self.install_path / "templates"


__all__ = ["InstallPlan", "JobSpec", "REQUIRED_SPEC_KEYS"]
