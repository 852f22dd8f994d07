"""Job manifest (``job.MF``) parsing and monit source discovery.

A job bundle carries a YAML manifest at its root::

    ---
    name: postgres
    templates:
      postgres_ctl.erb: bin/postgres_ctl
      postgresql.conf.erb: config/postgresql.conf

Only ``templates`` matters to the agent; other keys are ignored. Parsing is
all-or-nothing: a ``JobManifest`` is returned only when the document is a
mapping and ``templates`` (if present) is a mapping as well. Each way of
failing has its own error class so the installer can report it precisely.

Monit sources are not declared in the manifest. They are discovered next to
it: ``monit`` is the job's primary source and every ``<stem>.monit`` is an
auxiliary one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from spine_agent.core.errors import (
    InvalidManifestError,
    InvalidTemplatesError,
    MalformedManifestError,
    ManifestNotFoundError,
)

MANIFEST_FILE = "job.MF"
PRIMARY_MONIT_SOURCE = "monit"
EXTRA_MONIT_SUFFIX = ".monit"

_TYPE_NAMES: list[tuple[type, str]] = [
    (bool, "Boolean"),
    (int, "Integer"),
    (float, "Float"),
    (str, "String"),
    (list, "Array"),
    (dict, "Hash"),
    (type(None), "Null"),
]


def yaml_type_name(value: Any) -> str:
    """Name of a parsed YAML value's type as reported in manifest errors."""
    for python_type, name in _TYPE_NAMES:
        if isinstance(value, python_type):
            return name
    return type(value).__name__


@dataclass(frozen=True)
class JobManifest:
    """Validated job manifest.

    Attributes:
        templates: Template source (relative to ``templates/``) → destination
            (relative to the install path), in manifest order
        raw: The full parsed document
    """

    templates: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def has_templates(self) -> bool:
        return bool(self.templates)


def parse_manifest(text: str, path: str | Path = MANIFEST_FILE) -> JobManifest:
    """Parse and validate manifest text.

    Raises:
        MalformedManifestError: YAML syntax error
        InvalidManifestError: top level is not a mapping
        InvalidTemplatesError: ``templates`` is not a mapping
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MalformedManifestError(str(path), cause=exc) from exc

    if not isinstance(document, Mapping):
        raise InvalidManifestError(yaml_type_name(document))

    templates = document.get("templates")
    if templates is None:
        templates = {}
    if not isinstance(templates, Mapping):
        raise InvalidTemplatesError(yaml_type_name(templates))

    return JobManifest(
        templates={str(source): str(destination) for source, destination in templates.items()},
        raw=dict(document),
    )


def load_manifest(install_path: Path) -> JobManifest:
    """Read and parse ``job.MF`` from an unpacked bundle."""
    manifest_path = install_path / MANIFEST_FILE
    if not manifest_path.is_file():
        raise ManifestNotFoundError(str(manifest_path))
    return parse_manifest(manifest_path.read_text(encoding="utf-8"), manifest_path)


@dataclass(frozen=True)
class MonitSource:
    """A monit template found in an install tree.

    ``suffix`` is empty for the primary source and ``_<stem>`` for an
    auxiliary ``<stem>.monit`` source.
    """

    path: Path
    suffix: str = ""

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_primary(self) -> bool:
        return not self.suffix


def discover_monit_sources(install_path: Path) -> list[MonitSource]:
    """Primary ``monit`` source first, then auxiliary ``*.monit`` sources by name."""
    sources = []

    primary = install_path / PRIMARY_MONIT_SOURCE
    if primary.is_file():
        sources.append(MonitSource(primary))

    for candidate in sorted(install_path.glob(f"*{EXTRA_MONIT_SUFFIX}")):
        stem = candidate.name[: -len(EXTRA_MONIT_SUFFIX)]
        if candidate.is_file() and stem:
            sources.append(MonitSource(candidate, suffix=f"_{stem}"))

    return sources


__all__ = [
    "MANIFEST_FILE",
    "JobManifest",
    "MonitSource",
    "discover_monit_sources",
    "load_manifest",
    "parse_manifest",
    "yaml_type_name",
]
