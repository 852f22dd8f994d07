"""
Shared pytest fixtures for spine-agent tests.

This module provides:
- Agent settings rooted in a temporary base directory
- An in-memory content store that materializes bundle files on unpack
- A hook runner that records invocations instead of running scripts
- Factories for job specs and bundles used across the apply-plan tests

Usage:
    def test_install(make_bundle, installer, binding):
        spec = make_bundle(manifest={"templates": {"foo.erb": "foo"}},
                           templates={"foo.erb": "<%= name %>"})
        installer.install(spec, binding)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from spine_agent.apply_plan import ConfigBinding, JobInstaller, JobSpec, MonitConfigurator
from spine_agent.core.errors import ContentStoreError
from spine_agent.core.settings import AgentSettings


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep SPINE_AGENT_* variables and stray .env files out of tests."""
    for key in list(os.environ):
        if key.startswith("SPINE_AGENT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


# =============================================================================
# Collaborator Doubles
# =============================================================================


class FakeContentStore:
    """Content store keyed by (blobstore_id, checksum).

    ``unpack`` writes the registered files below the destination, the way a
    real store would after extracting the bundle.
    """

    def __init__(self) -> None:
        self.bundles: dict[tuple[str, str], dict[str, str]] = {}
        self.calls: list[tuple[str, str, Path]] = []

    def add(self, blobstore_id: str, checksum: str, files: dict[str, str]) -> None:
        self.bundles[(blobstore_id, checksum)] = files

    def unpack(self, blobstore_id: str, checksum: str, destination: Path) -> None:
        self.calls.append((blobstore_id, checksum, destination))
        files = self.bundles.get((blobstore_id, checksum))
        if files is None:
            raise ContentStoreError(f"blob '{blobstore_id}' not found")
        destination.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = destination / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")


class RecordingHookRunner:
    """Hook runner that records calls and optionally fails."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Path]] = []
        self.error: Exception | None = None

    def run(self, hook_name: str, template: str, job_dir: Path) -> None:
        self.calls.append((hook_name, template, job_dir))
        if self.error is not None:
            raise self.error


# =============================================================================
# Settings and Collaborators
# =============================================================================


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    path = tmp_path / "vcap"
    path.mkdir()
    return path


@pytest.fixture
def settings(base_dir: Path) -> AgentSettings:
    return AgentSettings(base_dir=base_dir)


@pytest.fixture
def content_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def hooks() -> RecordingHookRunner:
    return RecordingHookRunner()


@pytest.fixture
def installer(settings, content_store, hooks) -> JobInstaller:
    return JobInstaller(settings, content_store, hooks)


@pytest.fixture
def configurator(settings, hooks) -> MonitConfigurator:
    return MonitConfigurator(settings, hooks)


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def apply_config() -> dict[str, Any]:
    """Apply spec used by most rendering tests."""
    return {
        "job": {"name": "ccdb"},
        "index": 42,
        "key1": "value1",
        "key2": "value2",
        "properties": {"a": "b"},
    }


@pytest.fixture
def binding(apply_config) -> ConfigBinding:
    return ConfigBinding.from_config(apply_config)


@pytest.fixture
def make_bundle(content_store: FakeContentStore) -> Callable[..., JobSpec]:
    """Register a bundle with the fake store and return the matching spec.

    ``manifest`` is dumped to ``job.MF`` unless it is a string (written
    verbatim) or ``None`` (no manifest). ``templates`` go below
    ``templates/``; ``files`` go to the bundle root.
    """

    def _make(
        manifest: Any = None,
        templates: dict[str, str] | None = None,
        files: dict[str, str] | None = None,
        *,
        job_name: str = "ccdb",
        template: str = "postgres",
        version: str = "2",
        blobstore_id: str = "beefdad",
        checksum: str = "badcafe",
    ) -> JobSpec:
        bundle: dict[str, str] = {}
        if isinstance(manifest, str):
            bundle["job.MF"] = manifest
        elif manifest is not None:
            bundle["job.MF"] = yaml.safe_dump(manifest)
        for name, content in (templates or {}).items():
            bundle[f"templates/{name}"] = content
        bundle.update(files or {})

        content_store.add(blobstore_id, checksum, bundle)
        return JobSpec.parse(
            job_name,
            {
                "name": template,
                "version": version,
                "sha1": checksum,
                "blobstore_id": blobstore_id,
            },
        )

    return _make
