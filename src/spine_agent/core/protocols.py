"""
Collaborator protocols for the spine agent.

The job application core talks to three things it does not own: the
content store that unpacks template bundles, the hook runner that executes
job lifecycle scripts and the expression engine that evaluates templates.
Each is a structural ``Protocol`` so tests and alternative deployments can
supply any object with the right shape.

Architecture:
    ::

        ContentStore Protocol:
        ┌────────────────────────────────────────────────────────────┐
        │ unpack(blobstore_id, checksum, destination) → None         │
        └────────────────────────────────────────────────────────────┘

        HookRunner Protocol:
        ┌────────────────────────────────────────────────────────────┐
        │ run(hook_name, template, job_dir) → None                   │
        └────────────────────────────────────────────────────────────┘

        ExpressionEngine Protocol:
        ┌────────────────────────────────────────────────────────────┐
        │ compile(source, name) → CompiledTemplate                   │
        │ CompiledTemplate.render(variables) → str                   │
        │   failures: TemplateRenderError(line, error)               │
        └────────────────────────────────────────────────────────────┘

Tags:
    protocol, content-store, hooks, templates, spine-agent, contracts
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContentStore(Protocol):
    """
    Fetches a checksum-addressed bundle and unpacks it into a directory.

    Implementations own their own fetch/timeout semantics and raise
    ``ContentStoreError`` (or any exception) on failure; the installer
    only propagates it.
    """

    def unpack(self, blobstore_id: str, checksum: str, destination: Path) -> None:
        ...


@runtime_checkable
class HookRunner(Protocol):
    """Runs a named lifecycle hook from an installed job directory."""

    def run(self, hook_name: str, template: str, job_dir: Path) -> None:
        ...


@runtime_checkable
class CompiledTemplate(Protocol):
    """A template compiled by an ``ExpressionEngine``."""

    def render(self, variables: Mapping[str, Any]) -> str:
        ...


@runtime_checkable
class ExpressionEngine(Protocol):
    """
    Evaluates embedded expressions in template text.

    ``compile`` and ``render`` raise ``TemplateRenderError`` with the line
    within the source and the underlying error text.
    """

    def compile(self, source: str, name: str) -> CompiledTemplate:
        ...


__all__ = [
    "CompiledTemplate",
    "ContentStore",
    "ExpressionEngine",
    "HookRunner",
]
