"""Job application: binding, manifest, rendering, install and monit configuration."""

from spine_agent.apply_plan.binding import (
    MISSING,
    ConfigBinding,
    PropertyKind,
    PropertyView,
    kind_of,
    resolve_property,
)
from spine_agent.apply_plan.installer import POST_INSTALL_HOOK, JobInstaller
from spine_agent.apply_plan.job import Job
from spine_agent.apply_plan.manifest import (
    JobManifest,
    MonitSource,
    discover_monit_sources,
    load_manifest,
    parse_manifest,
)
from spine_agent.apply_plan.monit import (
    MonitConfigurator,
    SupervisionStanza,
    declares_mode,
    normalize_stanzas,
)
from spine_agent.apply_plan.rendering import JinjaExpressionEngine, TemplateRenderer
from spine_agent.apply_plan.spec import InstallPlan, JobSpec

__all__ = [
    "MISSING",
    "POST_INSTALL_HOOK",
    "ConfigBinding",
    "InstallPlan",
    "JinjaExpressionEngine",
    "Job",
    "JobInstaller",
    "JobManifest",
    "JobSpec",
    "MonitConfigurator",
    "MonitSource",
    "PropertyKind",
    "PropertyView",
    "SupervisionStanza",
    "TemplateRenderer",
    "declares_mode",
    "discover_monit_sources",
    "kind_of",
    "load_manifest",
    "normalize_stanzas",
    "parse_manifest",
    "resolve_property",
]
