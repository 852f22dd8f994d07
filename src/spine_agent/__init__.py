"""
spine-agent - node-resident job application core.

Fetches job template bundles, renders their configuration templates
against node properties, installs them at deterministic paths and
generates monit supervision stanzas.

Packages:
- spine_agent.core: errors, logging, settings, collaborator protocols
- spine_agent.apply_plan: binding, manifest, rendering, install, monit
"""

__version__ = "0.1.0"

from spine_agent.apply_plan import (  # noqa: E402
    ConfigBinding,
    InstallPlan,
    Job,
    JobInstaller,
    JobManifest,
    JobSpec,
    MonitConfigurator,
    TemplateRenderer,
    normalize_stanzas,
)
from spine_agent.core.errors import (  # noqa: E402
    AgentError,
    ConfigurationError,
    InstallationError,
)
from spine_agent.core.settings import AgentSettings  # noqa: E402

__all__ = [
    "__version__",
    "AgentError",
    "AgentSettings",
    "ConfigBinding",
    "ConfigurationError",
    "InstallPlan",
    "InstallationError",
    "Job",
    "JobInstaller",
    "JobManifest",
    "JobSpec",
    "MonitConfigurator",
    "TemplateRenderer",
    "normalize_stanzas",
]
