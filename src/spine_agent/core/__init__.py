"""Agent primitives: errors, logging, settings and collaborator protocols."""

from spine_agent.core.errors import (
    AgentError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    InstallationError,
)
from spine_agent.core.logging import LogContext, configure_logging, get_logger
from spine_agent.core.protocols import ContentStore, ExpressionEngine, HookRunner
from spine_agent.core.settings import AgentSettings

__all__ = [
    "AgentError",
    "AgentSettings",
    "ConfigurationError",
    "ContentStore",
    "ErrorCategory",
    "ErrorContext",
    "ExpressionEngine",
    "HookRunner",
    "InstallationError",
    "LogContext",
    "configure_logging",
    "get_logger",
]
