"""
Structured error types for the spine agent.

Every failure the agent can report while applying a job is a typed error
carrying a category, structured context and the chained cause. The two
phase-scoped wrappers, ``InstallationError`` and ``ConfigurationError``,
render the user-visible messages the orchestrator and operators rely on::

    Failed to install job 'ccdb.postgres': cannot find job manifest /var/vcap/...
    Failed to configure job 'ccdb.postgres': failed to process monit template ...

Manifesto:
    - **Typed Error Hierarchy:** One class per failure condition, not one
      generic error with a message to grep
    - **Stable Messages:** The message text of the wrappers is a contract
    - **Rich Context:** Errors carry job/template/path metadata for logging
    - **Error Chaining:** The lower-level cause is always preserved

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         AgentError                               │
        │             (category, retryable, context, cause)                │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ManifestError          BindingError          TemplateError      │
        │  (PARSE)                (CONFIG)              (TEMPLATE)         │
        │    ManifestNotFound       NoBindingError        TemplateNotFound │
        │    MalformedManifest      PropertyNotFound      TemplateRender   │
        │    InvalidManifest        SpecFieldError                         │
        │    InvalidTemplates                                              │
        │                                                                  │
        │  ContentStoreError      HookError             InvalidJobSpec     │
        │  (STORAGE)              (HOOK)                (VALIDATION)       │
        │                                                                  │
        │  JobError ── InstallationError (INSTALL)                         │
        │          └── ConfigurationError (CONFIGURE)                      │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a lower-level failure:

    >>> try:
    ...     raise ManifestNotFoundError("/var/vcap/data/jobs/postgres/2/job.MF")
    ... except ManifestError as e:
    ...     err = InstallationError("ccdb.postgres", e.message, cause=e)
    >>> str(err)
    "Failed to install job 'ccdb.postgres': cannot find job manifest /var/vcap/data/jobs/postgres/2/job.MF"
    >>> err.cause is err.__cause__
    True

Guardrails:
    ❌ DON'T: Raise bare Exception from apply-plan code
    ✅ DO: Raise the specific subclass and wrap it in the phase error

    ❌ DON'T: Retry inside the agent
    ✅ DO: Surface the error; the orchestrator retries the whole apply cycle

Tags:
    error-handling, exception-hierarchy, error-context, spine-agent
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and log routing.

    Attributes:
        STORAGE: Content store, filesystem errors
        PARSE: Manifest and template syntax errors
        VALIDATION: Job spec shape violations
        CONFIG: Missing binding, unknown properties
        TEMPLATE: Missing or failing configuration templates
        HOOK: Post-install hook failures
        INSTALL: Install phase wrapper
        CONFIGURE: Configure phase wrapper
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    STORAGE = "STORAGE"
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    TEMPLATE = "TEMPLATE"
    HOOK = "HOOK"
    INSTALL = "INSTALL"
    CONFIGURE = "CONFIGURE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set appear in ``to_dict()``; anything that has no
    dedicated field goes into ``metadata``.

    Attributes:
        job: Qualified job name (``<job>.<template>``)
        template: Template name being processed
        path: Filesystem path involved in the failure
        index: Job index on the node
        metadata: Additional key-value pairs
    """

    job: str | None = None
    template: str | None = None
    path: str | None = None
    index: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job", "template", "path", "index"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AgentError(Exception):
    """
    Base exception for all spine agent errors.

    Subclasses set ``default_category`` and ``default_retryable``. The agent
    itself never retries, so ``retryable`` is advisory for the caller.

    Examples:
        >>> error = AgentError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(job="ccdb.postgres").context.job
        'ccdb.postgres'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AgentError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ContentStoreError("blob missing").with_context(
                path="/var/vcap/data/blobs/beefdad"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# MANIFEST ERRORS
# =============================================================================


class ManifestError(AgentError):
    """Job manifest (``job.MF``) could not be loaded."""

    default_category = ErrorCategory.PARSE


class ManifestNotFoundError(ManifestError):
    """The unpacked bundle has no ``job.MF``."""

    default_category = ErrorCategory.STORAGE

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"cannot find job manifest {path}", context=ErrorContext(path=path))


class MalformedManifestError(ManifestError):
    """``job.MF`` is not valid YAML."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        super().__init__(
            f"malformed job manifest {path}",
            context=ErrorContext(path=path),
            cause=cause,
        )


class InvalidManifestError(ManifestError):
    """``job.MF`` parsed but the top level is not a mapping."""

    def __init__(self, actual_type: str):
        self.actual_type = actual_type
        super().__init__(f"invalid job manifest, Hash expected, {actual_type} given")


class InvalidTemplatesError(ManifestError):
    """The ``templates`` section of ``job.MF`` is not a mapping."""

    def __init__(self, actual_type: str):
        self.actual_type = actual_type
        super().__init__(
            f"invalid value for templates in job manifest, Hash expected, {actual_type} given"
        )


# =============================================================================
# BINDING ERRORS
# =============================================================================


class BindingError(AgentError):
    """Configuration binding problem."""

    default_category = ErrorCategory.CONFIG


class NoBindingError(BindingError):
    """Templates must be rendered but no configuration binding was supplied."""

    def __init__(self) -> None:
        super().__init__("unable to bind configuration, no binding provided")


class PropertyNotFoundError(BindingError):
    """A property path is absent from the property tree and no default was given."""

    def __init__(self, paths: str | Iterable[str]):
        if isinstance(paths, str):
            paths = [paths]
        self.paths = list(paths)
        quoted = ", ".join(f"'{path}'" for path in self.paths)
        super().__init__(f"Can't find property {quoted}")


class SpecFieldError(BindingError):
    """A dotted field is absent from the apply spec exposed as ``spec``."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Can't find spec field '{path}'")


# =============================================================================
# TEMPLATE ERRORS
# =============================================================================


class TemplateError(AgentError):
    """Configuration template problem."""

    default_category = ErrorCategory.TEMPLATE


class TemplateNotFoundError(TemplateError):
    """A template declared in the manifest is missing from the bundle."""

    def __init__(self, name: str):
        self.template_name = name
        super().__init__(f"template '{name}' doesn't exist", context=ErrorContext(template=name))


class TemplateRenderError(TemplateError):
    """
    Template evaluation failed.

    Keeps the line within the template source and the underlying error
    text separately so phase wrappers can format them.
    """

    def __init__(
        self,
        error: str,
        *,
        line: int | None = None,
        template_name: str | None = None,
        cause: BaseException | None = None,
    ):
        self.error = error
        self.line = line
        self.template_name = template_name
        super().__init__(
            f"line {line if line is not None else '?'}, error: {error}",
            context=ErrorContext(template=template_name),
            cause=cause,
        )


# =============================================================================
# JOB SPEC AND COLLABORATOR ERRORS
# =============================================================================


class InvalidJobSpecError(AgentError):
    """Job spec supplied by the orchestrator is malformed."""

    default_category = ErrorCategory.VALIDATION


class ContentStoreError(AgentError):
    """Bundle could not be fetched, verified or unpacked."""

    default_category = ErrorCategory.STORAGE


class HookError(AgentError):
    """A job hook script is unusable or exited unsuccessfully."""

    default_category = ErrorCategory.HOOK


# =============================================================================
# PHASE ERRORS
# =============================================================================


class JobError(AgentError):
    """
    Phase-scoped failure for one job.

    The rendered message is ``Failed to <phase> job '<job>': <reason>``;
    ``reason`` keeps the unprefixed text.
    """

    phase = "apply"

    def __init__(self, job: str, reason: str, *, cause: BaseException | None = None):
        self.job = job
        self.reason = reason
        super().__init__(
            f"Failed to {self.phase} job '{job}': {reason}",
            context=ErrorContext(job=job),
            cause=cause,
        )


class InstallationError(JobError):
    """Fetching, validating or placing a job's templates failed."""

    phase = "install"
    default_category = ErrorCategory.INSTALL


class ConfigurationError(JobError):
    """Rendering or placing a job's monit configuration failed."""

    phase = "configure"
    default_category = ErrorCategory.CONFIGURE


__all__ = [
    "AgentError",
    "BindingError",
    "ConfigurationError",
    "ContentStoreError",
    "ErrorCategory",
    "ErrorContext",
    "HookError",
    "InstallationError",
    "InvalidJobSpecError",
    "InvalidManifestError",
    "InvalidTemplatesError",
    "JobError",
    "MalformedManifestError",
    "ManifestError",
    "ManifestNotFoundError",
    "NoBindingError",
    "PropertyNotFoundError",
    "SpecFieldError",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRenderError",
]
