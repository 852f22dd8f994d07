"""
Template rendering against a configuration binding.

Job templates use ERB-style delimiters::

    port = <%= properties.db.port %>
    host = <%= p("db.host", "127.0.0.1") %>
    <% if index == 0 %>bootstrap = true<% endif %>
    <%# comments are dropped %>

``TemplateRenderer`` owns the contract the installer relies on: a binding
is mandatory, the bound variables are ``name``, ``index``, ``spec``,
``properties`` and ``p``, and every failure comes back as a
``TemplateRenderError`` carrying the line within the template and the
underlying error text. Expression evaluation itself is delegated to an
``ExpressionEngine``; the default one is a sandboxed Jinja2 environment, so
templates can read their variables but cannot reach private attributes,
import modules or touch the filesystem.

Architecture:
    ::

        TemplateRenderer.render(source, binding, name="foo.erb")
            │  binding is None → NoBindingError (template not compiled)
            ▼
        ExpressionEngine.compile(source, name)   → TemplateRenderError(line)
            ▼
        CompiledTemplate.render(binding.template_variables())
            │  exception inside the template → TemplateRenderError(line)
            ▼
        rendered text

Tags:
    templates, rendering, jinja2, sandbox, spine-agent
"""

from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from typing import Any

from jinja2 import StrictUndefined, Template, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

from spine_agent.apply_plan.binding import ConfigBinding
from spine_agent.core.errors import AgentError, NoBindingError, TemplateRenderError
from spine_agent.core.logging import get_logger
from spine_agent.core.protocols import ExpressionEngine

logger = get_logger(__name__)


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, AgentError):
        return exc.message
    if isinstance(exc, TemplateSyntaxError):
        return exc.message or str(exc)
    return str(exc) or exc.__class__.__name__


def _template_line(tb: TracebackType | None, filename: str) -> int | None:
    """Innermost traceback line that belongs to the template itself."""
    lineno = None
    while tb is not None:
        if tb.tb_frame.f_code.co_filename == filename:
            lineno = tb.tb_lineno
        tb = tb.tb_next
    return lineno


class JinjaTemplate:
    """A compiled template produced by ``JinjaExpressionEngine``."""

    def __init__(self, template: Template, name: str):
        self._template = template
        self.name = name

    def render(self, variables: Mapping[str, Any]) -> str:
        try:
            return self._template.render(**variables)
        except Exception as exc:
            line = _template_line(exc.__traceback__, self._template.filename or "<template>")
            raise TemplateRenderError(
                _error_text(exc), line=line, template_name=self.name, cause=exc
            ) from exc


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


class JinjaExpressionEngine:
    """Sandboxed Jinja2 evaluation with ERB-style delimiters.

    Undefined names fail instead of rendering empty, ``None`` renders as an
    empty string, and trailing newlines of the source are kept.
    """

    def __init__(self) -> None:
        self.environment = SandboxedEnvironment(
            block_start_string="<%",
            block_end_string="%>",
            variable_start_string="<%=",
            variable_end_string="%>",
            comment_start_string="<%#",
            comment_end_string="%>",
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            finalize=_blank_none,
        )

    def compile(self, source: str, name: str) -> JinjaTemplate:
        try:
            template = self.environment.from_string(source)
        except TemplateSyntaxError as exc:
            raise TemplateRenderError(
                _error_text(exc), line=exc.lineno, template_name=name, cause=exc
            ) from exc
        return JinjaTemplate(template, name)


class TemplateRenderer:
    """Renders template text against a ``ConfigBinding``.

    Example::

        renderer = TemplateRenderer()
        binding = ConfigBinding.from_config({"properties": {"a": "b"}})
        renderer.render("<%= properties.a %>", binding, name="a.erb")  # "b"
    """

    def __init__(self, engine: ExpressionEngine | None = None):
        self.engine = engine or JinjaExpressionEngine()

    def render(self, source: str, binding: ConfigBinding | None, *, name: str = "<template>") -> str:
        if binding is None:
            raise NoBindingError()

        compiled = self.engine.compile(source, name)
        rendered = compiled.render(binding.template_variables())
        logger.debug("template.rendered", template=name, size=len(rendered))
        return rendered


__all__ = [
    "JinjaExpressionEngine",
    "JinjaTemplate",
    "TemplateRenderer",
]
