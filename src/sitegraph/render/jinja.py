from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from sitegraph.core.errors import TemplateRenderError

logger = logging.getLogger(__name__)


class JinjaTemplates:
    """Render page templates and template-enabled content with Jinja2.

    Implements the ``TemplateRenderer`` protocol. A template *entry* is the name
    of a ``{% block %}`` inside the template; an empty entry renders the whole file.
    """

    def __init__(self, folders: Sequence[str], globals: dict[str, Any] | None = None) -> None:
        loader = FileSystemLoader(list(folders))
        self.env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "htm", "xml"]),
            extensions=["jinja2.ext.do"],
        )
        # content bodies are rendered before markdown, escaping would mangle them
        self.source_env = Environment(loader=loader, autoescape=False, extensions=["jinja2.ext.do"])
        for env in (self.env, self.source_env):
            env.globals.update(globals or {})

    def render_template(
        self,
        name: str,
        entry: str,
        params: dict[str, Any],
        funcs: dict[str, Callable[..., Any]] | None = None,
    ) -> str:
        variables = {**(funcs or {}), **params}
        try:
            template = self.env.get_template(name)
            if not entry:
                return template.render(variables)
            block = template.blocks.get(entry)
            if block is None:
                raise TemplateRenderError(f"template {name} has no block {entry!r}", path=template.filename)
            return "".join(block(template.new_context(variables)))
        except TemplateError as e:
            raise TemplateRenderError(f"{name}: {e}", path=getattr(e, "filename", None)) from e

    def render_source(
        self,
        source: str,
        params: dict[str, Any],
        funcs: dict[str, Callable[..., Any]] | None = None,
        name: str | None = None,
    ) -> str:
        variables = {**(funcs or {}), **params}
        try:
            return self.source_env.from_string(source).render(variables)
        except TemplateError as e:
            raise TemplateRenderError(f"{name or '<string>'}: {e}", path=name) from e
