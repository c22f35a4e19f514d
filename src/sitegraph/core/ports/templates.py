from collections.abc import Callable
from typing import Any, Protocol


class TemplateRenderer(Protocol):
    def render_template(
        self,
        name: str,
        entry: str,
        params: dict[str, Any],
        funcs: dict[str, Callable[..., Any]] | None = None,
    ) -> str: ...

    def render_source(
        self,
        source: str,
        params: dict[str, Any],
        funcs: dict[str, Callable[..., Any]] | None = None,
        name: str | None = None,
    ) -> str: ...
