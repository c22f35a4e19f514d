from typing import Any, Protocol

from sitegraph.models import TocEntry


class MarkdownEngine(Protocol):
    def parse(self, source: str) -> Any: ...

    def render(self, document: Any) -> str: ...

    def toc(self, document: Any) -> list[TocEntry]: ...
