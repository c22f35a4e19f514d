from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any

import mistune

from sitegraph.core.paths import slugify
from sitegraph.models import TocEntry

_PLUGINS = ["table", "strikethrough", "task_lists", "footnotes"]
_TAG_RE = re.compile(r"<[^>]+>")


def heading_anchor(text: str) -> str:
    return slugify(html.unescape(_TAG_RE.sub("", text)))


class _AnchoredRenderer(mistune.HTMLRenderer):
    """HTML renderer that gives every heading an ``id`` for TOC links."""

    def heading(self, text: str, level: int, **attrs: Any) -> str:
        anchor = attrs.get("id") or heading_anchor(text)
        return f'<h{level} id="{anchor}">{text}</h{level}>\n'


@dataclass
class MarkdownDocument:
    source: str
    tokens: list[dict[str, Any]] = field(default_factory=list)
    toc: list[TocEntry] = field(default_factory=list)


def _plain_text(tokens: list[dict[str, Any]]) -> str:
    parts: list[str] = []
    for token in tokens:
        if "raw" in token:
            parts.append(token["raw"])
        elif token.get("children"):
            parts.append(_plain_text(token["children"]))
    return "".join(parts)


def extract_toc(tokens: list[dict[str, Any]]) -> list[TocEntry]:
    """Nest the document headings by level."""
    roots: list[TocEntry] = []
    stack: list[TocEntry] = []
    for token in tokens:
        if token.get("type") != "heading":
            continue
        text = _plain_text(token.get("children", []))
        entry = TocEntry(level=token["attrs"]["level"], text=text, anchor=slugify(text))
        while stack and stack[-1].level >= entry.level:
            stack.pop()
        if stack:
            stack[-1].children.append(entry)
        else:
            roots.append(entry)
        stack.append(entry)
    return roots


class MistuneMarkdown:
    """Markdown engine backed by mistune. Implements the ``MarkdownEngine`` protocol."""

    def __init__(self, plugins: list[str] | None = None) -> None:
        plugins = list(_PLUGINS if plugins is None else plugins)
        self._ast = mistune.create_markdown(renderer="ast", plugins=plugins)
        self._html = mistune.create_markdown(renderer=_AnchoredRenderer(escape=False), plugins=plugins)

    def parse(self, source: str) -> MarkdownDocument:
        tokens = self._ast(source)
        return MarkdownDocument(source=source, tokens=tokens, toc=extract_toc(tokens))

    def render(self, document: MarkdownDocument) -> str:
        return self._html(document.source)

    def toc(self, document: MarkdownDocument) -> list[TocEntry]:
        return document.toc
