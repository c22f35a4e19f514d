"""Shared fixtures and helpers for tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from sitegraph.core.site import Site
from sitegraph.render.frontmatter import parse_front_matter
from sitegraph.render.jinja import JinjaTemplates
from sitegraph.render.markdown import MistuneMarkdown
from sitegraph.rules.pages import HtmlPages, MarkdownPages
from sitegraph.rules.parametric import ParametricPages

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Content trees
# ---------------------------------------------------------------------------


def _write_tree(root: Path, files: dict[str, str | bytes]) -> None:
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


@pytest.fixture
def write_tree() -> Callable[[Path, dict[str, str | bytes]], None]:
    """Write ``{relative path: content}`` under a root directory."""
    return _write_tree


@pytest.fixture(autouse=True)
def _no_strict_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SITEGRAPH_STRICT", raising=False)
    monkeypatch.delenv("PANIC_ON_ALL_ERRORS", raising=False)


@pytest.fixture
def make_site(tmp_path: Path) -> Callable[..., Site]:
    """Build a ``Site`` over a temporary content tree with the default adapters.

    ``rules`` defaults to markdown, HTML and parametric pages.
    """

    def _make(
        files: dict[str, str | bytes],
        templates: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Site:
        content = tmp_path / "content"
        template_dir = tmp_path / "templates"
        _write_tree(content, files)
        _write_tree(template_dir, templates or {})
        kwargs.setdefault("rules", [MarkdownPages(), HtmlPages(), ParametricPages()])
        kwargs.setdefault("strict", False)
        return Site(
            str(content),
            str(tmp_path / "public"),
            templates=JinjaTemplates([str(template_dir)]),
            markdown=MistuneMarkdown(),
            front_matter_parser=parse_front_matter,
            **kwargs,
        )

    return _make
