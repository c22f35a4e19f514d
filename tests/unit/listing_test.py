"""Unit tests for the page listing and JSON template functions."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from sitegraph.core.site import Site


def _pages() -> dict[str, str | bytes]:
    return {
        "blog/index.md": "---\ntitle: Blog\n---\n",
        "blog/old.md": "---\ntitle: Old\ndate: 2023-01-02T10:00:00AM\ntags: [go]\n---\n",
        "blog/new.md": "---\ntitle: New\ndate: 2024-03-04T09:30:00PM\ntags: [Go, rust]\n---\n",
        "blog/wip.md": "---\ntitle: WIP\ndraft: true\ndate: 2025-01-01T10:00:00AM\n---\n",
        "about.md": "---\ntitle: About\n---\n",
        "data/menu.json": '{"items": ["home", "blog"]}',
    }


class TestListPages:
    def test_newest_first_under_prefix(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        site.scan()
        assert [p.meta.title for p in site.list_pages("blog/")] == ["WIP", "New", "Old"]

    def test_hide_drafts(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        site.scan()
        assert [p.meta.title for p in site.list_pages("blog/", hide_drafts=True)] == ["New", "Old"]

    def test_include_index_and_limit(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        site.scan()
        titles = [p.meta.title for p in site.list_pages("blog/", include_index=True)]
        assert "Blog" in titles
        assert len(site.list_pages(limit=2)) == 2

    def test_tag_filter_matches_by_slug(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        site.scan()
        assert [p.meta.title for p in site.list_pages(tag="go")] == ["New", "Old"]

    def test_all_tags_counts_published_pages(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        site.scan()
        assert site.all_tags() == {"go": 1, "Go": 1, "rust": 1}

    def test_listing_from_a_template(self, make_site: Callable[..., Site]) -> None:
        files = _pages()
        files["blog/index.md"] = (
            "{% for p in ListPages('blog/', hide_drafts=True) %}<a href=\"{{ PageLink(p) }}\">{{ p.meta.title }}</a>\n"
            "{% endfor %}"
        )
        site = make_site(files, path_prefix="/site")
        site.rebuild()
        html = Path(site.output_dir, "blog", "index.html").read_text()
        assert html.index('href="/site/blog/new"') < html.index('href="/site/blog/old"')
        assert "WIP" not in html


class TestReadJson:
    def test_reads_relative_json(self, make_site: Callable[..., Site]) -> None:
        site = make_site(_pages())
        assert site.read_json("data/menu.json") == {"items": ["home", "blog"]}

    @pytest.mark.parametrize("path", ["/etc/passwd.json", "data/menu.yaml"])
    def test_rejects_bad_paths(self, make_site: Callable[..., Site], path: str) -> None:
        site = make_site(_pages())
        with pytest.raises(ValueError):
            site.read_json(path)
