"""Unit tests for co-located asset discovery, placement and dedup."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Callable
from pathlib import Path

from sitegraph.core.assets import (
    AssetAction,
    AssetMapping,
    DefaultAssetHandler,
    asset_url,
    content_hash,
    could_own,
    discover_assets,
    process_asset_mappings,
)
from sitegraph.core.site import Site

_PNG = b"\x89PNG\r\n\x1a\nfake image"


class TestDiscovery:
    def test_site_patterns_attach_siblings(self, make_site: Callable[..., Site]) -> None:
        site = make_site(
            {"blog/post.md": "# Post", "blog/diagram.png": _PNG, "blog/other.md": "# Other"},
            asset_patterns=["*.png", "*.md"],
        )
        site.scan()
        post = site.get_resource(os.path.join(site.content_root, "blog", "post.md"))
        assert [a.name for a in post.assets] == ["diagram.png"]
        assert post.assets[0].asset_of is post

    def test_front_matter_replaces_site_patterns(self, make_site: Callable[..., Site]) -> None:
        site = make_site(
            {"post.md": "---\nassets: ['*.svg']\n---\n# Post", "a.png": _PNG, "b.svg": "<svg/>"},
            asset_patterns=["*.png"],
        )
        site.scan()
        post = site.get_resource(os.path.join(site.content_root, "post.md"))
        assert [a.name for a in post.assets] == ["b.svg"]

    def test_non_pages_have_no_assets(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"style.css": "a{}", "a.png": _PNG}, asset_patterns=["*.png"])
        site.scan()
        assert discover_assets(site, site.get_resource(os.path.join(site.content_root, "style.css"))) == []


class TestPlacement:
    def test_page_asset_lands_next_to_output(self, make_site: Callable[..., Site]) -> None:
        site = make_site(
            {"blog/post.md": "![d]({{ AssetURL('diagram.png') }})", "blog/diagram.png": _PNG},
            asset_patterns=["*.png"],
        )
        ctx = site.rebuild()
        assert ctx.errors == []
        out = Path(site.output_dir, "blog", "post")
        assert (out / "diagram.png").read_bytes() == _PNG
        assert 'src="./diagram.png"' in (out / "index.html").read_text()
        # claimed as an asset, so not copied verbatim as well
        assert not Path(site.output_dir, "blog", "diagram.png").exists()

    def test_index_page_asset_lands_in_its_directory(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"blog/index.md": "# Blog", "blog/cover.png": _PNG}, asset_patterns=["*.png"])
        site.rebuild()
        assert Path(site.output_dir, "blog", "cover.png").read_bytes() == _PNG

    def test_added_asset_lands_next_to_its_page(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"blog/post.md": "{{ AssetURL('new.png') }}"}, asset_patterns=["*.png"])
        site.rebuild()
        out = Path(site.output_dir, "blog", "post")
        assert "/static/new.png" in (out / "index.html").read_text()

        new = Path(site.content_root, "blog", "new.png")
        new.write_bytes(_PNG)
        ctx = site.rebuild_paths([new])
        assert ctx.errors == []
        assert (out / "new.png").read_bytes() == _PNG
        assert not Path(site.output_dir, "blog", "new.png").exists()
        assert "./new.png" in (out / "index.html").read_text()
        post = site.get_resource(os.path.join(site.content_root, "blog", "post.md"))
        assert [a.name for a in post.assets] == ["new.png"]

    def test_added_file_without_owner_is_copied(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"blog/post.md": "# Post"}, asset_patterns=["*.png"])
        site.rebuild()
        new = Path(site.content_root, "blog", "notes.txt")
        new.write_text("plain")
        site.rebuild_paths([new])
        assert Path(site.output_dir, "blog", "notes.txt").read_text() == "plain"

    def test_parametric_assets_are_shared_by_hash(self, make_site: Callable[..., Site]) -> None:
        body = "{% for t in site.all_tags() %}{{ AddParam(t) }}{% endfor %}{{ AssetURL('logo.png') }}"
        site = make_site(
            {
                "blog/a.md": "---\ntags: [go, rust]\n---\n",
                "tags/[tag].md": body,
                "tags/logo.png": _PNG,
            },
            asset_patterns=["*.png"],
        )
        site.rebuild()
        digest = hashlib.sha256(_PNG).hexdigest()[:8]
        shared = Path(site.output_dir, "_assets", digest, "logo.png")
        assert shared.read_bytes() == _PNG
        url = f"/_assets/{digest}/logo.png"
        assert url in Path(site.output_dir, "tags", "go", "index.html").read_text()
        assert url in Path(site.output_dir, "tags", "rust", "index.html").read_text()

    def test_identical_assets_share_one_destination(self, make_site: Callable[..., Site]) -> None:
        site = make_site(
            {"a/[x].md": "", "a/one.png": _PNG, "b/[y].md": "", "b/two.png": _PNG},
            asset_patterns=["*.png"],
        )
        site.scan()
        handler = DefaultAssetHandler()
        first = site.get_resource(os.path.join(site.content_root, "a", "[x].md"))
        second = site.get_resource(os.path.join(site.content_root, "b", "[y].md"))
        (m1,) = handler.handle_assets(site, first, first.assets)
        (m2,) = handler.handle_assets(site, second, second.assets)
        assert os.path.dirname(m1.dest) == os.path.dirname(m2.dest)

    def test_mapping_is_deterministic(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"a/[x].md": "", "a/one.png": _PNG}, asset_patterns=["*.png"])
        site.scan()
        res = site.get_resource(os.path.join(site.content_root, "a", "[x].md"))
        handler = DefaultAssetHandler()
        assert handler.handle_assets(site, res, res.assets) == handler.handle_assets(site, res, res.assets)


class TestHelpers:
    def test_content_hash_of_missing_file_is_empty(self, make_site: Callable[..., Site]) -> None:
        site = make_site({})
        assert content_hash(site.get_resource(os.path.join(site.content_root, "nope.png"))) == ""

    def test_could_own_matches_patterns_below_the_page(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"blog/post.md": "---\nassets: ['*.png', 'img/*.jpg']\n---\n# Post"})
        site.scan()
        post = site.get_resource(os.path.join(site.content_root, "blog", "post.md"))
        root = site.content_root
        assert could_own(site, post, os.path.join(root, "blog", "new.png"))
        assert could_own(site, post, os.path.join(root, "blog", "img", "a.jpg"))
        assert not could_own(site, post, os.path.join(root, "blog", "a.txt"))
        assert not could_own(site, post, os.path.join(root, "blog", "other.md"))
        assert not could_own(site, post, os.path.join(root, "elsewhere", "new.png"))

    def test_asset_url_falls_back_to_static(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"post.md": "# Post"}, path_prefix="/docs/")
        site.scan()
        post = site.get_resource(os.path.join(site.content_root, "post.md"))
        assert asset_url(site, post, "missing.png") == "/docs/static/missing.png"

    def test_skip_and_process_actions_write_nothing(self, make_site: Callable[..., Site]) -> None:
        site = make_site({"a.png": _PNG})
        src = site.get_resource(os.path.join(site.content_root, "a.png"))
        written = process_asset_mappings(
            site,
            [
                AssetMapping(source=src, dest="skipped.png", action=AssetAction.SKIP),
                AssetMapping(source=src, dest="processed.png", action=AssetAction.PROCESS),
                AssetMapping(source=src, dest="copied.png"),
            ],
        )
        assert written == [os.path.join(site.output_dir, "copied.png")]
        assert not Path(site.output_dir, "skipped.png").exists()
