"""Site-wide outputs assembled from everything built in the run.

Generators take no resources of their own. They attach lifecycle hooks in
``register``: collect on ``on_resource_processed`` and write at the end of Finalize.
"""

from __future__ import annotations

import datetime as dt
import email.utils
import fnmatch
import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sitegraph.core.errors import ResourceIOError
from sitegraph.core.phase import BuildContext, BuildPhase
from sitegraph.core.ports.rule import TemplateFuncs

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"


def url_path(site: Site, target: Resource) -> str | None:
    """``<out>/a/b/index.html`` -> ``<prefix>/a/b/``"""
    rel = target.rel_path(site.output_dir)
    if not rel:
        return None
    if rel == "index.html":
        rel = ""
    elif rel.endswith("/index.html"):
        rel = rel[: -len("index.html")]
    return f"{site.path_prefix}/{rel}"


def _write_xml(root: ET.Element, path: str) -> None:
    ET.indent(root, space="  ")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)


class _HookOnlyRule:
    def phase(self) -> BuildPhase:
        return BuildPhase.FINALIZE

    def depends_on(self) -> list[str]:
        return ["*.html"]

    def targets_for(self, site: Site, resource: Resource) -> tuple[list[Resource], list[Resource]]:
        return [], []

    def run(self, site: Site, inputs: list[Resource], targets: list[Resource], funcs: TemplateFuncs) -> None:
        return None


@dataclass
class SitemapEntry:
    loc: str
    lastmod: dt.date | None = None


class SitemapGenerator(_HookOnlyRule):
    def __init__(
        self,
        base_url: str | None = None,
        output_path: str = "sitemap.xml",
        change_freq: str = "weekly",
        priority: float = 0.5,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.base_url = base_url
        self.output_path = output_path
        self.change_freq = change_freq
        self.priority = priority
        self.exclude_patterns = list(exclude_patterns or [])
        self.entries: dict[str, SitemapEntry] = {}

    def produces(self) -> list[str]:
        return [self.output_path]

    def register(self, site: Site) -> None:
        site.hooks.on_phase_start(BuildPhase.DISCOVER, self._reset)
        site.hooks.on_resource_processed(self._collect)
        site.hooks.on_phase_end(BuildPhase.FINALIZE, self._write)

    def _reset(self, ctx: BuildContext) -> None:
        if not ctx.partial:
            self.entries.clear()

    def _collect(self, ctx: BuildContext, resource: Resource, targets: list[Resource]) -> None:
        for target in targets:
            if not target.full_path.endswith(".html"):
                continue
            rel = target.rel_path(ctx.site.output_dir)
            if any(fnmatch.fnmatch(rel, pattern) for pattern in self.exclude_patterns):
                continue
            loc = url_path(ctx.site, target)
            if loc is None:
                continue
            lastmod = resource.meta.lastmod if resource.meta.lastmod else dt.date.today()
            self.entries[target.full_path] = SitemapEntry(loc=loc, lastmod=lastmod)

    def _write(self, ctx: BuildContext) -> None:
        for path in [p for p in self.entries if not os.path.exists(p)]:
            del self.entries[path]
        if not self.entries:
            return
        base_url = (self.base_url if self.base_url is not None else ctx.site.base_url).rstrip("/")
        urlset = ET.Element("urlset", xmlns=SITEMAP_NS)
        for entry in sorted(self.entries.values(), key=lambda e: e.loc):
            url = ET.SubElement(urlset, "url")
            ET.SubElement(url, "loc").text = base_url + entry.loc
            if entry.lastmod is not None:
                ET.SubElement(url, "lastmod").text = entry.lastmod.isoformat()
            ET.SubElement(url, "changefreq").text = self.change_freq
            ET.SubElement(url, "priority").text = f"{self.priority:.1f}"
        path = os.path.join(ctx.site.output_dir, self.output_path)
        try:
            _write_xml(urlset, path)
        except OSError as e:
            ctx.add_error(ResourceIOError(f"sitemap generation failed: {e}", path=path))
            return
        logger.info("Wrote sitemap with %d url(s) to %s", len(self.entries), path)


@dataclass
class FeedItem:
    title: str
    link: str
    description: str = ""
    published: dt.datetime | None = None


class RssGenerator(_HookOnlyRule):
    def __init__(
        self,
        title: str | None = None,
        description: str | None = None,
        base_url: str | None = None,
        output_path: str = "feed.xml",
        content_prefix: str = "blog/",
        max_items: int = 20,
    ) -> None:
        self.title = title
        self.description = description
        self.base_url = base_url
        self.output_path = output_path
        self.content_prefix = content_prefix
        self.max_items = max_items
        self.items: dict[str, FeedItem] = {}

    def produces(self) -> list[str]:
        return [self.output_path]

    def register(self, site: Site) -> None:
        site.hooks.on_phase_start(BuildPhase.DISCOVER, self._reset)
        site.hooks.on_resource_processed(self._collect)
        site.hooks.on_phase_end(BuildPhase.FINALIZE, self._write)

    def _reset(self, ctx: BuildContext) -> None:
        if not ctx.partial:
            self.items.clear()

    def _collect(self, ctx: BuildContext, resource: Resource, targets: list[Resource]) -> None:
        meta = resource.meta
        if meta.draft or not meta.title or resource.is_parametric:
            return
        for target in targets:
            rel = target.rel_path(ctx.site.output_dir)
            if not rel.endswith(".html") or not rel.startswith(self.content_prefix):
                continue
            # the listing page itself
            if rel == self.content_prefix + "index.html":
                continue
            link = url_path(ctx.site, target)
            if link is None:
                continue
            self.items[target.full_path] = FeedItem(
                title=meta.title,
                link=link,
                description=meta.summary or str(meta.extra.get("description", "")),
                published=meta.date,
            )

    def _write(self, ctx: BuildContext) -> None:
        for path in [p for p in self.items if not os.path.exists(p)]:
            del self.items[path]
        if not self.items:
            return
        site = ctx.site
        base_url = (self.base_url if self.base_url is not None else site.base_url).rstrip("/")
        items = sorted(self.items.values(), key=lambda i: i.published or dt.datetime.min, reverse=True)
        items = items[: self.max_items]

        rss = ET.Element("rss", version="2.0")
        channel = ET.SubElement(rss, "channel")
        ET.SubElement(channel, "title").text = self.title if self.title is not None else site.title
        ET.SubElement(channel, "link").text = base_url or "/"
        ET.SubElement(channel, "description").text = (
            self.description if self.description is not None else site.description
        )
        if items[0].published is not None:
            ET.SubElement(channel, "pubDate").text = email.utils.format_datetime(items[0].published)
        for item in items:
            node = ET.SubElement(channel, "item")
            ET.SubElement(node, "title").text = item.title
            ET.SubElement(node, "link").text = base_url + item.link
            if item.description:
                ET.SubElement(node, "description").text = item.description
            if item.published is not None:
                ET.SubElement(node, "pubDate").text = email.utils.format_datetime(item.published)
            ET.SubElement(node, "guid").text = base_url + item.link

        path = os.path.join(site.output_dir, self.output_path)
        try:
            _write_xml(rss, path)
        except OSError as e:
            ctx.add_error(ResourceIOError(f"feed generation failed: {e}", path=path))
            return
        logger.info("Wrote feed with %d item(s) to %s", len(items), path)
