"""Rules that turn content pages into ``index.html`` files.

    <content>/a/b.md       -> <out>/a/b/index.html
    <content>/a/index.md   -> <out>/a/index.html

The page body is itself rendered as a template first, so content can call the
template functions (``ListPages``, ``AssetURL``, ...), and is then wrapped in the
page template chosen by ``template_for``.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import TYPE_CHECKING, Any

from markupsafe import Markup

from sitegraph.core.assets import AssetMapping, DefaultAssetHandler
from sitegraph.core.errors import RuleError, TemplateRenderError
from sitegraph.core.paths import annotate, output_path
from sitegraph.core.phase import BuildPhase
from sitegraph.core.ports.rule import TemplateFuncs
from sitegraph.models import PageTemplate

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)


def split_template_ref(ref: str) -> tuple[str, str]:
    """``"base.html/content"`` -> ``("base.html", "content")``; a path without an entry is kept whole."""
    head, sep, tail = ref.rpartition("/")
    if sep and head and "." not in tail:
        return head, tail
    return ref, ""


class BasePageRule:
    extensions: tuple[str, ...] = ()

    def __init__(self, extensions: tuple[str, ...] | None = None) -> None:
        if extensions is not None:
            self.extensions = tuple(extensions)
        self._assets = DefaultAssetHandler()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(self.extensions)})"

    def phase(self) -> BuildPhase:
        return BuildPhase.GENERATE

    def depends_on(self) -> list[str]:
        return []

    def produces(self) -> list[str]:
        return ["*.html"]

    def load_resource(self, site: Site, resource: Resource) -> None:
        annotate(resource, self.extensions)

    def targets_for(self, site: Site, resource: Resource) -> tuple[list[Resource], list[Resource]]:
        if resource.ext not in self.extensions:
            return [], []
        self.load_resource(site, resource)
        if resource.is_parametric:
            # expanded by ParametricPages, never rendered as a single page
            return [], []
        dest = output_path(site.content_root, site.output_dir, resource)
        if dest is None:
            return [], []
        return [], [site.get_resource(dest)]

    def handle_assets(self, site: Site, resource: Resource, assets: list[Resource]) -> list[AssetMapping]:
        return self._assets.handle_assets(site, resource, assets)

    def template_for(self, site: Site, resource: Resource) -> PageTemplate:
        template = site.default_template.model_copy(deep=True)
        if site.get_template is not None:
            site.get_template(resource, template)
        meta = resource.meta
        if meta.template:
            template.name, template.entry = split_template_ref(meta.template)
        if meta.template_params:
            template.params.update(meta.template_params)
        return template

    def page_params(self, site: Site, resource: Resource, template: PageTemplate) -> dict[str, Any]:
        params: dict[str, Any] = {
            "site": site,
            "res": resource,
            "front_matter": resource.front_matter.data,
            "meta": resource.meta,
            "param": resource.param_name,
        }
        params.update(template.params)
        return params

    def render_body(self, site: Site, resource: Resource, params: dict[str, Any], funcs: TemplateFuncs) -> str:
        return site.templates.render_source(resource.read_all(), params, funcs, name=resource.full_path)

    def to_html(self, site: Site, resource: Resource, body: str) -> str:
        return body

    def render_page(self, site: Site, resource: Resource, funcs: TemplateFuncs) -> str:
        template = self.template_for(site, resource)
        params = self.page_params(site, resource, template)
        content = self.to_html(site, resource, self.render_body(site, resource, params, funcs))
        params["content"] = Markup(content)
        params["toc"] = resource.document.metadata.get("toc", [])
        if not template.name:
            return content
        return site.templates.render_template(template.name, template.entry, params, funcs)

    def run(self, site: Site, inputs: list[Resource], targets: list[Resource], funcs: TemplateFuncs) -> None:
        if len(inputs) != 1 or len(targets) != 1:
            raise RuleError(
                f"{type(self).__name__} needs exactly 1 input and 1 output, got {len(inputs)} and {len(targets)}",
                path=inputs[0].full_path if inputs else None,
                rule=self,
            )
        inres, outres = inputs[0], targets[0]
        if site.templates is None:
            raise RuleError("no template renderer configured", path=inres.full_path, rule=self)

        logger.debug("Rendering %s -> %s", inres.full_path, outres.full_path)
        outres.ensure_dir()
        try:
            html = self.render_page(site, inres, funcs)
        except TemplateRenderError as e:
            with open(outres.full_path, "w", encoding="utf-8") as f:
                f.write(f"Template error: {e}")
            raise
        with open(outres.full_path, "w", encoding="utf-8") as f:
            f.write(html)


class MarkdownPages(BasePageRule):
    extensions = (".md", ".mdx")

    def to_html(self, site: Site, resource: Resource, body: str) -> str:
        if site.markdown is None:
            raise RuleError("no markdown engine configured", path=resource.full_path, rule=self)
        document = site.markdown.parse(body)
        resource.document.root = document
        resource.document.loaded = True
        resource.document.loaded_at = dt.datetime.now()
        resource.document.set_metadata("toc", site.markdown.toc(document))
        return site.markdown.render(document)


class HtmlPages(BasePageRule):
    extensions = (".html", ".htm")


def page_rules() -> list[BasePageRule]:
    return [MarkdownPages(), HtmlPages()]
