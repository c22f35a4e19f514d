"""Expansion of one parametric page (``tags/[tag].md``) into one page per value.

Expansion is two passes over the same resource. Discovery renders the body once
with an ``AddParam`` function and no current value, collecting the values. Target
generation then maps every value to ``<out>/<dir>/<slug(value)>/index.html``.
``run`` renders each target with ``param_name`` set to its value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from sitegraph.core.assets import AssetMapping
from sitegraph.core.errors import ResourceIOError, RuleError, SiteError
from sitegraph.core.paths import parametric_output_path, slugify
from sitegraph.core.phase import BuildPhase
from sitegraph.core.ports.rule import TemplateFuncs
from sitegraph.rules.pages import BasePageRule, HtmlPages, MarkdownPages

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)

ParamDiscoverer = Callable[["Site", "Resource"], list[str]]


def tag_values(site: Site, resource: Resource) -> list[str]:
    """Every tag used by a published page, most used first."""
    counts = site.all_tags(hide_drafts=True)
    return sorted(counts, key=lambda tag: (-counts[tag], tag))


class ParametricPages:
    def __init__(
        self,
        renderers: Mapping[str, BasePageRule] | None = None,
        discoverers: Mapping[str, ParamDiscoverer] | None = None,
    ) -> None:
        if renderers is None:
            markdown, html = MarkdownPages(), HtmlPages()
            renderers = {".md": markdown, ".mdx": markdown, ".html": html, ".htm": html}
        self.renderers = dict(renderers)
        # keyed by path relative to the content root
        self.discoverers = dict(discoverers or {})

    def __repr__(self) -> str:
        return f"ParametricPages({', '.join(sorted(self.renderers))})"

    def phase(self) -> BuildPhase:
        return BuildPhase.GENERATE

    def depends_on(self) -> list[str]:
        return []

    def produces(self) -> list[str]:
        return ["*.html"]

    def targets_for(self, site: Site, resource: Resource) -> tuple[list[Resource], list[Resource]]:
        renderer = self.renderers.get(resource.ext)
        if renderer is None:
            return [], []
        renderer.load_resource(site, resource)
        if not resource.is_parametric:
            return [], []

        if not resource.param_values:
            try:
                values = self.discover_params(site, resource)
            except SiteError as e:
                resource.fail(e)
                raise
            except OSError as e:
                error = ResourceIOError(f"cannot read {resource.full_path}: {e}", path=resource.full_path)
                resource.fail(error)
                raise error from e
            resource.param_values = _dedupe(values)
            logger.info("Discovered %d value(s) for %s", len(resource.param_values), resource.full_path)

        targets: list[Resource] = []
        for value in resource.param_values:
            dest = parametric_output_path(site.content_root, site.output_dir, resource, value)
            if dest is None:
                continue
            target = site.get_resource(dest)
            target.source = resource
            target.front_matter = resource.front_matter
            target.param_name = value
            targets.append(target)
        return [resource], targets

    def discover_params(self, site: Site, resource: Resource) -> list[str]:
        """Collect the values *resource* expands to. ``param_name`` is empty throughout."""
        resource.param_name = ""
        discoverer = self.discoverers.get(resource.rel_path(site.content_root))
        if discoverer is not None:
            return [str(v) for v in discoverer(site, resource)]

        renderer = self.renderers[resource.ext]
        explicit = getattr(renderer, "param_values", None)
        if callable(explicit):
            return [str(v) for v in explicit(site, resource)]

        if site.templates is None:
            raise RuleError("no template renderer configured", path=resource.full_path, rule=self)
        collected: list[str] = []

        def add_param(value: Any) -> str:
            collected.append(str(value))
            return ""

        funcs = site.functions_for(resource)
        funcs["AddParam"] = add_param
        params = renderer.page_params(site, resource, renderer.template_for(site, resource))
        renderer.render_body(site, resource, params, funcs)
        return collected

    def handle_assets(self, site: Site, resource: Resource, assets: list[Resource]) -> list[AssetMapping]:
        renderer = self.renderers.get(resource.ext)
        if renderer is None:
            return []
        return renderer.handle_assets(site, resource, assets)

    def run(self, site: Site, inputs: list[Resource], targets: list[Resource], funcs: TemplateFuncs) -> None:
        if len(inputs) != 1:
            raise RuleError(f"ParametricPages needs exactly 1 input, got {len(inputs)}", rule=self)
        inres = inputs[0]
        renderer = self.renderers.get(inres.ext)
        if renderer is None:
            raise RuleError(f"no renderer for {inres.ext}", path=inres.full_path, rule=self)

        failures: list[str] = []
        completed: list[Resource] = []
        try:
            for target in targets:
                inres.param_name = target.param_name
                logger.debug("Rendering %s [%s] -> %s", inres.full_path, target.param_name, target.full_path)
                try:
                    renderer.run(site, [inres], [target], funcs)
                except Exception as e:
                    failures.append(f"{target.param_name}: {e}")
                    continue
                completed.append(target)
        finally:
            inres.param_name = ""
        if failures:
            raise RuleError(
                f"{len(failures)} of {len(targets)} expansion(s) of {inres.full_path} failed: " + "; ".join(failures),
                path=inres.full_path,
                rule=self,
                completed=completed,
            )


def _dedupe(values: list[str]) -> list[str]:
    """Drop repeated values, and values that would share an output directory."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        slug = slugify(value)
        if slug in seen:
            continue
        seen.add(slug)
        out.append(value)
    return out
