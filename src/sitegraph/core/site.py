from __future__ import annotations

import datetime as dt
import json
import logging
import os
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from sitegraph.core.assets import asset_url, could_own, discover_assets, process_asset_mappings
from sitegraph.core.errors import CycleError, ResourceIOError, RuleError, SiteError, strict_mode_enabled
from sitegraph.core.graph import DependencyGraph
from sitegraph.core.paths import PAGE_EXTENSIONS, annotate, is_within, page_link, slugify
from sitegraph.core.phase import BuildContext, BuildPhase, HookRegistry
from sitegraph.core.ports.frontmatter import FrontMatterParser
from sitegraph.core.ports.markdown import MarkdownEngine
from sitegraph.core.ports.rule import AssetAwareRule, Rule, TemplateFuncs, capabilities_of
from sitegraph.core.ports.templates import TemplateRenderer
from sitegraph.core.registry import PathPredicate, ResourceRegistry, matches_any
from sitegraph.core.resource import Resource, ResourceState
from sitegraph.core.rules import topological_sort
from sitegraph.models import PageTemplate

logger = logging.getLogger(__name__)

_RUN_PHASES = (BuildPhase.TRANSFORM, BuildPhase.GENERATE, BuildPhase.FINALIZE)


def default_priority(resource: Resource) -> int:
    """Non-page files first, then index pages, leaf pages, and parametric pages last."""
    if resource.is_parametric:
        return 10000
    if resource.is_index:
        return 1000
    if resource.needs_index:
        return 5000
    return 0


class Site:
    """A content tree, its rules, and everything derived from building it."""

    def __init__(
        self,
        content_root: str,
        output_dir: str,
        *,
        rules: Sequence[Any] = (),
        templates: TemplateRenderer | None = None,
        markdown: MarkdownEngine | None = None,
        front_matter_parser: FrontMatterParser | None = None,
        default_rule: Rule | None = None,
        default_template: PageTemplate | None = None,
        get_template: Callable[[Resource, PageTemplate], None] | None = None,
        path_prefix: str = "",
        asset_patterns: list[str] | None = None,
        shared_assets_dir: str = "_assets",
        ignore_patterns: list[str] | None = None,
        ignore_dir: PathPredicate | None = None,
        ignore_file: PathPredicate | None = None,
        priority: Callable[[Resource], int] = default_priority,
        base_url: str = "",
        title: str = "",
        description: str = "",
        strict: bool | None = None,
    ) -> None:
        self.content_root = os.path.abspath(os.path.expanduser(content_root))
        self.output_dir = os.path.abspath(os.path.expanduser(output_dir))
        self.templates = templates
        self.markdown = markdown
        self.default_rule = default_rule
        self.default_template = default_template or PageTemplate()
        self.get_template = get_template
        self.path_prefix = path_prefix.rstrip("/")
        self.asset_patterns = list(asset_patterns or [])
        self.shared_assets_dir = shared_assets_dir
        self.ignore_patterns = list(ignore_patterns if ignore_patterns is not None else [".*", "*~", "*.swp"])
        self.priority = priority
        self.base_url = base_url.rstrip("/")
        self.title = title
        self.description = description
        self.strict = strict_mode_enabled() if strict is None else strict

        self.registry = ResourceRegistry(front_matter_parser)
        self.graph = DependencyGraph()
        self.hooks = HookRegistry()

        self._ignore_dir = ignore_dir or self._default_ignore_dir
        self._ignore_file = ignore_file or self._default_ignore_file
        self._claims: dict[str, list[Any]] = {}
        self._phase_rules: dict[BuildPhase, list[Any]] = {}
        self.rules: list[Any] = []
        for rule in rules:
            self.add_rule(rule)

    def __repr__(self) -> str:
        return f"Site({self.content_root!r} -> {self.output_dir!r})"

    def add_rule(self, rule: Any) -> None:
        caps = capabilities_of(rule)
        self.rules.append(rule)
        self._phase_rules.setdefault(caps.phase, []).append(rule)
        if caps.registrable:
            rule.register(self)

    def rules_for_phase(self, phase: BuildPhase) -> list[Any]:
        return topological_sort(self._phase_rules.get(phase, []))

    # -- resources ---------------------------------------------------------

    def get_resource(self, path: str) -> Resource:
        return self.registry.get_or_create(path)

    def list_resources(self) -> list[Resource]:
        return self.registry.walk(self.content_root, self._ignore_dir, self._ignore_file)

    def is_ignored(self, path: str) -> bool:
        path = os.path.abspath(path)
        rel_parts = os.path.relpath(os.path.dirname(path), self.content_root).split(os.sep)
        if any(part != "." and matches_any(part, self.ignore_patterns) for part in rel_parts):
            return True
        if is_within(path, self.output_dir):
            return True
        return self._ignore_file(path)

    def remove_resource(self, path: str) -> Resource | None:
        """Forget a deleted input along with the outputs only it produced."""
        path = os.path.abspath(path)
        resource = self.registry.remove(path)
        for dep in self.graph.remove_edges_from(path):
            if not self.graph.sources_of(dep):
                self._remove_output(dep)
        self.graph.remove_edges_to(path)
        self._claims.pop(path, None)
        if resource is not None:
            logger.info("Removed %s", path)
        return resource

    def _default_ignore_dir(self, path: str) -> bool:
        return matches_any(path, self.ignore_patterns) or is_within(path, self.output_dir)

    def _default_ignore_file(self, path: str) -> bool:
        return matches_any(path, self.ignore_patterns)

    # -- claims ------------------------------------------------------------

    def is_claimed(self, resource: Resource) -> bool:
        return bool(self._claims.get(resource.full_path))

    def claimed_by(self, resource: Resource) -> list[Any]:
        return list(self._claims.get(resource.full_path, []))

    def _claim(self, resource: Resource, rule: Any) -> None:
        rules = self._claims.setdefault(resource.full_path, [])
        if not any(r is rule for r in rules):
            rules.append(rule)

    # -- build -------------------------------------------------------------

    def rebuild(self, resources: Iterable[Resource] | None = None) -> BuildContext:
        """Run the four build phases over all content, or just over *resources*."""
        ctx = BuildContext(site=self, strict=self.strict, partial=resources is not None)

        ctx.current_phase = BuildPhase.DISCOVER
        logger.info("=== Phase: %s ===", ctx.current_phase)
        self.hooks.emit_phase_start(ctx)
        if resources is None:
            self._claims.clear()
        else:
            resources = list(resources)
            for res in resources:
                self._claims.pop(res.full_path, None)
        self._discover(ctx, resources)
        self.hooks.emit_phase_end(ctx)

        for phase in _RUN_PHASES:
            ctx.current_phase = phase
            logger.info("=== Phase: %s ===", phase)
            self.hooks.emit_phase_start(ctx)
            self._run_phase(ctx, phase)
            self.hooks.emit_phase_end(ctx)
            if phase is BuildPhase.GENERATE:
                self._handle_unmatched(ctx)

        if ctx.errors:
            logger.warning("Build completed with %d error(s)", len(ctx.errors))
            for error in ctx.errors:
                logger.warning("  - %s", error)
        else:
            logger.info("Build completed: %d target(s)", len(ctx.generated_targets))
        return ctx

    def rebuild_paths(self, paths: Iterable[str | os.PathLike[str]]) -> BuildContext:
        """Rebuild after the files at *paths* were created, modified or deleted."""
        selected: dict[str, Resource] = {}
        for raw in paths:
            path = os.path.abspath(os.fspath(raw))
            if not is_within(path, self.content_root) or self.is_ignored(path):
                continue
            if not os.path.isfile(path):
                existing = self.registry.get(path)
                owner = existing.asset_of if existing is not None else None
                self.remove_resource(path)
                if owner is not None and owner.full_path in self.registry:
                    selected[owner.full_path] = owner
                continue
            is_new = path not in self.registry
            res = self.get_resource(path)
            selected[res.full_path] = res
            owner = res.asset_of
            if owner is not None:
                selected[owner.full_path] = owner
            elif is_new:
                # a page picks up new assets only when it is discovered again
                for page in self._pages_that_could_own(path):
                    selected.setdefault(page.full_path, page)

        # tag listings and the like can change with any edit
        for res in self.registry:
            if res.is_parametric and res.state is ResourceState.LOADED:
                selected.setdefault(res.full_path, res)
        return self.rebuild(list(selected.values()))

    def _pages_that_could_own(self, path: str) -> list[Resource]:
        return [res for res in self.registry if res.state is ResourceState.LOADED and could_own(self, res, path)]

    def scan(self) -> BuildContext:
        """Discover the content tree without running any rules or hooks."""
        ctx = BuildContext(site=self)
        self._discover(ctx, None)
        return ctx

    def _discover(self, ctx: BuildContext, resources: list[Resource] | None) -> None:
        selected = self.list_resources() if resources is None else resources
        for res in selected:
            self._prepare(ctx, res)
        for res in selected:
            if res.state is ResourceState.LOADED:
                discover_assets(self, res)
        ctx.resources = sorted(selected, key=self.priority)

    def _prepare(self, ctx: BuildContext, res: Resource) -> None:
        if res.state is not ResourceState.PENDING:
            for asset in res.assets:
                if asset.asset_of is res:
                    asset.asset_of = None
            self.registry.reset(res)
        try:
            self.registry.load(res)
        except SiteError as e:
            ctx.add_error(e)
            return
        annotate(res)
        if res.needs_index:
            res.link = page_link(self.path_prefix, self.content_root, res)

    def _run_phase(self, ctx: BuildContext, phase: BuildPhase) -> None:
        rules = self.rules_for_phase(phase)
        if not rules:
            return
        for res in ctx.resources:
            if res.asset_of is not None or self.is_claimed(res):
                continue
            if res.state is not ResourceState.LOADED:
                continue
            for rule in rules:
                matched = self._targets_for(ctx, rule, res)
                if matched is None:
                    break
                siblings, targets = matched
                if not targets:
                    continue
                logger.debug("Rule matched: phase=%s resource=%s rule=%s", phase, res.full_path, type(rule).__name__)
                self._apply(ctx, rule, res, siblings, targets)
                # first claim wins
                break

    def _targets_for(
        self, ctx: BuildContext, rule: Any, res: Resource
    ) -> tuple[list[Resource], list[Resource]] | None:
        """The rule's match for *res*, or ``None`` after recording why it could not match."""
        try:
            return rule.targets_for(self, res)
        except SiteError as e:
            res.fail(e)
            ctx.add_error(e)
            return None

    def _apply(
        self,
        ctx: BuildContext,
        rule: Any,
        res: Resource,
        siblings: list[Resource],
        targets: list[Resource],
    ) -> None:
        self._claim(res, rule)
        self._track_targets(ctx, res, targets)

        if isinstance(rule, AssetAwareRule) and res.assets:
            try:
                process_asset_mappings(self, rule.handle_assets(self, res, res.assets))
            except OSError as e:
                ctx.add_error(ResourceIOError(f"cannot copy assets of {res.full_path}: {e}", path=res.full_path))

        inputs = list(siblings)
        if not any(r is res for r in inputs):
            inputs.append(res)
        completed = self._run_rule(ctx, rule, res, inputs, targets)
        for target in completed:
            target.produced_by = rule
            target.produced_at = ctx.current_phase
            ctx.add_target(target)
        if completed:
            self.hooks.emit_resource_processed(ctx, res, completed)

    def _run_rule(
        self,
        ctx: BuildContext,
        rule: Any,
        res: Resource,
        inputs: list[Resource],
        targets: list[Resource],
    ) -> list[Resource]:
        """Run *rule* and return the targets it wrote."""
        try:
            rule.run(self, inputs, targets, self.functions_for(res))
        except RuleError as e:
            ctx.add_error(e)
            return e.completed
        except Exception as e:
            logger.debug("Rule %s failed for %s", type(rule).__name__, res.full_path, exc_info=True)
            ctx.add_error(RuleError.wrap(rule, res.full_path, e))
            return []
        return list(targets)

    def _handle_unmatched(self, ctx: BuildContext) -> None:
        for res in ctx.resources:
            if res.asset_of is not None or self.is_claimed(res):
                continue
            if res.state is not ResourceState.LOADED:
                continue
            if self.default_rule is not None:
                matched = self._targets_for(ctx, self.default_rule, res)
                if matched is None or not matched[1]:
                    continue
                siblings, targets = matched
                self._apply(ctx, self.default_rule, res, siblings, targets)
                continue
            if res.is_parametric:
                # zero discovered values is valid: nothing to write
                logger.info("Parametric page %s expanded to no pages", res.full_path)
                continue
            self._copy_verbatim(ctx, res)

    def _copy_verbatim(self, ctx: BuildContext, res: Resource) -> None:
        rel = res.rel_path(self.content_root)
        if not rel:
            logger.warning("Resource %s is outside the content root", res.full_path)
            return
        target = self.get_resource(os.path.join(self.output_dir, rel))
        self._track_targets(ctx, res, [target])
        try:
            target.ensure_dir()
            with open(target.full_path, "wb") as f:
                f.write(res.read_bytes())
        except OSError as e:
            ctx.add_error(ResourceIOError(f"cannot copy {res.full_path}: {e}", path=res.full_path))
            return
        ctx.add_target(target)

    def _track_targets(self, ctx: BuildContext, res: Resource, targets: list[Resource]) -> None:
        previous = self.graph.remove_edges_from(res.full_path)
        for target in targets:
            target.source = res
            if not self.graph.add_edge(res.full_path, target.full_path):
                logger.warning("%s", CycleError(res.full_path, target.full_path))
        current = {t.full_path for t in targets}
        for stale in previous:
            if stale not in current and not self.graph.sources_of(stale):
                self._remove_output(stale)

    def _remove_output(self, path: str) -> None:
        self.graph.remove_node(path)
        self.registry.remove(path)
        if not is_within(path, self.output_dir) or not os.path.isfile(path):
            return
        os.remove(path)
        parent = os.path.dirname(path)
        if parent != self.output_dir and not os.listdir(parent):
            os.rmdir(parent)
        logger.debug("Pruned stale output %s", path)

    # -- template functions ------------------------------------------------

    def functions_for(self, res: Resource) -> TemplateFuncs:
        """Functions available to templates rendering *res*."""
        stage: dict[str, Any] = {}

        def stage_set(key: str, value: Any, *kvpairs: Any) -> str:
            stage[key] = value
            for i in range(0, len(kvpairs) - 1, 2):
                stage[str(kvpairs[i])] = kvpairs[i + 1]
            return ""

        funcs: TemplateFuncs = dict(self.site_functions())
        funcs.update(
            {
                "StageSet": stage_set,
                "StageGet": stage.get,
                "AssetURL": lambda filename: asset_url(self, res, filename),
                "SetMetadata": res.set_metadata,
            }
        )
        return funcs

    def site_functions(self) -> TemplateFuncs:
        return {
            "Slugify": slugify,
            "ListPages": self.list_pages,
            "Json": self.read_json,
            "Now": dt.datetime.now,
            "PageLink": lambda res: res.link,
        }

    def list_pages(
        self,
        prefix: str = "",
        tag: str | None = None,
        hide_drafts: bool = False,
        limit: int = 0,
        include_index: bool = False,
    ) -> list[Resource]:
        """Loaded pages under the content root, newest first."""
        pages: list[Resource] = []
        for res in self.registry:
            if res.state is not ResourceState.LOADED or res.is_parametric or res.asset_of is not None:
                continue
            if res.ext not in PAGE_EXTENSIONS:
                continue
            rel = res.rel_path(self.content_root)
            if not rel or not rel.startswith(prefix):
                continue
            if res.is_index and not include_index:
                continue
            meta = res.meta
            if hide_drafts and meta.draft:
                continue
            if tag is not None and tag not in meta.tags and slugify(tag) not in {slugify(t) for t in meta.tags}:
                continue
            pages.append(res)
        pages.sort(key=lambda r: r.full_path)
        pages.sort(key=lambda r: r.meta.date or dt.datetime.min, reverse=True)
        return pages[:limit] if limit > 0 else pages

    def all_tags(self, hide_drafts: bool = True) -> dict[str, int]:
        counts: dict[str, int] = {}
        for res in self.list_pages(hide_drafts=hide_drafts):
            for tag in res.meta.tags:
                counts[tag] = counts.get(tag, 0) + 1
        return counts

    def read_json(self, path: str) -> Any:
        if path.startswith("/"):
            raise ValueError(f"invalid json file {path}: must be relative to the content root")
        full_path = os.path.join(self.content_root, path)
        if os.path.splitext(full_path)[1] != ".json":
            raise ValueError(f"invalid json file {path}: not a .json file")
        with open(full_path, encoding="utf-8") as f:
            return json.load(f)
