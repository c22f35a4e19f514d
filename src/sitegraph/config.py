"""Site configuration: ``sitegraph.toml`` plus ``SITEGRAPH_*`` environment overrides.

    [site]
    content_root = "content"
    output_dir = "public"
    template_folders = ["templates"]
    asset_patterns = ["*.png", "*.jpg", "*.svg"]

    [site.default_template]
    name = "base.html"
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from sitegraph.core.errors import SiteError
from sitegraph.core.site import Site
from sitegraph.models import PageTemplate
from sitegraph.render.frontmatter import parse_front_matter
from sitegraph.render.jinja import JinjaTemplates
from sitegraph.render.markdown import MistuneMarkdown
from sitegraph.rules.generators import RssGenerator, SitemapGenerator
from sitegraph.rules.pages import page_rules
from sitegraph.rules.parametric import ParametricPages
from sitegraph.rules.transforms import CssMinifier

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "sitegraph.toml"

_ENV_OVERRIDES = {
    "SITEGRAPH_CONTENT_ROOT": "content_root",
    "SITEGRAPH_OUTPUT_DIR": "output_dir",
    "SITEGRAPH_PATH_PREFIX": "path_prefix",
    "SITEGRAPH_BASE_URL": "base_url",
    "SITEGRAPH_STRICT": "strict",
}


class ConfigError(SiteError):
    """The configuration file is missing, unreadable, or invalid."""


class SiteConfig(BaseModel):
    content_root: str = "content"
    output_dir: str = "public"
    template_folders: list[str] = Field(default_factory=lambda: ["templates"])
    path_prefix: str = ""
    base_url: str = ""
    title: str = ""
    description: str = ""
    asset_patterns: list[str] = Field(default_factory=list)
    shared_assets_dir: str = "_assets"
    default_template: PageTemplate = Field(default_factory=PageTemplate)
    ignore_patterns: list[str] = Field(default_factory=lambda: [".*", "*~", "*.swp"])
    build_frequency: float = 1.0
    strict: bool = False
    minify_css: bool = False
    sitemap: bool = True
    feed: bool = True
    feed_prefix: str = "blog/"

    def resolve(self, base_dir: str | Path) -> SiteConfig:
        """Copy with relative directories made absolute against *base_dir*."""
        base = Path(base_dir)

        def _abs(path: str) -> str:
            expanded = Path(path).expanduser()
            return str(expanded if expanded.is_absolute() else (base / expanded).resolve())

        return self.model_copy(
            update={
                "content_root": _abs(self.content_root),
                "output_dir": _abs(self.output_dir),
                "template_folders": [_abs(folder) for folder in self.template_folders],
            }
        )


def load_config(path: str | Path | None = None) -> SiteConfig:
    """Read *path* (default ``./sitegraph.toml``) and apply environment overrides.

    A missing default file is fine and yields the defaults; a missing explicit
    file is an error.
    """
    explicit = path is not None
    config_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILENAME

    data: dict[str, Any] = {}
    if config_path.is_file():
        try:
            with open(config_path, "rb") as f:
                raw = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"cannot read {config_path}: {e}", path=str(config_path)) from e
        data = raw.get("site", raw)
    elif explicit:
        raise ConfigError(f"config file {config_path} does not exist", path=str(config_path))

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None:
            data[field_name] = value

    try:
        config = SiteConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration in {config_path}: {e}", path=str(config_path)) from e
    return config.resolve(config_path.parent)


def build_site(config: SiteConfig) -> Site:
    """Wire a ``Site`` with the default adapters and rules."""
    rules: list[Any] = []
    if config.minify_css:
        rules.append(CssMinifier())
    rules.extend(page_rules())
    rules.append(ParametricPages())
    if config.sitemap:
        rules.append(SitemapGenerator())
    if config.feed:
        rules.append(RssGenerator(content_prefix=config.feed_prefix))

    templates = JinjaTemplates([folder for folder in config.template_folders if os.path.isdir(folder)])
    return Site(
        config.content_root,
        config.output_dir,
        rules=rules,
        templates=templates,
        markdown=MistuneMarkdown(),
        front_matter_parser=parse_front_matter,
        default_template=config.default_template,
        path_prefix=config.path_prefix,
        asset_patterns=config.asset_patterns,
        shared_assets_dir=config.shared_assets_dir,
        ignore_patterns=config.ignore_patterns,
        base_url=config.base_url,
        title=config.title,
        description=config.description,
        strict=config.strict or None,
    )
