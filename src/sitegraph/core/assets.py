"""Co-located assets: discovery, destination mapping and content-hash dedup.

Assets of an ordinary page are copied next to its single output file. Assets of a
parametric page are shared by all of its expansions, so they go to
``<shared_assets_dir>/<hash8>/<name>``; identical files land in the same place.
"""

from __future__ import annotations

import enum
import fnmatch
import glob
import hashlib
import logging
import os
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sitegraph.core.paths import PAGE_EXTENSIONS, is_within, page_output_dir

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)


class AssetAction(enum.Enum):
    COPY = "copy"
    PROCESS = "process"
    SKIP = "skip"


@dataclass
class AssetMapping:
    source: Resource
    # relative to the site output directory
    dest: str
    action: AssetAction = AssetAction.COPY


def content_hash(resource: Resource) -> str:
    """SHA-256 of the file content, or ``""`` if it cannot be read."""
    digest = hashlib.sha256()
    try:
        with open(resource.full_path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                digest.update(chunk)
    except OSError:
        logger.warning("Cannot hash %s", resource.full_path)
        return ""
    return digest.hexdigest()


def content_hash_short(resource: Resource) -> str:
    return content_hash(resource)[:8]


def asset_patterns_for(site: Site, resource: Resource) -> list[str]:
    if resource.ext not in PAGE_EXTENSIONS:
        return []
    return resource.meta.assets if resource.meta.assets is not None else site.asset_patterns


def could_own(site: Site, resource: Resource, path: str) -> bool:
    """Whether the file at *path* matches one of *resource*'s asset patterns."""
    if path == resource.full_path or os.path.splitext(path)[1] in PAGE_EXTENSIONS:
        return False
    if not is_within(path, resource.dir_name):
        return False
    rel = os.path.relpath(path, resource.dir_name)
    return any(fnmatch.fnmatch(rel, os.path.normpath(pattern)) for pattern in asset_patterns_for(site, resource))


def discover_assets(site: Site, resource: Resource) -> list[Resource]:
    """Attach the files next to a page that match its asset patterns.

    Front matter ``assets`` replaces the site-wide patterns. Other pages never
    become assets.
    """
    resource.assets = []
    patterns = asset_patterns_for(site, resource)
    if not patterns:
        return []

    for pattern in patterns:
        for match in sorted(glob.glob(os.path.join(glob.escape(resource.dir_name), pattern))):
            if match == resource.full_path or not os.path.isfile(match):
                continue
            if os.path.splitext(match)[1] in PAGE_EXTENSIONS:
                continue
            asset = site.get_resource(match)
            if asset in resource.assets:
                continue
            asset.asset_of = resource
            resource.assets.append(asset)

    if resource.assets:
        logger.debug("Discovered %d asset(s) for %s", len(resource.assets), resource.full_path)
    return resource.assets


class DefaultAssetHandler:
    def handle_assets(self, site: Site, resource: Resource, assets: list[Resource]) -> list[AssetMapping]:
        mappings: list[AssetMapping] = []
        for asset in assets:
            if resource.is_parametric:
                digest = content_hash_short(asset)
                if not digest:
                    continue
                dest = os.path.join(site.shared_assets_dir, digest, asset.name)
            else:
                dest_dir = page_output_dir(site.content_root, resource)
                if dest_dir is None:
                    continue
                dest = os.path.join(dest_dir, asset.name)
            mappings.append(AssetMapping(source=asset, dest=dest, action=AssetAction.COPY))
        return mappings


def asset_url(site: Site, resource: Resource, filename: str) -> str:
    prefix = site.path_prefix.rstrip("/")
    for asset in resource.assets:
        if asset.name != filename:
            continue
        if resource.is_parametric:
            return f"{prefix}/{site.shared_assets_dir}/{content_hash_short(asset)}/{filename}"
        return f"./{filename}"
    return f"{prefix}/static/{filename}"


def process_asset_mappings(site: Site, mappings: list[AssetMapping]) -> list[str]:
    """Apply *mappings*; returns the absolute destination paths written."""
    written: list[str] = []
    for mapping in mappings:
        if mapping.action is AssetAction.SKIP:
            continue
        if mapping.action is AssetAction.PROCESS:
            logger.warning("Asset processing is not supported, skipping %s", mapping.source.full_path)
            continue
        dest = os.path.join(site.output_dir, mapping.dest)
        # shared assets are content addressed, an existing copy is identical
        if os.path.exists(dest) and mapping.dest.startswith(site.shared_assets_dir + os.sep):
            written.append(dest)
            continue
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        shutil.copyfile(mapping.source.full_path, dest)
        logger.debug("Copied asset %s -> %s", mapping.source.full_path, dest)
        written.append(dest)
    return written
