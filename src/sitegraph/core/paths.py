"""Naming conventions: page/index/parametric detection and the output layout.

    <content>/a/b.md          -> <out>/a/b/index.html
    <content>/a/index.md      -> <out>/a/index.html
    <content>/tags/[tag].md   -> <out>/tags/<slug(value)>/index.html
    <content>/a/logo.png      -> <out>/a/logo.png
"""

from __future__ import annotations

import hashlib
import os
import re
import unicodedata
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource

PAGE_EXTENSIONS: tuple[str, ...] = (".md", ".mdx", ".html", ".htm")
INDEX_PREFIXES: tuple[str, ...] = ("index", "_index", "Index")

_NON_WORD_RE = re.compile(r"[^\w\s-]", re.UNICODE)
_SEPARATOR_RE = re.compile(r"[\s_-]+")


def slugify(value: str) -> str:
    """Make a URL and filesystem safe path segment out of *value*."""
    text = unicodedata.normalize("NFKC", str(value)).strip().lower()
    text = _NON_WORD_RE.sub("", text)
    text = _SEPARATOR_RE.sub("-", text).strip("-")
    if not text:
        # nothing printable survived, keep distinct values apart
        return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:8]
    return text


def strip_extensions(path: str, all_extensions: bool = False) -> str:
    out = path
    while True:
        root, ext = os.path.splitext(out)
        if not ext:
            return out
        out = root
        if not all_extensions:
            return out


def is_page_file(path: str, extensions: tuple[str, ...] = PAGE_EXTENSIONS) -> bool:
    return os.path.splitext(path)[1] in extensions


def is_index_name(path: str, extensions: tuple[str, ...] = PAGE_EXTENSIONS) -> bool:
    base = os.path.basename(path)
    return any(base == prefix + ext for ext in extensions for prefix in INDEX_PREFIXES)


def is_parametric_name(path: str) -> bool:
    base = os.path.basename(strip_extensions(path, all_extensions=True))
    return len(base) > 2 and base[0] == "[" and base[-1] == "]"


def annotate(resource: Resource, extensions: tuple[str, ...] = PAGE_EXTENSIONS) -> None:
    """Set the derived page flags on *resource*. Non-page files are left untouched."""
    if not is_page_file(resource.full_path, extensions):
        return
    resource.is_index = resource.is_index or is_index_name(resource.full_path, extensions)
    resource.needs_index = True
    resource.is_parametric = is_parametric_name(resource.full_path)


def output_path(content_root: str, output_dir: str, resource: Resource) -> str | None:
    rel = resource.rel_path(content_root)
    if not rel:
        return None
    if resource.is_index:
        return os.path.join(output_dir, os.path.dirname(rel), "index.html")
    if resource.needs_index:
        return os.path.join(output_dir, strip_extensions(rel), "index.html")
    return os.path.join(output_dir, rel)


def parametric_output_path(content_root: str, output_dir: str, resource: Resource, value: str) -> str | None:
    rel = resource.rel_path(content_root)
    if not rel:
        return None
    dirname = os.path.dirname(strip_extensions(rel))
    return os.path.join(output_dir, dirname, slugify(value), "index.html")


def page_output_dir(content_root: str, resource: Resource) -> str | None:
    """Output directory of a non-parametric page, relative to the output root."""
    rel = resource.rel_path(content_root)
    if not rel:
        return None
    if resource.is_index:
        return os.path.dirname(rel)
    return strip_extensions(rel)


def page_link(path_prefix: str, content_root: str, resource: Resource) -> str:
    rel = resource.rel_path(content_root)
    rel = os.path.dirname(rel) if resource.is_index else strip_extensions(rel)
    rel = rel.replace(os.sep, "/").strip("/")
    prefix = path_prefix.rstrip("/")
    return f"{prefix}/{rel}" if rel else f"{prefix}/"


def is_within(path: str, root: str) -> bool:
    root = os.path.abspath(root)
    path = os.path.abspath(path)
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)
