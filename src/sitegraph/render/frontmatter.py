"""Front matter blocks at the top of a content file.

Supported delimiters (opening line / closing line):

    ---      / ---    YAML
    ---yaml  / ---    YAML
    +++      / +++    TOML
    ---toml  / ---    TOML
    ;;;      / ;;;    JSON
    ---json  / ---    JSON
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable
from typing import Any

import yaml

from sitegraph.core.errors import FrontMatterParseError

_FORMATS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "---": ("---", yaml.safe_load),
    "---yaml": ("---", yaml.safe_load),
    "+++": ("+++", tomllib.loads),
    "---toml": ("---", tomllib.loads),
    ";;;": (";;;", json.loads),
    "---json": ("---", json.loads),
}


def parse_front_matter(raw: bytes) -> tuple[dict[str, Any], bytes]:
    """Split *raw* into its front matter mapping and the remaining body.

    Content without a recognised opening line has no front matter.
    """
    first, sep, remainder = raw.partition(b"\n")
    opener = first.decode("utf-8", errors="replace").rstrip()
    if opener not in _FORMATS:
        return {}, raw
    closer, loads = _FORMATS[opener]

    lines: list[bytes] = []
    rest = remainder
    while True:
        if not rest:
            raise FrontMatterParseError(f"front matter opened with {opener!r} is never closed")
        line, sep, rest = rest.partition(b"\n")
        if line.decode("utf-8", errors="replace").rstrip() == closer:
            break
        lines.append(line)
        if not sep:
            raise FrontMatterParseError(f"front matter opened with {opener!r} is never closed")

    try:
        data = loads(b"\n".join(lines).decode("utf-8"))
    except (UnicodeDecodeError, yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise FrontMatterParseError(f"cannot parse front matter: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterParseError(f"front matter must be a mapping, got {type(data).__name__}")
    return data, rest
