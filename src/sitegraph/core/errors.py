"""Error taxonomy for site builds.

Everything except ``DiscoveryWalkError`` is recorded on the ``BuildContext`` and
the build moves on to the next resource. Setting ``SITEGRAPH_STRICT=true`` (or
``PANIC_ON_ALL_ERRORS=true``) turns every recorded error into an immediate raise.
"""

from __future__ import annotations

import os
from typing import Any

_STRICT_ENV_VARS = ("SITEGRAPH_STRICT", "PANIC_ON_ALL_ERRORS")


def strict_mode_enabled() -> bool:
    return any(os.getenv(name, "").strip().lower() == "true" for name in _STRICT_ENV_VARS)


class SiteError(Exception):
    """Base class for all build errors."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ResourceIOError(SiteError):
    """A resource could not be read or stat'ed."""


class FrontMatterParseError(SiteError):
    """Front matter is malformed or does not match the page schema."""


class TemplateRenderError(SiteError):
    """A template failed to load, parse, or render."""


class RuleError(SiteError):
    """A rule's ``run`` failed for a resource."""

    def __init__(
        self, message: str, path: str | None = None, rule: Any = None, completed: list[Any] | None = None
    ) -> None:
        super().__init__(message, path)
        self.rule = rule
        # targets written before the failure
        self.completed = list(completed or [])

    @classmethod
    def wrap(cls, rule: Any, path: str, exc: BaseException) -> RuleError:
        error = cls(f"{type(rule).__name__} failed for {path}: {exc}", path=path, rule=rule)
        error.__cause__ = exc
        return error


class CycleError(SiteError):
    """Adding a dependency edge would have closed a cycle."""

    def __init__(self, src: str, dst: str) -> None:
        super().__init__(f"edge {src} -> {dst} would create a cycle", path=src)
        self.src = src
        self.dst = dst


class DiscoveryWalkError(SiteError):
    """The content tree could not be walked. Aborts the build."""
