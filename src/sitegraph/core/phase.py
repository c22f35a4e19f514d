from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sitegraph.core.errors import SiteError

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)


class BuildPhase(enum.IntEnum):
    DISCOVER = 0
    TRANSFORM = 1
    GENERATE = 2
    FINALIZE = 3

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass
class BuildContext:
    site: Site
    current_phase: BuildPhase = BuildPhase.DISCOVER
    resources: list[Resource] = field(default_factory=list)
    created_in_phase: dict[BuildPhase, list[Resource]] = field(default_factory=dict)
    generated_targets: list[Resource] = field(default_factory=list)
    errors: list[SiteError] = field(default_factory=list)
    strict: bool = False
    # True when only a subset of the content tree is being rebuilt
    partial: bool = False

    def add_error(self, error: SiteError) -> None:
        if self.strict:
            raise error
        logger.warning("%s", error)
        self.errors.append(error)

    def add_target(self, target: Resource) -> None:
        self.generated_targets.append(target)
        self.created_in_phase.setdefault(self.current_phase, []).append(target)


PhaseHook = Callable[[BuildContext], Any]
ResourceHook = Callable[[BuildContext, "Resource", "list[Resource]"], Any]


class HookRegistry:
    """Lifecycle callbacks. Called in registration order; exceptions propagate."""

    def __init__(self) -> None:
        self._phase_start: dict[BuildPhase, list[PhaseHook]] = {}
        self._phase_end: dict[BuildPhase, list[PhaseHook]] = {}
        self._resource_processed: list[ResourceHook] = []

    def on_phase_start(self, phase: BuildPhase, hook: PhaseHook) -> None:
        self._phase_start.setdefault(phase, []).append(hook)

    def on_phase_end(self, phase: BuildPhase, hook: PhaseHook) -> None:
        self._phase_end.setdefault(phase, []).append(hook)

    def on_resource_processed(self, hook: ResourceHook) -> None:
        self._resource_processed.append(hook)

    def emit_phase_start(self, ctx: BuildContext) -> None:
        for hook in self._phase_start.get(ctx.current_phase, []):
            hook(ctx)

    def emit_phase_end(self, ctx: BuildContext) -> None:
        for hook in self._phase_end.get(ctx.current_phase, []):
            hook(ctx)

    def emit_resource_processed(self, ctx: BuildContext, resource: Resource, targets: list[Resource]) -> None:
        for hook in self._resource_processed:
            hook(ctx, resource, targets)
