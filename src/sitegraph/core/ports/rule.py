from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sitegraph.core.phase import BuildPhase

if TYPE_CHECKING:
    from sitegraph.core.assets import AssetMapping
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

TemplateFuncs = dict[str, Callable[..., Any]]


class Rule(Protocol):
    def targets_for(self, site: Site, resource: Resource) -> tuple[list[Resource], list[Resource]]: ...

    def run(self, site: Site, inputs: list[Resource], targets: list[Resource], funcs: TemplateFuncs) -> None: ...


@runtime_checkable
class PhaseRule(Protocol):
    def phase(self) -> BuildPhase: ...

    def depends_on(self) -> list[str]: ...

    def produces(self) -> list[str]: ...


@runtime_checkable
class AssetAwareRule(Protocol):
    def handle_assets(self, site: Site, resource: Resource, assets: list[Resource]) -> list[AssetMapping]: ...


@runtime_checkable
class Registrable(Protocol):
    def register(self, site: Site) -> None: ...


@dataclass(frozen=True)
class RuleCapabilities:
    phase: BuildPhase = BuildPhase.GENERATE
    depends_on: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    handles_assets: bool = False
    registrable: bool = False


def capabilities_of(rule: Any) -> RuleCapabilities:
    if isinstance(rule, PhaseRule):
        phase = rule.phase()
        depends_on = tuple(rule.depends_on())
        produces = tuple(rule.produces())
    else:
        phase, depends_on, produces = BuildPhase.GENERATE, (), ()
    return RuleCapabilities(
        phase=phase,
        depends_on=depends_on,
        produces=produces,
        handles_assets=isinstance(rule, AssetAwareRule),
        registrable=isinstance(rule, Registrable),
    )
