from __future__ import annotations

from pydantic import BaseModel, Field

from sitegraph.core.phase import BuildContext


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str
    output: str


class BuildSummary(BaseModel):
    partial: bool = False
    resources: int = 0
    targets: int = 0
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_context(cls, ctx: BuildContext) -> BuildSummary:
        return cls(
            partial=ctx.partial,
            resources=len(ctx.resources),
            targets=len(ctx.generated_targets),
            errors=[str(e) for e in ctx.errors],
        )
