import os

from fastapi import APIRouter, Request, Response, status

from sitegraph.api.schemas import BuildSummary, HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/healthz/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe: is the process alive?"""
    return HealthResponse()


@router.get("/healthz/ready", response_model=ReadinessResponse)
async def readiness(request: Request, response: Response) -> ReadinessResponse:
    """Readiness probe: has the site been built at least once?"""
    output_dir = request.app.state.site.output_dir
    if os.path.isdir(output_dir):
        return ReadinessResponse(status="ok", output="built")
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="degraded", output="missing")


@router.get("/_sitegraph/build", response_model=BuildSummary)
async def last_build(request: Request) -> BuildSummary:
    summary: BuildSummary | None = request.app.state.last_build
    return summary or BuildSummary()
