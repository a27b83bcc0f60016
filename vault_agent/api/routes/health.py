"""Liveness endpoint."""

from fastapi import APIRouter, Request

from ... import __version__
from ...config import config
from ...tracing import get_tracing_client
from ..schemas import HealthResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report version, agent model, and whether the runtime and tracing are up.",
)
def health_check(request: Request) -> HealthResponse:
    tracing = get_tracing_client()
    return HealthResponse(
        status="healthy",
        version=__version__,
        model=config.agent.model,
        runtime_ready=getattr(request.app.state, "runtime", None) is not None,
        tracing_enabled=tracing is not None and tracing.enabled,
    )
