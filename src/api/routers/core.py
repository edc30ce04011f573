"""Core routes for the reelforge API (root and health check)."""

from api import dependencies
from api.schemas import HealthResponse, RootResponse
from fastapi import APIRouter

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Reelforge API", "version": "1.0.0"}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status and whether the reel worker is running.",
)
async def health() -> dict:
    """Health check endpoint."""
    try:
        worker_running = dependencies.get_reel_worker().running
    except RuntimeError:
        worker_running = False
    return {"status": "healthy", "worker_running": worker_running}
