"""Core routes for the narrated video API (root and health check)."""

from fastapi import APIRouter, Request

from api.schemas import HealthResponse, RootResponse

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Narrated Video API", "version": "1.0.0"}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status and whether render workers are running.",
)
async def health(request: Request) -> dict:
    """Health check endpoint."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    queue_running = bool(orchestrator and getattr(orchestrator.queue, "running", False))
    return {"status": "healthy", "queue_running": queue_running}
