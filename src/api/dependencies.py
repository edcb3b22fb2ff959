"""Dependency injection for the narrated video API.

The orchestrator is built once by the app lifespan and stored on
app.state, so tests can inject one wired to fakes.
"""

from fastapi import HTTPException, Request

from narrated_video.orchestrator import JobOrchestrator


def get_orchestrator(request: Request) -> JobOrchestrator:
    """Get the orchestrator created at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return orchestrator
