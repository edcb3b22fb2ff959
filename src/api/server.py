#!/usr/bin/env python
"""FastAPI server for the narrated video service."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.routers import core, narrated_video
from narrated_video.context import PipelineContext, build_pipeline_context
from narrated_video.orchestrator import JobOrchestrator
from utils.config import load_config, validate_config
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(context: PipelineContext | None = None, config: dict | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        context: Pre-built pipeline context (tests pass one wired to fakes).
                 Built from configuration when omitted.
        config: Configuration dict; loaded from the environment when omitted

    Returns:
        Configured FastAPI app
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context
        if ctx is None:
            for error in validate_config(config):
                logger.warning(f"Configuration problem: {error}")
            ctx = build_pipeline_context(config)

        await ctx.store.connect()
        orchestrator = JobOrchestrator(ctx)
        await orchestrator.startup(retention_days=config.get("job_retention_days"))
        app.state.orchestrator = orchestrator
        logger.info("Narrated video API ready")

        try:
            yield
        finally:
            await orchestrator.shutdown()
            await ctx.aclose()
            app.state.orchestrator = None

    app = FastAPI(title="Narrated Video API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("cors_origins", []),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(core.router)
    app.include_router(narrated_video.router)

    output_dir = Path(context.output_dir if context else config["output_dir"])
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = config.get("artifact_url_prefix", "/videos")
    if prefix.startswith("/"):
        app.mount(prefix, StaticFiles(directory=str(output_dir)), name="videos")

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    config = load_config()
    setup_logging(config["log_level"], config["log_json"])
    uvicorn.run(create_app(config=config), host="0.0.0.0", port=config["port"])


if __name__ == "__main__":
    main()
