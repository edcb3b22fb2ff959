#!/usr/bin/env python3
"""Command line entry point for narrated-video.

Examples:
  python src/main.py render --target a1 --topic "Deep sea vents" --article article.txt
  python src/main.py serve --port 10000
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from narrated_video.context import build_pipeline_context
from narrated_video.errors import InputUnavailableError
from narrated_video.models import STAGE_LABELS, JobStatus, PipelineStage
from narrated_video.orchestrator import JobOrchestrator
from utils.config import load_config, validate_config
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0


class ProgressBarCallback:
    """Mirrors a job's stored progress onto a tqdm bar."""

    def __init__(self, description: str = "Rendering"):
        self.bar = tqdm(
            total=100,
            desc=description,
            unit="%",
            bar_format="{desc}: {percentage:3.0f}%|{bar}| [{elapsed}]",
        )
        self.stage: Optional[str] = None

    def update(self, job: dict) -> None:
        stage = job.get("stage")
        if stage != self.stage:
            self.stage = stage
            try:
                label = STAGE_LABELS[PipelineStage(stage)]
            except (KeyError, ValueError):
                label = stage or ""
            self.bar.set_description(label)

        self.bar.n = int(job.get("progress") or 0)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


async def render(target_id: str, topic: str, article_path: Path, minutes: Optional[int]) -> int:
    """Run one job locally and wait for it to reach a terminal state.

    Returns:
        Process exit code
    """
    config = load_config()
    if minutes is not None:
        config["max_duration_minutes"] = minutes

    errors = validate_config(config)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 2

    try:
        article = article_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Cannot read article {article_path}: {e}")
        return 2

    context = build_pipeline_context(config)
    await context.store.connect()
    orchestrator = JobOrchestrator(context)
    await orchestrator.startup()

    progress = None
    try:
        try:
            result = await orchestrator.start(target_id, topic=topic, article_text=article)
        except InputUnavailableError as e:
            logger.error(str(e))
            return 1

        if result.status == "already_exists":
            print(f"Video already exists: {orchestrator.artifact_path(result.job_id)}")
            return 0

        progress = ProgressBarCallback()
        while True:
            job = await context.store.get_job(result.job_id)
            if job is None:
                logger.error(f"Job {result.job_id} disappeared from the store")
                return 1
            progress.update(job)
            if job["status"] != JobStatus.PROCESSING.value:
                break
            await asyncio.sleep(POLL_INTERVAL)

        progress.close()
        progress = None

        if job["status"] == JobStatus.FAILED.value:
            print(f"Video generation failed: {job['error']}", file=sys.stderr)
            return 1

        print(f"Video ready: {orchestrator.artifact_path(result.job_id)}")
        return 0

    finally:
        if progress is not None:
            progress.close()
        await orchestrator.shutdown()
        await context.aclose()


def serve(host: str, port: Optional[int]) -> None:
    import uvicorn

    from api.server import create_app

    config = load_config()
    uvicorn.run(create_app(config=config), host=host, port=port or config["port"])


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Turn articles into narrated stock-footage videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  main.py render --target a1 --topic "Coral reefs" --article reef.txt
  main.py serve --host 0.0.0.0 --port 10000
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render one article to a video locally")
    render_parser.add_argument("--target", required=True, help="Target identifier for the article")
    render_parser.add_argument("--topic", required=True, help="Topic or title of the article")
    render_parser.add_argument("--article", required=True, type=Path, help="Path to the article text file")
    render_parser.add_argument(
        "--minutes",
        type=int,
        choices=range(5, 9),
        metavar="{5-8}",
        help="Maximum video duration in minutes",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=None)

    args = parser.parse_args()

    config = load_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    if args.command == "serve":
        serve(args.host, args.port)
        return

    try:
        code = asyncio.run(render(args.target, args.topic, args.article, args.minutes))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
