"""Narrated video routes: start, poll, download and delete per target."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import FileResponse

from api.dependencies import get_orchestrator
from api.schemas import (
    ArticleRequest,
    ArticleResponse,
    MessageResponse,
    StartVideoRequest,
    StartVideoResponse,
    VideoStatusResponse,
)
from narrated_video.errors import EmptyInputError, InputUnavailableError
from narrated_video.models import JobStatus
from narrated_video.orchestrator import JobOrchestrator
from services.job_store import InvalidTransitionError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Narrated Video"])


@router.put(
    "/api/articles/{target_id}",
    response_model=ArticleResponse,
    summary="Store article",
    description="Create or replace the source article a video is generated from.",
)
async def put_article(
    target_id: str,
    request: ArticleRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> dict:
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Article text is empty")

    await orchestrator.store.put_article(target_id, request.text, request.topic)
    return {
        "target_id": target_id,
        "topic": request.topic,
        "characters": len(request.text),
        "words": len(request.text.split()),
    }


@router.post(
    "/api/video/{target_id}/start",
    response_model=StartVideoResponse,
    summary="Start video generation",
    description=(
        "Start generating a narrated video for a target. Returns immediately; poll the "
        "status endpoint for progress. Idempotent: a completed target returns its video, "
        "a processing target returns its status, a failed target is restarted."
    ),
    responses={
        400: {"description": "Article is empty"},
        404: {"description": "No article stored for the target"},
    },
)
async def start_video(
    target_id: str,
    request: StartVideoRequest | None = Body(default=None),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Start (or short-circuit) video generation for a target."""
    topic = request.topic if request else None
    article_text = request.article_text if request else None

    if article_text is not None and not article_text.strip():
        raise HTTPException(status_code=400, detail="Article text is empty")

    try:
        result = await orchestrator.start(target_id, topic=topic, article_text=article_text)
    except EmptyInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InputUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return asdict(result)


@router.get(
    "/api/video/{target_id}/status",
    response_model=VideoStatusResponse,
    summary="Get video status",
    description="Poll the video job for a target. Returns not_started when no job exists.",
)
async def get_video_status(
    target_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> dict:
    report = await orchestrator.get_status(target_id)
    data = asdict(report)
    data["status"] = report.status.value
    return data


@router.get(
    "/api/video/{target_id}/download",
    summary="Download video",
    description="Download the completed video file.",
    responses={404: {"description": "Job or video not found"}, 400: {"description": "Job not completed"}},
)
async def download_video(
    target_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Download the final video for a completed job."""
    report = await orchestrator.get_status(target_id)
    if report.status == JobStatus.NOT_STARTED:
        raise HTTPException(status_code=404, detail="Job not found")

    if report.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=400,
            detail=f"Job is not completed (status: {report.status.value})",
        )

    video_path = orchestrator.artifact_path(report.job_id)
    if not video_path.exists():
        raise HTTPException(status_code=404, detail="Video file not found")

    return FileResponse(
        str(video_path),
        media_type="video/mp4",
        filename=f"video_{target_id}.mp4",
    )


@router.delete(
    "/api/video/{target_id}",
    response_model=MessageResponse,
    summary="Delete video job",
    description="Delete a completed or failed job and its video so it can be regenerated.",
    responses={404: {"description": "Job not found"}, 409: {"description": "Job is still processing"}},
)
async def delete_video(
    target_id: str,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> dict:
    try:
        deleted = await orchestrator.delete(target_id)
    except InvalidTransitionError:
        raise HTTPException(status_code=409, detail="Job is still processing")

    if not deleted:
        raise HTTPException(status_code=404, detail="Job not found")

    logger.info(f"Deleted video job for target {target_id}")
    return {"message": f"Video job for {target_id} deleted"}
