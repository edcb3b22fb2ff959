"""Pydantic request/response models for the narrated video API."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Operation completed successfully"}]}}


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Narrated Video API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    queue_running: bool = False

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy", "queue_running": True}]}}


class VideoStatusResponse(BaseModel):
    """Status of the video job for a target."""

    status: Literal["not_started", "processing", "completed", "failed"]
    job_id: Optional[str] = None
    stage: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    message: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "processing",
                    "job_id": "3f2b9c0e8a8d4c53a1f0d2b7c6e5a4f1",
                    "stage": "sourcing_assets",
                    "progress": 60,
                    "message": "Finding stock footage and recording narration",
                    "metadata": {"scene_count": 18, "scenes_with_media": 15},
                }
            ]
        }
    }


class StartVideoResponse(BaseModel):
    """Result of a start request."""

    status: Literal["started", "already_exists", "processing"]
    message: str
    job_id: Optional[str] = None
    artifact_url: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "started",
                    "message": "Video generation started",
                    "job_id": "3f2b9c0e8a8d4c53a1f0d2b7c6e5a4f1",
                }
            ]
        }
    }


class ArticleResponse(BaseModel):
    """Stored article summary."""

    target_id: str
    topic: str
    characters: int
    words: int


# =============================================================================
# Request Models
# =============================================================================


class StartVideoRequest(BaseModel):
    """Optional article payload stored before the job starts."""

    topic: Optional[str] = Field(default=None, max_length=500)
    article_text: Optional[str] = None


class ArticleRequest(BaseModel):
    """Article content for a target."""

    topic: str = Field(default="", max_length=500)
    text: str = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [{"topic": "The history of the printing press", "text": "Johannes Gutenberg..."}]
        }
    }
