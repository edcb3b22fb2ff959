"""Data models for the narrated video pipeline."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class JobStatus(str, Enum):
    """Externally visible job status."""

    NOT_STARTED = "not_started"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStage(str, Enum):
    """Discrete checkpoints a job passes through.

    Each stage owns a fixed band of the 0-100 progress range; sub-progress
    inside a stage is mapped linearly onto its band.
    """

    QUEUED = "queued"
    DISTILLING_SCRIPT = "distilling_script"
    PLANNING_SCENES = "planning_scenes"
    SOURCING_ASSETS = "sourcing_assets"
    ASSEMBLING_VIDEO = "assembling_video"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def band(self) -> tuple[int, int]:
        return STAGE_BANDS[self]

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]

    def progress(self, sub_progress: float = 0.0) -> int:
        """Map sub-progress (0.0-1.0) within this stage onto overall percent."""
        start, end = self.band
        sub_progress = min(max(sub_progress, 0.0), 1.0)
        return int(round(start + (end - start) * sub_progress))


STAGE_BANDS = {
    PipelineStage.QUEUED: (0, 0),
    PipelineStage.DISTILLING_SCRIPT: (0, 20),
    PipelineStage.PLANNING_SCENES: (20, 40),
    PipelineStage.SOURCING_ASSETS: (40, 80),
    PipelineStage.ASSEMBLING_VIDEO: (80, 100),
    PipelineStage.COMPLETE: (100, 100),
    PipelineStage.FAILED: (0, 0),
}

STAGE_LABELS = {
    PipelineStage.QUEUED: "Waiting for a render slot",
    PipelineStage.DISTILLING_SCRIPT: "Writing narration script",
    PipelineStage.PLANNING_SCENES: "Planning scenes",
    PipelineStage.SOURCING_ASSETS: "Finding stock footage and recording narration",
    PipelineStage.ASSEMBLING_VIDEO: "Assembling video",
    PipelineStage.COMPLETE: "Video ready",
    PipelineStage.FAILED: "Video generation failed",
}


class MediaType(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    NONE = "none"


@dataclass
class Scene:
    """One visual unit of the video, paired with a narration excerpt.

    ordinal defines final clip order. start is the cumulative narration
    offset in seconds and is recomputed whenever durations change.
    """

    ordinal: int
    narration: str
    keywords: list[str]
    duration: float
    start: float = 0.0
    media_url: Optional[str] = None
    media_type: MediaType = MediaType.NONE
    media_source: Optional[str] = None
    media_credit: Optional[str] = None

    @property
    def search_query(self) -> str:
        return " ".join(self.keywords)

    @property
    def has_media(self) -> bool:
        return self.media_type != MediaType.NONE and bool(self.media_url)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["media_type"] = self.media_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Scene":
        return cls(
            ordinal=int(data["ordinal"]),
            narration=data.get("narration", ""),
            keywords=list(data.get("keywords", [])),
            duration=float(data["duration"]),
            start=float(data.get("start", 0.0)),
            media_url=data.get("media_url"),
            media_type=MediaType(data.get("media_type", MediaType.NONE.value)),
            media_source=data.get("media_source"),
            media_credit=data.get("media_credit"),
        )


@dataclass
class NarrationScript:
    """Distilled narration text with its spoken-length estimate."""

    text: str
    word_count: int
    estimated_duration: int  # seconds
    truncated: bool = False


@dataclass
class NarrationTrack:
    """The final narration audio file for a job."""

    path: Path
    duration: float  # seconds, probed from the final file
    chunk_count: int = 1
    chunk_durations: list[float] = field(default_factory=list)

    @property
    def chunked(self) -> bool:
        return self.chunk_count > 1


@dataclass
class StartResult:
    """Outcome of a start request for a target."""

    status: str  # started | already_exists | processing
    message: str
    job_id: Optional[str] = None
    artifact_url: Optional[str] = None


@dataclass
class StatusReport:
    """What a polling client sees for a target."""

    status: JobStatus
    job_id: Optional[str] = None
    stage: Optional[str] = None
    progress: Optional[int] = None
    message: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_job(cls, job: dict) -> "StatusReport":
        status = JobStatus(job["status"])
        stage = job.get("stage") or PipelineStage.QUEUED.value
        try:
            message = PipelineStage(stage).label
        except ValueError:
            message = stage
        if status == JobStatus.FAILED:
            message = STAGE_LABELS[PipelineStage.FAILED]

        return cls(
            status=status,
            job_id=job["id"],
            stage=stage,
            progress=job.get("progress"),
            message=message,
            artifact_url=job.get("artifact_url"),
            error=job.get("error"),
            metadata=job.get("data") or {},
        )
