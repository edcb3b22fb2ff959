"""Narrated video pipeline: article -> narration script -> scenes -> stock media + speech -> MP4."""

from .context import PipelineContext, build_pipeline_context
from .errors import (
    AssemblyError,
    EmptyInputError,
    GenerationError,
    InputUnavailableError,
    NarratedVideoError,
    SynthesisError,
)
from .models import (
    JobStatus,
    MediaType,
    NarrationScript,
    NarrationTrack,
    PipelineStage,
    Scene,
    StartResult,
    StatusReport,
)
from .orchestrator import JobOrchestrator

__all__ = [
    "PipelineContext",
    "build_pipeline_context",
    "JobOrchestrator",
    "NarratedVideoError",
    "InputUnavailableError",
    "EmptyInputError",
    "GenerationError",
    "SynthesisError",
    "AssemblyError",
    "JobStatus",
    "PipelineStage",
    "MediaType",
    "Scene",
    "NarrationScript",
    "NarrationTrack",
    "StartResult",
    "StatusReport",
]
