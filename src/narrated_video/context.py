"""Pipeline context: the explicitly constructed set of collaborators a job uses.

Stages receive their providers from here instead of module-level singletons,
so tests can swap any of them for fakes.
"""

from dataclasses import dataclass, field
from pathlib import Path

from narrated_video.media_tool import FFmpegMediaTool, MediaTool
from narrated_video.narration import SpeechService
from services.image_sources import ImageSource, create_image_sources
from services.job_store import JobStore
from services.text_providers import TextProvider, create_text_provider
from services.tts_service import TTSService
from services.video_sources import VideoSource, create_video_sources


@dataclass
class PipelineContext:
    """Collaborators and settings shared by every stage of a job."""

    store: JobStore
    text_provider: TextProvider
    speech: SpeechService
    media_tool: MediaTool
    video_sources: list[VideoSource] = field(default_factory=list)
    image_sources: list[ImageSource] = field(default_factory=list)
    work_dir: Path = Path(".narrated_video/work")
    output_dir: Path = Path("output/videos")
    artifact_url_prefix: str = "/videos"
    max_duration_minutes: float = 8
    words_per_minute: int = 150
    script_max_chars: int = 9500
    tts_max_chars: int = 9500
    min_scenes: int = 15
    max_scenes: int = 20
    scene_min_seconds: float = 2.0
    scene_max_seconds: float = 15.0
    duration_tolerance: float = 5.0
    stock_search_timeout: float = 10.0
    stock_download_timeout: float = 60.0
    media_lookup_concurrency: int = 5
    parallel_downloads: int = 3
    min_video_height: int = 720
    max_concurrent_renders: int = 1

    async def aclose(self) -> None:
        """Release network clients and the store connection."""
        close = getattr(self.speech, "close", None)
        if close is not None:
            await close()
        await self.store.close()


def build_pipeline_context(config: dict) -> PipelineContext:
    """Construct real collaborators from configuration.

    The job store is created but not connected; callers connect it.

    Args:
        config: Configuration dict from load_config()

    Returns:
        PipelineContext wired to Gemini/Anthropic, ElevenLabs, stock sources and FFmpeg
    """
    return PipelineContext(
        store=JobStore(config["job_db_path"]),
        text_provider=create_text_provider(config),
        speech=TTSService(
            api_key=config["elevenlabs_api_key"],
            voice_id=config["elevenlabs_voice_id"],
            model_id=config["elevenlabs_model"],
            stability=config["tts_stability"],
            similarity_boost=config["tts_similarity_boost"],
            max_chars=config["tts_max_chars"],
            timeout=config["tts_timeout"],
        ),
        media_tool=FFmpegMediaTool(
            width=config["video_width"],
            height=config["video_height"],
            fps=config["video_fps"],
            preset=config["ffmpeg_preset"],
            placeholder_color=config["placeholder_color"],
            ffmpeg_binary=config["ffmpeg_binary"],
            ffprobe_binary=config["ffprobe_binary"],
            timeout=config["ffmpeg_timeout"],
        ),
        video_sources=create_video_sources(config),
        image_sources=create_image_sources(config),
        work_dir=Path(config["work_dir"]),
        output_dir=Path(config["output_dir"]),
        artifact_url_prefix=config["artifact_url_prefix"],
        max_duration_minutes=config["max_duration_minutes"],
        words_per_minute=config["words_per_minute"],
        script_max_chars=config["script_max_chars"],
        tts_max_chars=config["tts_max_chars"],
        min_scenes=config["min_scenes"],
        max_scenes=config["max_scenes"],
        scene_min_seconds=config["scene_min_seconds"],
        scene_max_seconds=config["scene_max_seconds"],
        duration_tolerance=config["duration_tolerance"],
        stock_search_timeout=config["stock_search_timeout"],
        stock_download_timeout=config["stock_download_timeout"],
        media_lookup_concurrency=config["media_lookup_concurrency"],
        parallel_downloads=config["parallel_downloads"],
        min_video_height=config["min_video_height"],
        max_concurrent_renders=config["max_concurrent_renders"],
    )
