"""Configuration loading and validation for narrated-video."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

SUPPORTED_TEXT_PROVIDERS = ("gemini", "anthropic")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Generative text providers
        "text_provider": os.getenv("TEXT_PROVIDER", "gemini").lower(),
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        "gemini_model": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
        "anthropic_model": os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
        "generation_timeout": float(os.getenv("GENERATION_TIMEOUT", "120")),
        # Script distillation
        "max_duration_minutes": int(os.getenv("MAX_DURATION_MINUTES", "8")),
        "words_per_minute": int(os.getenv("WORDS_PER_MINUTE", "150")),
        "script_max_chars": int(os.getenv("SCRIPT_MAX_CHARS", "9500")),
        # Scene planning
        "min_scenes": int(os.getenv("MIN_SCENES", "15")),
        "max_scenes": int(os.getenv("MAX_SCENES", "20")),
        "scene_min_seconds": float(os.getenv("SCENE_MIN_SECONDS", "2")),
        "scene_max_seconds": float(os.getenv("SCENE_MAX_SECONDS", "15")),
        "duration_tolerance": float(os.getenv("DURATION_TOLERANCE", "5")),
        # Stock media
        "pexels_api_key": os.getenv("PEXELS_API_KEY", ""),
        "pixabay_api_key": os.getenv("PIXABAY_API_KEY", ""),
        "unsplash_access_key": os.getenv("UNSPLASH_ACCESS_KEY", ""),
        "video_sources": _env_list("VIDEO_SOURCES", "pexels,pixabay"),
        "image_sources": _env_list("IMAGE_SOURCES", "unsplash,pexels"),
        "stock_search_timeout": float(os.getenv("STOCK_SEARCH_TIMEOUT", "10")),
        "stock_download_timeout": float(os.getenv("STOCK_DOWNLOAD_TIMEOUT", "60")),
        "media_lookup_concurrency": int(os.getenv("MEDIA_LOOKUP_CONCURRENCY", "5")),
        "parallel_downloads": int(os.getenv("PARALLEL_DOWNLOADS", "3")),
        "min_video_height": int(os.getenv("MIN_VIDEO_HEIGHT", "720")),
        # Speech synthesis (ElevenLabs)
        "elevenlabs_api_key": os.getenv("ELEVENLABS_API_KEY"),
        "elevenlabs_voice_id": os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM"),
        "elevenlabs_model": os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2"),
        "tts_stability": float(os.getenv("TTS_STABILITY", "0.75")),
        "tts_similarity_boost": float(os.getenv("TTS_SIMILARITY_BOOST", "0.75")),
        "tts_max_chars": int(os.getenv("TTS_MAX_CHARS", "9500")),
        "tts_timeout": float(os.getenv("TTS_TIMEOUT", "300")),
        # Rendering
        "video_width": int(os.getenv("VIDEO_WIDTH", "1920")),
        "video_height": int(os.getenv("VIDEO_HEIGHT", "1080")),
        "video_fps": int(os.getenv("VIDEO_FPS", "30")),
        "placeholder_color": os.getenv("PLACEHOLDER_COLOR", "#0f0f23"),
        "ffmpeg_binary": os.getenv("FFMPEG_BINARY", "ffmpeg"),
        "ffprobe_binary": os.getenv("FFPROBE_BINARY", "ffprobe"),
        "ffmpeg_timeout": int(os.getenv("FFMPEG_TIMEOUT", "600")),
        "ffmpeg_preset": os.getenv("FFMPEG_PRESET", "veryfast"),
        # Jobs and storage
        "job_db_path": resolve_path(os.getenv("JOB_DB_PATH"), ".narrated_video/jobs.db"),
        "work_dir": resolve_path(os.getenv("WORK_DIR"), ".narrated_video/work"),
        "output_dir": resolve_path(os.getenv("OUTPUT_DIR"), "output/videos"),
        "artifact_url_prefix": os.getenv("ARTIFACT_URL_PREFIX", "/videos").rstrip("/"),
        "max_concurrent_renders": int(os.getenv("MAX_CONCURRENT_RENDERS", "1")),
        "job_retention_days": int(os.getenv("JOB_RETENTION_DAYS", "7")),
        # Logging and server
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_bool("LOG_JSON", "false"),
        "port": int(os.getenv("PORT", "10000")),
        "cors_origins": _env_list("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    provider = config.get("text_provider")
    if provider not in SUPPORTED_TEXT_PROVIDERS:
        errors.append(
            f"TEXT_PROVIDER must be one of {', '.join(SUPPORTED_TEXT_PROVIDERS)} (got {provider!r})"
        )
    elif provider == "gemini" and not config.get("gemini_api_key"):
        errors.append("GEMINI_API_KEY is required when TEXT_PROVIDER=gemini")
    elif provider == "anthropic" and not config.get("anthropic_api_key"):
        errors.append("ANTHROPIC_API_KEY is required when TEXT_PROVIDER=anthropic")

    if not config.get("elevenlabs_api_key"):
        errors.append("ELEVENLABS_API_KEY is required for narration")

    # Stock media keys are optional: unconfigured sources yield placeholder clips

    max_minutes = config.get("max_duration_minutes", 0)
    if not 5 <= max_minutes <= 8:
        errors.append(f"MAX_DURATION_MINUTES must be between 5 and 8 (got {max_minutes})")

    for key in ("script_max_chars", "tts_max_chars", "words_per_minute"):
        if config.get(key, 0) <= 0:
            errors.append(f"{key.upper()} must be positive")

    if config.get("scene_min_seconds", 0) >= config.get("scene_max_seconds", 0):
        errors.append("SCENE_MIN_SECONDS must be lower than SCENE_MAX_SECONDS")

    if config.get("max_concurrent_renders", 0) < 1:
        errors.append("MAX_CONCURRENT_RENDERS must be at least 1")

    for key in ("work_dir", "output_dir"):
        try:
            Path(config[key]).mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create {key}: {e}")

    return errors
