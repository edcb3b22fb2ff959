"""Unit tests for configuration loading and logging setup."""

import logging

import pytest
import structlog

from utils.config import PROJECT_ROOT, load_config, validate_config
from utils.logging import clear_job_context, set_job_context, setup_logging


@pytest.fixture
def valid_config(temp_dir):
    return {
        "text_provider": "gemini",
        "gemini_api_key": "g-key",
        "elevenlabs_api_key": "el-key",
        "max_duration_minutes": 8,
        "script_max_chars": 9500,
        "tts_max_chars": 9500,
        "words_per_minute": 150,
        "scene_min_seconds": 2.0,
        "scene_max_seconds": 15.0,
        "max_concurrent_renders": 1,
        "work_dir": str(temp_dir / "work"),
        "output_dir": str(temp_dir / "videos"),
    }


class TestLoadConfig:
    def test_defaults(self, monkeypatch):
        for name in ("TEXT_PROVIDER", "MAX_DURATION_MINUTES", "VIDEO_SOURCES", "OUTPUT_DIR", "ARTIFACT_URL_PREFIX"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config["text_provider"] == "gemini"
        assert config["max_duration_minutes"] == 8
        assert config["video_sources"] == ["pexels", "pixabay"]
        assert config["output_dir"] == str(PROJECT_ROOT / "output/videos")
        assert config["artifact_url_prefix"] == "/videos"

    def test_environment_overrides(self, monkeypatch, temp_dir):
        monkeypatch.setenv("TEXT_PROVIDER", "Anthropic")
        monkeypatch.setenv("MAX_DURATION_MINUTES", "6")
        monkeypatch.setenv("IMAGE_SOURCES", " Pexels , ,unsplash")
        monkeypatch.setenv("WORK_DIR", str(temp_dir))
        monkeypatch.setenv("JOB_DB_PATH", "data/jobs.db")
        monkeypatch.setenv("ARTIFACT_URL_PREFIX", "/media/")
        monkeypatch.setenv("LOG_JSON", "TRUE")

        config = load_config()

        assert config["text_provider"] == "anthropic"
        assert config["max_duration_minutes"] == 6
        assert config["image_sources"] == ["pexels", "unsplash"]
        assert config["work_dir"] == str(temp_dir)
        assert config["job_db_path"] == str(PROJECT_ROOT / "data/jobs.db")
        assert config["artifact_url_prefix"] == "/media"
        assert config["log_json"] is True


class TestValidateConfig:
    def test_valid_config_creates_directories(self, valid_config, temp_dir):
        assert validate_config(valid_config) == []
        assert (temp_dir / "work").is_dir()
        assert (temp_dir / "videos").is_dir()

    def test_missing_provider_key(self, valid_config):
        valid_config["text_provider"] = "anthropic"

        errors = validate_config(valid_config)

        assert errors == ["ANTHROPIC_API_KEY is required when TEXT_PROVIDER=anthropic"]

    def test_unknown_provider(self, valid_config):
        valid_config["text_provider"] = "llama"

        assert "TEXT_PROVIDER must be one of" in validate_config(valid_config)[0]

    def test_duration_ceiling_range(self, valid_config):
        valid_config["max_duration_minutes"] = 9

        assert validate_config(valid_config) == ["MAX_DURATION_MINUTES must be between 5 and 8 (got 9)"]

    def test_collects_every_problem(self, valid_config):
        valid_config["elevenlabs_api_key"] = None
        valid_config["tts_max_chars"] = 0
        valid_config["scene_min_seconds"] = 20.0
        valid_config["max_concurrent_renders"] = 0

        errors = validate_config(valid_config)

        assert len(errors) == 4
        assert "TTS_MAX_CHARS must be positive" in errors


class TestLogging:
    def test_job_context_is_merged_into_records(self):
        set_job_context("job-1", "target-9")
        try:
            merged = structlog.contextvars.merge_contextvars(None, "info", {"event": "x"})
        finally:
            clear_job_context()

        assert merged == {"event": "x", "job_id": "job-1", "target_id": "target-9"}
        assert structlog.contextvars.merge_contextvars(None, "info", {"event": "x"}) == {"event": "x"}

    def test_setup_logging_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("debug", json_output=True)
            setup_logging("warning")

            assert len(root.handlers) == 1
            assert root.level == logging.WARNING
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
