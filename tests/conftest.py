"""Shared pytest fixtures and fakes for narrated-video tests."""

import asyncio
import sys
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Optional, Union

import pytest
import pytest_asyncio

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.image import ImageResult  # noqa: E402
from models.video import VideoResult  # noqa: E402
from narrated_video.context import PipelineContext  # noqa: E402
from narrated_video.media_tool import MediaTool, MediaToolError  # noqa: E402
from services.image_sources.base import ImageSource  # noqa: E402
from services.job_store import JobStore  # noqa: E402
from services.text_providers.base import TextProvider  # noqa: E402
from services.video_sources.base import VideoSource  # noqa: E402

# Fake narration "audio": an MP3 magic header followed by the spoken text
AUDIO_HEADER = b"ID3"
# Roughly 150 words per minute
CHARS_PER_SECOND = 15.0


class FakeTextProvider(TextProvider):
    """Returns canned script and scene-plan responses.

    A response may be a string, an exception instance to raise, or a
    callable taking the prompt.
    """

    def __init__(
        self,
        script: Union[str, Exception, Callable[[str], str]] = "",
        scenes: Union[str, Exception, Callable[[str], str]] = "[]",
        name: str = "fake",
    ):
        self.script = script
        self.scenes = scenes
        self.name = name
        self.prompts: list[tuple[str, bool]] = []

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        json_output: bool = False,
        max_tokens: int = 8192,
    ) -> str:
        self.prompts.append((prompt, json_output))
        response = self.scenes if json_output else self.script
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response

    def get_provider_name(self) -> str:
        return self.name


class FakeSpeechService:
    """Speech client that 'synthesizes' text into fake MP3 bytes."""

    def __init__(self, fail_on_call: Optional[int] = None, delay: float = 0.0):
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.calls: list[str] = []
        self.closed = False

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RuntimeError(f"speech provider rejected call {len(self.calls)}")
        return AUDIO_HEADER + text.encode("utf-8")

    async def close(self) -> None:
        self.closed = True


class FakeMediaTool(MediaTool):
    """MediaTool that writes stub files and tracks durations in memory.

    Audio durations are derived from the fake audio payload length; video
    durations are whatever the clip operations were asked to produce.
    """

    def __init__(self, fail_on: tuple[str, ...] = (), durations: Optional[Dict[str, float]] = None):
        self.fail_on = set(fail_on)
        self.durations: Dict[str, float] = dict(durations or {})
        self.calls: list[tuple] = []

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise MediaToolError(f"FFmpeg failed ({operation}): simulated failure")

    def _write_clip(self, output: Path, duration: float) -> Path:
        output.write_bytes(b"clip")
        self.durations[str(output)] = duration
        return output

    async def trim_clip(self, source: Path, output: Path, duration: float) -> Path:
        self.calls.append(("trim_clip", source, output, duration))
        self._check("trim_clip")
        return self._write_clip(output, duration)

    async def image_to_clip(self, image: Path, output: Path, duration: float) -> Path:
        self.calls.append(("image_to_clip", image, output, duration))
        self._check("image_to_clip")
        return self._write_clip(output, duration)

    async def placeholder_clip(self, output: Path, duration: float) -> Path:
        self.calls.append(("placeholder_clip", output, duration))
        self._check("placeholder_clip")
        return self._write_clip(output, duration)

    async def concat(self, inputs: list[Path], output: Path, manifest: Path) -> Path:
        self.calls.append(("concat", list(inputs), output, manifest))
        self._check("concat")
        manifest.write_text("\n".join(f"file '{p}'" for p in inputs) + "\n")

        if all(p.read_bytes().startswith(AUDIO_HEADER) for p in inputs):
            payload = b"".join(p.read_bytes()[len(AUDIO_HEADER):] for p in inputs)
            output.write_bytes(AUDIO_HEADER + payload)
        else:
            output.write_bytes(b"video")
            self.durations[str(output)] = sum(self.durations.get(str(p), 0.0) for p in inputs)
        return output

    async def mux_audio(self, video: Path, audio: Path, output: Path) -> Path:
        self.calls.append(("mux_audio", video, audio, output))
        self._check("mux_audio")
        output.write_bytes(b"muxed")
        video_duration = self.durations.get(str(video), 0.0)
        audio_duration = await self.probe_duration(audio)
        self.durations[str(output)] = min(video_duration, audio_duration)
        return output

    async def probe_duration(self, path: Path) -> float:
        if str(path) in self.durations:
            return self.durations[str(path)]
        if path.exists():
            content = path.read_bytes()
            if content.startswith(AUDIO_HEADER):
                return (len(content) - len(AUDIO_HEADER)) / CHARS_PER_SECOND
        return 0.0

    def operations(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeDownloader:
    """Stands in for MediaDownloader; writes a small file per URL."""

    def __init__(self, fail_urls: tuple[str, ...] = ()):
        self.fail_urls = set(fail_urls)
        self.urls: list[str] = []

    async def download(self, url: str, output_stem: Path, default_ext: str = ".mp4") -> Path:
        self.urls.append(url)
        if url in self.fail_urls:
            raise RuntimeError(f"Download failed with status 404: {url}")
        output_stem.parent.mkdir(parents=True, exist_ok=True)
        path = output_stem.with_suffix(default_ext)
        path.write_bytes(b"media")
        return path


class StubVideoSource(VideoSource):
    """Video source answering from a query -> results mapping."""

    def __init__(
        self,
        results: Optional[Dict[str, list[VideoResult]]] = None,
        name: str = "stub-video",
        error: Optional[Exception] = None,
        delays: Optional[Dict[str, float]] = None,
        configured: bool = True,
    ):
        self.results = results or {}
        self.name = name
        self.error = error
        self.delays = delays or {}
        self.configured = configured
        self.queries: list[str] = []

    async def search_videos(self, phrase: str) -> list[VideoResult]:
        self.queries.append(phrase)
        if phrase in self.delays:
            await asyncio.sleep(self.delays[phrase])
        if self.error:
            raise self.error
        return list(self.results.get(phrase, []))

    def get_source_name(self) -> str:
        return self.name

    def is_configured(self) -> bool:
        return self.configured


class StubImageSource(ImageSource):
    """Image source answering from a query -> results mapping."""

    def __init__(
        self,
        results: Optional[Dict[str, list[ImageResult]]] = None,
        name: str = "stub-image",
        error: Optional[Exception] = None,
    ):
        self.results = results or {}
        self.name = name
        self.error = error
        self.queries: list[str] = []

    async def search_images(self, phrase: str, per_page: int = 1) -> list[ImageResult]:
        self.queries.append(phrase)
        if self.error:
            raise self.error
        return list(self.results.get(phrase, []))[:per_page]

    def get_source_name(self) -> str:
        return self.name


def make_video(video_id: str, width: int = 1920, height: int = 1080, source: str = "stub-video") -> VideoResult:
    return VideoResult(
        video_id=video_id,
        title=f"Video {video_id}",
        url=f"https://stock.example/videos/{video_id}",
        duration=20,
        download_url=f"https://stock.example/videos/{video_id}.mp4",
        width=width,
        height=height,
        source=source,
    )


def make_image(image_id: str, width: int = 1600, height: int = 900, source: str = "stub-image") -> ImageResult:
    return ImageResult(
        image_id=image_id,
        title=f"Image {image_id}",
        url=f"https://stock.example/photos/{image_id}",
        download_url=f"https://stock.example/photos/{image_id}.jpg",
        width=width,
        height=height,
        source=source,
    )


def sentence_script(sentences: int, sentence: str = "The ocean floor hides remarkable creatures.") -> str:
    return " ".join([sentence] * sentences)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir) -> Dict:
    """Sample configuration for testing."""
    return {
        "text_provider": "gemini",
        "gemini_api_key": "test_gemini_key",
        "gemini_model": "gemini-2.5-flash",
        "anthropic_api_key": None,
        "elevenlabs_api_key": "test_elevenlabs_key",
        "max_duration_minutes": 8,
        "words_per_minute": 150,
        "script_max_chars": 9500,
        "tts_max_chars": 9500,
        "scene_min_seconds": 2.0,
        "scene_max_seconds": 15.0,
        "max_concurrent_renders": 1,
        "work_dir": str(temp_dir / "work"),
        "output_dir": str(temp_dir / "videos"),
        "artifact_url_prefix": "/videos",
        "cors_origins": [],
        "job_retention_days": 7,
    }


@pytest.fixture
def fake_media_tool() -> FakeMediaTool:
    return FakeMediaTool()


@pytest.fixture
def fake_speech() -> FakeSpeechService:
    return FakeSpeechService()


@pytest.fixture
def sample_script() -> str:
    """About 360 words of narration (roughly two and a half minutes)."""
    return sentence_script(60)


@pytest_asyncio.fixture
async def job_store():
    store = JobStore(":memory:")
    await store.connect()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def make_context(temp_dir, fake_media_tool, fake_speech):
    """Factory for a PipelineContext wired to fakes around a connected store."""

    def factory(store: JobStore, **overrides) -> PipelineContext:
        options = {
            "store": store,
            "text_provider": FakeTextProvider(script=sentence_script(60)),
            "speech": fake_speech,
            "media_tool": fake_media_tool,
            "video_sources": [],
            "image_sources": [],
            "work_dir": temp_dir / "work",
            "output_dir": temp_dir / "videos",
            "artifact_url_prefix": "/videos",
        }
        options.update(overrides)
        return PipelineContext(**options)

    return factory
