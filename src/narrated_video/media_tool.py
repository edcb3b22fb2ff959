"""Media tool capability interface and its FFmpeg implementation.

Every clip the assembler produces goes through one of these operations,
so all clips share codec, resolution, pixel format and frame rate and can be
concatenated with a stream copy.
"""

import asyncio
import json
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from narrated_video.errors import AssemblyError

logger = logging.getLogger(__name__)

# Resolution and encoding defaults
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30
DEFAULT_PRESET = "veryfast"
PLACEHOLDER_COLOR = "#0f0f23"


class MediaToolError(AssemblyError):
    """The media tool exited non-zero, timed out or could not be started."""

    pass


class MediaTool(ABC):
    """Narrow set of media operations the pipeline depends on."""

    @abstractmethod
    async def trim_clip(self, source: Path, output: Path, duration: float) -> Path:
        """Transcode a video to exactly `duration` seconds in canonical format.

        Sources shorter than the duration are looped.
        """

    @abstractmethod
    async def image_to_clip(self, image: Path, output: Path, duration: float) -> Path:
        """Hold a still image for `duration` seconds, scaled and padded to canonical size."""

    @abstractmethod
    async def placeholder_clip(self, output: Path, duration: float) -> Path:
        """Generate a solid-color clip of `duration` seconds in canonical format."""

    @abstractmethod
    async def concat(self, inputs: list[Path], output: Path, manifest: Path) -> Path:
        """Losslessly concatenate same-format media files in the given order.

        `manifest` is the path the tool may use for its input list; the
        caller owns its cleanup.
        """

    @abstractmethod
    async def mux_audio(self, video: Path, audio: Path, output: Path) -> Path:
        """Combine a silent video with an audio track, ending at the shorter stream."""

    @abstractmethod
    async def probe_duration(self, path: Path) -> float:
        """Return a media file's duration in seconds (0.0 if unknown)."""


def _escape_concat_path(path: Path) -> str:
    # concat demuxer quoting: close quote, escaped quote, reopen
    return str(path.resolve()).replace("'", "'\\''")


class FFmpegMediaTool(MediaTool):
    """MediaTool backed by ffmpeg/ffprobe subprocess calls.

    Blocking subprocess calls run in worker threads so the event loop stays
    free for other jobs' network I/O.
    """

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        fps: int = DEFAULT_FPS,
        preset: str = DEFAULT_PRESET,
        placeholder_color: str = PLACEHOLDER_COLOR,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        timeout: int = 600,
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.preset = preset
        self.placeholder_color = placeholder_color
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.timeout = timeout

    def _scale_filter(self) -> str:
        """Fit inside the canvas preserving aspect ratio, pad the rest."""
        w, h = self.width, self.height
        return (
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:black,"
            f"setsar=1,fps={self.fps}"
        )

    def _encode_args(self) -> list[str]:
        return [
            "-c:v", "libx264",
            "-preset", self.preset,
            "-pix_fmt", "yuv420p",
            "-r", str(self.fps),
            "-an",
        ]

    async def trim_clip(self, source: Path, output: Path, duration: float) -> Path:
        cmd = [
            self.ffmpeg_binary, "-y",
            "-stream_loop", "-1",
            "-i", str(source),
            "-t", f"{duration:.3f}",
            "-vf", self._scale_filter(),
            *self._encode_args(),
            str(output),
        ]
        await asyncio.to_thread(self._run_ffmpeg, cmd, f"trim {source.name} to {duration:.2f}s")
        return output

    async def image_to_clip(self, image: Path, output: Path, duration: float) -> Path:
        cmd = [
            self.ffmpeg_binary, "-y",
            "-loop", "1",
            "-i", str(image),
            "-t", f"{duration:.3f}",
            "-vf", self._scale_filter(),
            *self._encode_args(),
            str(output),
        ]
        await asyncio.to_thread(self._run_ffmpeg, cmd, f"image {image.name} to {duration:.2f}s clip")
        return output

    async def placeholder_clip(self, output: Path, duration: float) -> Path:
        source = (
            f"color=c={self.placeholder_color}:s={self.width}x{self.height}"
            f":d={duration:.3f}:r={self.fps}"
        )
        cmd = [
            self.ffmpeg_binary, "-y",
            "-f", "lavfi",
            "-i", source,
            *self._encode_args(),
            str(output),
        ]
        await asyncio.to_thread(self._run_ffmpeg, cmd, f"placeholder {duration:.2f}s")
        return output

    async def concat(self, inputs: list[Path], output: Path, manifest: Path) -> Path:
        if not inputs:
            raise MediaToolError("No inputs to concatenate")

        if len(inputs) == 1:
            await asyncio.to_thread(shutil.copy2, str(inputs[0]), str(output))
            return output

        lines = [f"file '{_escape_concat_path(path)}'" for path in inputs]
        manifest.write_text("\n".join(lines) + "\n")

        cmd = [
            self.ffmpeg_binary, "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest),
            "-c", "copy",
            str(output),
        ]
        await asyncio.to_thread(self._run_ffmpeg, cmd, f"concatenate {len(inputs)} files")
        return output

    async def mux_audio(self, video: Path, audio: Path, output: Path) -> Path:
        cmd = [
            self.ffmpeg_binary, "-y",
            "-i", str(video),
            "-i", str(audio),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", "192k",
            "-shortest",
            "-movflags", "+faststart",
            str(output),
        ]
        await asyncio.to_thread(self._run_ffmpeg, cmd, "mux narration")
        return output

    async def probe_duration(self, path: Path) -> float:
        return await asyncio.to_thread(self._get_duration, path)

    def _get_duration(self, path: Path) -> float:
        """Get the precise duration of a media file using ffprobe.

        Returns duration in seconds. Falls back to 0.0 on error.
        """
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "json",
            str(path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
            if result.returncode == 0:
                data = json.loads(result.stdout)
                return float(data["format"]["duration"])
            logger.warning(f"ffprobe exited {result.returncode} for {path.name}")
        except (OSError, subprocess.TimeoutExpired, ValueError, KeyError) as e:
            logger.warning(f"ffprobe failed for {path}: {e}")
        return 0.0

    def _run_ffmpeg(self, cmd: list[str], description: str = "") -> None:
        """Run FFmpeg command with error handling.

        Args:
            cmd: FFmpeg command as list of arguments
            description: Human-readable description for logging

        Raises:
            MediaToolError: If FFmpeg can't start, times out or exits non-zero
        """
        logger.debug(f"FFmpeg: {description}")
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise MediaToolError(f"FFmpeg binary not found: {self.ffmpeg_binary}") from e
        except subprocess.TimeoutExpired as e:
            raise MediaToolError(f"FFmpeg timed out after {self.timeout}s ({description})") from e

        if result.returncode != 0:
            logger.error(f"FFmpeg stderr: {result.stderr[-1000:]}")
            raise MediaToolError(f"FFmpeg failed ({description}): {result.stderr[:500]}")
