"""Unit tests for the FFmpeg media tool (subprocess calls are mocked)."""

import json
import subprocess
from unittest.mock import patch

import pytest

from narrated_video.media_tool import FFmpegMediaTool, MediaToolError


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def tool() -> FFmpegMediaTool:
    return FFmpegMediaTool(width=1280, height=720, fps=25, preset="ultrafast", timeout=30)


class TestClipCommands:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_trim_clip_loops_and_normalizes(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed()) as run:
            output = await tool.trim_clip(temp_dir / "in.mp4", temp_dir / "out.mp4", 6.5)

        cmd = run.call_args[0][0]
        assert output == temp_dir / "out.mp4"
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-stream_loop") + 1] == "-1"
        assert cmd[cmd.index("-t") + 1] == "6.500"
        assert "scale=1280:720:force_original_aspect_ratio=decrease" in cmd[cmd.index("-vf") + 1]
        assert cmd[cmd.index("-r") + 1] == "25"
        assert "-an" in cmd
        assert cmd[-1] == str(temp_dir / "out.mp4")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_image_to_clip_holds_still(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed()) as run:
            await tool.image_to_clip(temp_dir / "in.jpg", temp_dir / "out.mp4", 4)

        cmd = run.call_args[0][0]
        assert cmd[cmd.index("-loop") + 1] == "1"
        assert cmd[cmd.index("-t") + 1] == "4.000"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_placeholder_uses_color_source(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed()) as run:
            await tool.placeholder_clip(temp_dir / "out.mp4", 3.25)

        cmd = run.call_args[0][0]
        assert cmd[cmd.index("-f") + 1] == "lavfi"
        source = cmd[cmd.index("-i") + 1]
        assert source.startswith("color=c=#0f0f23:s=1280x720")
        assert "d=3.250" in source


class TestConcatAndMux:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concat_writes_manifest_in_order(self, tool, temp_dir):
        inputs = [temp_dir / "clip_001.mp4", temp_dir / "it's_002.mp4"]
        manifest = temp_dir / "concat.txt"

        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed()) as run:
            await tool.concat(inputs, temp_dir / "out.mp4", manifest)

        lines = manifest.read_text().splitlines()
        assert lines[0] == f"file '{(temp_dir / 'clip_001.mp4').resolve()}'"
        assert "it'\\''s_002.mp4" in lines[1]
        cmd = run.call_args[0][0]
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert cmd[cmd.index("-safe") + 1] == "0"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concat_single_input_is_copied(self, tool, temp_dir):
        source = temp_dir / "only.mp3"
        source.write_bytes(b"audio")

        with patch("narrated_video.media_tool.subprocess.run") as run:
            await tool.concat([source], temp_dir / "out.mp3", temp_dir / "concat.txt")

        run.assert_not_called()
        assert (temp_dir / "out.mp3").read_bytes() == b"audio"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concat_without_inputs_fails(self, tool, temp_dir):
        with pytest.raises(MediaToolError):
            await tool.concat([], temp_dir / "out.mp4", temp_dir / "concat.txt")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mux_ends_at_shortest_stream(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed()) as run:
            await tool.mux_audio(temp_dir / "v.mp4", temp_dir / "a.mp3", temp_dir / "out.mp4")

        cmd = run.call_args[0][0]
        assert "-shortest" in cmd
        assert cmd.count("-map") == 2
        assert cmd[cmd.index("-c:a") + 1] == "aac"


class TestErrors:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_with_stderr(self, tool, temp_dir):
        with patch(
            "narrated_video.media_tool.subprocess.run",
            return_value=_completed(returncode=1, stderr="Invalid data found when processing input"),
        ):
            with pytest.raises(MediaToolError, match="Invalid data found"):
                await tool.placeholder_clip(temp_dir / "out.mp4", 2)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(MediaToolError, match="not found"):
                await tool.placeholder_clip(temp_dir / "out.mp4", 2)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_raises(self, tool, temp_dir):
        with patch(
            "narrated_video.media_tool.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=30),
        ):
            with pytest.raises(MediaToolError, match="timed out"):
                await tool.placeholder_clip(temp_dir / "out.mp4", 2)


class TestProbe:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_reads_format_duration(self, tool, temp_dir):
        stdout = json.dumps({"format": {"duration": "12.345"}})
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed(stdout=stdout)):
            assert await tool.probe_duration(temp_dir / "a.mp3") == pytest.approx(12.345)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_failure_returns_zero(self, tool, temp_dir):
        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed(returncode=1)):
            assert await tool.probe_duration(temp_dir / "a.mp3") == 0.0

        with patch("narrated_video.media_tool.subprocess.run", return_value=_completed(stdout="garbage")):
            assert await tool.probe_duration(temp_dir / "a.mp3") == 0.0
