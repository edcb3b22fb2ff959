"""Video assembler: scenes + narration -> one muxed MP4 per job.

Steps:
1. Download resolved stock media into the job's work directory
2. Build one clip per scene, in ordinal order (trimmed video, held image,
   or solid-color placeholder)
3. Concatenate the clips with a stream copy
4. Mux the narration track, ending at the shorter stream

Only the final artifact outlives assemble(); downloads, clips, the concat
manifest and the silent intermediate are deleted on success and on failure.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from narrated_video.errors import AssemblyError
from narrated_video.media_tool import MediaTool
from narrated_video.models import MediaType, NarrationTrack, Scene
from services.media_downloader import MediaDownloader

logger = logging.getLogger(__name__)

# Called with (steps_done, steps_total) after each clip, the concat and the mux
ProgressCallback = Callable[[int, int], Awaitable[None]]


class VideoAssembler:
    """Builds the final video for a job from its scenes and narration."""

    def __init__(self, media_tool: MediaTool, downloader: MediaDownloader, output_dir: Path):
        """Initialize the assembler.

        Args:
            media_tool: Media operations backend
            downloader: Stock media downloader (owns download concurrency)
            output_dir: Directory where final videos are written
        """
        self.media_tool = media_tool
        self.downloader = downloader
        self.output_dir = Path(output_dir)

    async def _download_media(self, scenes: list[Scene], media_dir: Path) -> dict[int, Path]:
        """Download every scene's media concurrently.

        A failed download is logged and the scene falls back to a placeholder.

        Returns:
            Mapping of scene ordinal to downloaded file
        """

        async def fetch(scene: Scene) -> tuple[int, Optional[Path]]:
            default_ext = ".mp4" if scene.media_type == MediaType.VIDEO else ".jpg"
            stem = media_dir / f"scene_{scene.ordinal:03d}_{scene.media_type.value}"
            try:
                path = await self.downloader.download(scene.media_url, stem, default_ext)
                return scene.ordinal, path
            except Exception as e:
                logger.warning(
                    f"Download failed for scene {scene.ordinal} ({scene.media_source}), "
                    f"using placeholder: {e}"
                )
                return scene.ordinal, None

        targets = [s for s in scenes if s.has_media]
        if not targets:
            return {}

        media_dir.mkdir(parents=True, exist_ok=True)
        results = await asyncio.gather(*(fetch(scene) for scene in targets))
        downloaded = {ordinal: path for ordinal, path in results if path is not None}

        logger.info(f"Downloaded {len(downloaded)}/{len(targets)} stock media files")
        return downloaded

    async def _build_clip(self, scene: Scene, source: Optional[Path], output: Path) -> Path:
        if source is not None and scene.media_type == MediaType.VIDEO:
            return await self.media_tool.trim_clip(source, output, scene.duration)
        if source is not None and scene.media_type == MediaType.IMAGE:
            return await self.media_tool.image_to_clip(source, output, scene.duration)
        return await self.media_tool.placeholder_clip(output, scene.duration)

    async def assemble(
        self,
        job_id: str,
        scenes: list[Scene],
        narration: NarrationTrack,
        work_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """Assemble the final video.

        Args:
            job_id: Job identifier, used for the output filename
            scenes: Scenes with reconciled durations and resolved media
            narration: Final narration track
            work_dir: Job-scoped scratch directory
            on_progress: Optional async progress callback

        Returns:
            Path to the muxed video in the output directory

        Raises:
            AssemblyError: If any media tool operation fails
        """
        if not scenes:
            raise AssemblyError("No scenes to assemble")

        ordered = sorted(scenes, key=lambda s: s.ordinal)
        total_steps = len(ordered) + 2
        work_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        manifest = work_dir / "concat.txt"
        silent_video = work_dir / "video_silent.mp4"
        output = self.output_dir / f"{job_id}.mp4"
        transient: list[Path] = [manifest, silent_video]
        succeeded = False

        logger.info(
            f"Assembling {len(ordered)} scenes "
            f"({sum(s.duration for s in ordered):.1f}s visuals, {narration.duration:.1f}s narration)"
        )

        try:
            downloads = await self._download_media(ordered, work_dir / "media")
            transient.extend(downloads.values())

            clips: list[Path] = []
            placeholders = 0
            for index, scene in enumerate(ordered, start=1):
                clip_path = work_dir / f"clip_{scene.ordinal:03d}.mp4"
                transient.append(clip_path)
                source = downloads.get(scene.ordinal)
                if source is None:
                    placeholders += 1
                clips.append(await self._build_clip(scene, source, clip_path))
                if on_progress:
                    await on_progress(index, total_steps)

            await self.media_tool.concat(clips, silent_video, manifest)
            if on_progress:
                await on_progress(len(ordered) + 1, total_steps)

            await self.media_tool.mux_audio(silent_video, narration.path, output)
            if on_progress:
                await on_progress(total_steps, total_steps)

            succeeded = True
            logger.info(
                f"Video assembled: {output.name} ({len(clips)} clips, {placeholders} placeholders)"
            )
            return output

        finally:
            if not succeeded:
                transient.append(output)
            self._cleanup(transient, work_dir / "media")

    @staticmethod
    def _cleanup(paths: list[Path], media_dir: Path) -> None:
        """Best-effort removal of intermediate files. Failures are logged only."""
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")

        try:
            if media_dir.exists() and not any(media_dir.iterdir()):
                media_dir.rmdir()
        except OSError as e:
            logger.warning(f"Failed to remove {media_dir}: {e}")
