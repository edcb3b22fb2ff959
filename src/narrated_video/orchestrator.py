"""Job orchestrator: the only component exposed to callers.

Sequences the stages of a job, persists stage checkpoints, enforces
one-job-per-target idempotency and cleans up each job's work directory.

Stage flow:
    distill script -> plan scenes -> (resolve stock media || synthesize narration)
    -> reconcile scene durations to the narration -> assemble video
"""

import asyncio
import logging
import shutil
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from narrated_video.context import PipelineContext
from narrated_video.errors import EmptyInputError, InputUnavailableError
from narrated_video.job_queue import AsyncioJobQueue, JobPayload, JobQueue
from narrated_video.media_resolver import StockMediaResolver
from narrated_video.models import (
    JobStatus,
    MediaType,
    NarrationTrack,
    PipelineStage,
    Scene,
    StartResult,
    StatusReport,
)
from narrated_video.narration import NarrationSynthesizer
from narrated_video.scene_planner import ScenePlanner
from narrated_video.script_distiller import ScriptDistiller
from narrated_video.video_assembler import VideoAssembler
from services.job_store import InvalidTransitionError
from services.media_downloader import MediaDownloader
from services.prompts import PROMPT_VERSIONS
from utils.logging import clear_job_context, set_job_context

logger = logging.getLogger(__name__)

# Visuals run slightly past the narration so the mux always ends on audio
NARRATION_COVER_PADDING = 0.5
INTERRUPTED_REASON = "Job interrupted: its worker stopped before it finished"
# Workers refresh their heartbeat this often; jobs of a worker silent for
# WORKER_STALE_AFTER seconds are treated as orphaned
HEARTBEAT_INTERVAL = 15.0
WORKER_STALE_AFTER = 60.0


class JobOrchestrator:
    """Runs narrated video jobs and answers status queries."""

    def __init__(self, context: PipelineContext, queue: Optional[JobQueue] = None):
        """Wire every stage from the pipeline context.

        Args:
            context: Collaborators and settings
            queue: Job queue; defaults to an in-process queue whose worker
                   count is max_concurrent_renders
        """
        self.ctx = context
        self.store = context.store

        self.distiller = ScriptDistiller(
            context.text_provider,
            words_per_minute=context.words_per_minute,
            max_chars=context.script_max_chars,
        )
        self.planner = ScenePlanner(
            context.text_provider,
            min_scenes=context.min_scenes,
            max_scenes=context.max_scenes,
            min_seconds=context.scene_min_seconds,
            max_seconds=context.scene_max_seconds,
            tolerance=context.duration_tolerance,
        )
        self.resolver = StockMediaResolver(
            context.video_sources,
            context.image_sources,
            timeout=context.stock_search_timeout,
            concurrency=context.media_lookup_concurrency,
            min_video_height=context.min_video_height,
        )
        self.narrator = NarrationSynthesizer(
            context.speech,
            context.media_tool,
            max_chars=context.tts_max_chars,
        )
        self.assembler = VideoAssembler(
            context.media_tool,
            MediaDownloader(
                timeout=context.stock_download_timeout,
                max_concurrent=context.parallel_downloads,
            ),
            context.output_dir,
        )
        self.queue = queue or AsyncioJobQueue(self.handle, concurrency=context.max_concurrent_renders)

        self.instance_id = uuid.uuid4().hex
        self.heartbeat_interval = HEARTBEAT_INTERVAL
        self._heartbeat_task: Optional[asyncio.Task] = None

        self._target_locks: dict[str, asyncio.Lock] = {}
        self._target_lock_users: defaultdict[str, int] = defaultdict(int)
        self._checkpoint_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self, retention_days: Optional[int] = None) -> None:
        """Register this worker, fail orphaned jobs, prune old jobs, start workers."""
        await self.store.heartbeat(self.instance_id)
        await self.recover_interrupted()
        if retention_days:
            await self.cleanup_expired(retention_days)
        await self.queue.start()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def shutdown(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            await asyncio.gather(self._heartbeat_task, return_exceptions=True)
            self._heartbeat_task = None
        await self.queue.stop()
        await self.store.remove_worker(self.instance_id)

    async def recover_interrupted(self) -> int:
        """Mark jobs whose worker is gone as failed.

        Jobs owned by a live worker sharing the database are untouched.
        Callers retry failed jobs through the normal delete-and-restart path.
        """
        return await self.store.fail_interrupted_jobs(INTERRUPTED_REASON, stale_after=WORKER_STALE_AFTER)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.store.heartbeat(self.instance_id)
                await self.recover_interrupted()
            except Exception as e:
                logger.warning(f"Worker heartbeat failed: {e}")

    async def cleanup_expired(self, days: int) -> int:
        """Delete terminal jobs older than `days` along with their videos."""
        removed = await self.store.cleanup_old_jobs(days)
        for job in removed:
            self._remove_artifact(job["id"])
        return len(removed)

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    async def start(
        self,
        target_id: str,
        topic: Optional[str] = None,
        article_text: Optional[str] = None,
    ) -> StartResult:
        """Start a video job for a target, idempotently.

        completed -> the existing artifact is returned, nothing is recomputed.
        processing -> the in-progress status is returned, no second run starts.
        failed -> the stale record is deleted and a fresh job starts.

        Args:
            target_id: Article/target identifier
            topic: Optional topic to store with the article
            article_text: Optional article text, stored only when a fresh job
                          starts; ignored for a completed or processing target

        Returns:
            StartResult with status started, already_exists or processing

        Raises:
            InputUnavailableError: If the target has no article text
        """
        async with self._locked_target(target_id):
            existing = await self.store.find_job_by_target(target_id)
            if existing is not None:
                if existing["status"] == JobStatus.COMPLETED.value:
                    logger.info(f"Target {target_id} already has a video ({existing['id']})")
                    return StartResult(
                        status="already_exists",
                        message="Video already exists",
                        job_id=existing["id"],
                        artifact_url=existing["artifact_url"],
                    )
                if existing["status"] == JobStatus.PROCESSING.value:
                    logger.info(f"Target {target_id} is already processing ({existing['id']})")
                    return StartResult(
                        status="processing",
                        message="Video generation already in progress",
                        job_id=existing["id"],
                    )

                logger.info(f"Restarting failed job {existing['id']} for target {target_id}")
                await self.store.delete_job(existing["id"])
                self._remove_artifact(existing["id"])

            if article_text is not None:
                await self.store.put_article(target_id, article_text, topic or "")

            article = await self.store.get_article(target_id)
            if article is None:
                raise InputUnavailableError(f"No article found for target {target_id}")
            if not article["text"].strip():
                raise EmptyInputError(f"Article for target {target_id} is empty")

            job_id = uuid.uuid4().hex
            await self.store.create_job(
                job_id,
                target_id,
                data={
                    "topic": article["topic"],
                    "text_provider": self.ctx.text_provider.get_provider_name(),
                    "prompt_versions": {
                        "script": PROMPT_VERSIONS["distill_script"],
                        "scenes": PROMPT_VERSIONS["plan_scenes"],
                    },
                    "started_at": datetime.now().isoformat(),
                },
                owner=self.instance_id,
            )

        await self.queue.enqueue(JobPayload(job_id=job_id, target_id=target_id))
        return StartResult(status="started", message="Video generation started", job_id=job_id)

    async def get_status(self, target_id: str) -> StatusReport:
        """Status for a target. Never raises for a target without a job."""
        job = await self.store.find_job_by_target(target_id)
        if job is None:
            return StatusReport(status=JobStatus.NOT_STARTED, message="No video has been generated yet")
        return StatusReport.from_job(job)

    async def delete(self, target_id: str) -> bool:
        """Delete a target's terminal job and its video.

        Returns:
            True if a job was deleted, False if the target had none

        Raises:
            InvalidTransitionError: If the job is still processing
        """
        async with self._locked_target(target_id):
            job = await self.store.find_job_by_target(target_id)
            if job is None:
                return False
            if job["status"] == JobStatus.PROCESSING.value:
                raise InvalidTransitionError(f"Job {job['id']} is still processing")

            await self.store.delete_job(job["id"])
            self._remove_artifact(job["id"])
            return True

    def artifact_path(self, job_id: str) -> Path:
        return self.ctx.output_dir / f"{job_id}.mp4"

    @asynccontextmanager
    async def _locked_target(self, target_id: str) -> AsyncIterator[None]:
        """Serialize start/delete per target; the lock is dropped once unused."""
        lock = self._target_locks.setdefault(target_id, asyncio.Lock())
        self._target_lock_users[target_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._target_lock_users[target_id] -= 1
            if not self._target_lock_users[target_id]:
                del self._target_lock_users[target_id]
                del self._target_locks[target_id]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def handle(self, payload: JobPayload) -> None:
        """Queue handler: reload the article and run the job."""
        article = await self.store.get_article(payload.target_id)
        text = article["text"] if article else ""
        topic = article["topic"] if article else ""
        await self.run_job(payload.job_id, text, topic, target_id=payload.target_id)

    async def _checkpoint(
        self,
        job_id: str,
        stage: PipelineStage,
        sub_progress: float = 0.0,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        async with self._checkpoint_locks[job_id]:
            await self.store.update_job(
                job_id,
                stage=stage.value,
                progress=stage.progress(sub_progress),
                data=data,
            )

    async def run_job(
        self, job_id: str, article: str, topic: str, target_id: Optional[str] = None
    ) -> None:
        """Run every stage of a job to a terminal state.

        Stage errors are recorded on the job, never raised. The job's work
        directory is removed before the terminal status is written.
        """
        set_job_context(job_id, target_id)
        work_dir = self.ctx.work_dir / job_id
        logger.info(f"Starting job {job_id}: topic='{topic[:60]}'")

        try:
            if not article.strip():
                raise InputUnavailableError("Article text is no longer available")

            await self._checkpoint(job_id, PipelineStage.DISTILLING_SCRIPT)
            script = await self.distiller.distill(article, topic, self.ctx.max_duration_minutes)
            await self._checkpoint(
                job_id,
                PipelineStage.DISTILLING_SCRIPT,
                1.0,
                data={
                    "script": script.text,
                    "word_count": script.word_count,
                    "estimated_duration": script.estimated_duration,
                    "script_truncated": script.truncated,
                },
            )

            await self._checkpoint(job_id, PipelineStage.PLANNING_SCENES)
            scenes = await self.planner.plan(script.text, topic, script.estimated_duration)
            await self._checkpoint(
                job_id,
                PipelineStage.PLANNING_SCENES,
                1.0,
                data={"scene_count": len(scenes)},
            )

            await self._checkpoint(job_id, PipelineStage.SOURCING_ASSETS)
            work_dir.mkdir(parents=True, exist_ok=True)
            scenes, narration = await self._source_assets(
                job_id, scenes, script.text, script.estimated_duration, work_dir
            )

            target = (narration.duration or script.estimated_duration) + NARRATION_COVER_PADDING
            scenes = self.planner.reconcile(scenes, target, tolerance=0.0)

            await self._checkpoint(
                job_id,
                PipelineStage.ASSEMBLING_VIDEO,
                data={
                    "scene_count": len(scenes),
                    "scenes": [scene.to_dict() for scene in scenes],
                },
            )

            async def on_progress(done: int, total: int) -> None:
                await self._checkpoint(job_id, PipelineStage.ASSEMBLING_VIDEO, done / total)

            output = await self.assembler.assemble(job_id, scenes, narration, work_dir, on_progress)

            self._remove_work_dir(work_dir)
            await self.store.update_job(
                job_id,
                status=JobStatus.COMPLETED.value,
                stage=PipelineStage.COMPLETE.value,
                progress=PipelineStage.COMPLETE.progress(),
                artifact_url=f"{self.ctx.artifact_url_prefix}/{output.name}",
                data={"completed_at": datetime.now().isoformat()},
            )
            logger.info(f"Job {job_id} completed: {output}")

        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            self._remove_work_dir(work_dir)
            await self._mark_failed(job_id, e)

        finally:
            self._remove_work_dir(work_dir)
            self._checkpoint_locks.pop(job_id, None)
            clear_job_context()

    async def _source_assets(
        self,
        job_id: str,
        scenes: list[Scene],
        script: str,
        estimated_duration: int,
        work_dir: Path,
    ) -> tuple[list[Scene], NarrationTrack]:
        """Resolve stock media and synthesize narration concurrently."""
        branches_done = 0

        async def branch_finished(data: dict[str, Any]) -> None:
            nonlocal branches_done
            branches_done += 1
            await self._checkpoint(job_id, PipelineStage.SOURCING_ASSETS, branches_done / 2, data=data)

        async def resolve_media() -> list[Scene]:
            resolved = await self.resolver.resolve_all(scenes)
            await branch_finished(
                {
                    "scenes_with_media": sum(1 for s in resolved if s.has_media),
                    "scenes_with_video": sum(1 for s in resolved if s.media_type == MediaType.VIDEO),
                    "media_credits": sorted({s.media_credit for s in resolved if s.media_credit}),
                }
            )
            return resolved

        async def synthesize_narration() -> NarrationTrack:
            track = await self.narrator.synthesize(script, work_dir, estimated_duration)
            await branch_finished(
                {
                    "chunk_count": track.chunk_count,
                    "chunked_audio": track.chunked,
                    "narration_duration": round(track.duration, 3),
                }
            )
            return track

        tasks = [
            asyncio.create_task(resolve_media()),
            asyncio.create_task(synthesize_narration()),
        ]
        try:
            resolved, narration = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return resolved, narration

    async def _mark_failed(self, job_id: str, error: Exception) -> None:
        try:
            await self.store.update_job(
                job_id,
                status=JobStatus.FAILED.value,
                stage=PipelineStage.FAILED.value,
                error=str(error) or type(error).__name__,
                data={
                    "failed_at": datetime.now().isoformat(),
                    "error_type": type(error).__name__,
                },
            )
        except Exception as e:
            logger.error(f"Could not record failure for job {job_id}: {e}")

    @staticmethod
    def _remove_work_dir(work_dir: Path) -> None:
        if not work_dir.exists():
            return
        try:
            shutil.rmtree(work_dir)
            logger.debug(f"Cleaned up work dir: {work_dir}")
        except OSError as e:
            logger.warning(f"Failed to clean up work dir {work_dir}: {e}")

    def _remove_artifact(self, job_id: str) -> None:
        path = self.artifact_path(job_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove artifact {path}: {e}")
