"""SQLite-based persistent job and article storage.

Jobs survive server restarts so pollers keep seeing their last status.
Uses aiosqlite for async database operations.
"""

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = ".narrated_video/jobs.db"

PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})

# Forward-only status machine; terminal states accept no further updates
ALLOWED_TRANSITIONS = {
    PROCESSING: frozenset({PROCESSING, COMPLETED, FAILED}),
    COMPLETED: frozenset(),
    FAILED: frozenset(),
}


class JobStoreError(Exception):
    """Raised for job store integrity problems (duplicate target, etc.)."""

    pass


class InvalidTransitionError(JobStoreError):
    """Raised when an update would move a job backwards."""

    pass


class JobStore:
    """Async SQLite store for narration jobs and their source articles.

    One job row exists per target at most. The orchestrator is the only
    writer of job rows.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize job store with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:". Parent
                     directory will be created if it doesn't exist.
        """
        self.db_path = db_path
        self.db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and create schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row

        # Enable WAL mode for better concurrent read performance
        await self.db.execute("PRAGMA journal_mode=WAL")

        await self.db.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                target_id TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'processing',
                stage TEXT NOT NULL DEFAULT 'queued',
                progress INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                data JSON,
                artifact_url TEXT,
                error TEXT,
                owner TEXT
            )
        """)

        # Databases created before jobs carried an owner
        async with self.db.execute("PRAGMA table_info(jobs)") as cursor:
            columns = {row["name"] for row in await cursor.fetchall()}
        if "owner" not in columns:
            await self.db.execute("ALTER TABLE jobs ADD COLUMN owner TEXT")

        await self.db.execute("""
            CREATE INDEX IF NOT EXISTS idx_jobs_status_created
            ON jobs (status, created_at DESC)
        """)

        await self.db.execute("""
            CREATE TABLE IF NOT EXISTS articles (
                target_id TEXT PRIMARY KEY,
                topic TEXT NOT NULL DEFAULT '',
                text TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self.db.execute("""
            CREATE TABLE IF NOT EXISTS workers (
                id TEXT PRIMARY KEY,
                heartbeat_at TEXT NOT NULL
            )
        """)

        await self.db.commit()
        logger.info(f"Job store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Job store connection closed")

    def _require_db(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    async def create_job(
        self,
        job_id: str,
        target_id: str,
        data: dict[str, Any] | None = None,
        owner: str | None = None,
    ) -> dict[str, Any]:
        """Create a new job in the processing state.

        Args:
            job_id: Unique job identifier
            target_id: Article/target the video is rendered for
            data: Initial stage metadata
            owner: Id of the worker process that will run the job

        Returns:
            Created job as dict

        Raises:
            JobStoreError: If the target already has a job
            RuntimeError: If database is not connected
        """
        db = self._require_db()
        now = datetime.now().isoformat()

        try:
            await db.execute(
                "INSERT INTO jobs (id, target_id, status, stage, progress, created_at, updated_at, data, owner) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (job_id, target_id, PROCESSING, "queued", 0, now, now, json.dumps(data or {}), owner),
            )
        except sqlite3.IntegrityError as e:
            raise JobStoreError(f"Target {target_id} already has a job") from e
        await db.commit()

        logger.info(f"Created job {job_id} for target {target_id}")

        job = await self.get_job(job_id)
        assert job is not None
        return job

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        """Get a job by ID.

        Returns:
            Job dict or None if not found
        """
        db = self._require_db()
        async with db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)) as cursor:
            row = await cursor.fetchone()
            return self._row_to_dict(row) if row is not None else None

    async def find_job_by_target(self, target_id: str) -> dict[str, Any] | None:
        """Get the job for a target, if one exists."""
        db = self._require_db()
        async with db.execute("SELECT * FROM jobs WHERE target_id = ?", (target_id,)) as cursor:
            row = await cursor.fetchone()
            return self._row_to_dict(row) if row is not None else None

    async def update_job(
        self,
        job_id: str,
        status: str | None = None,
        stage: str | None = None,
        progress: int | None = None,
        data: dict[str, Any] | None = None,
        artifact_url: str | None = None,
        error: str | None = None,
    ) -> dict[str, Any] | None:
        """Update a job.

        Args:
            job_id: Job identifier
            status: New status (optional)
            stage: New pipeline stage (optional)
            progress: New progress percent (optional)
            data: Metadata fields to merge (optional)
            artifact_url: Final artifact reference (optional)
            error: Error message (optional)

        Returns:
            Updated job dict or None if not found

        Raises:
            InvalidTransitionError: If the job is terminal or status moves backwards
        """
        db = self._require_db()

        current = await self.get_job(job_id)
        if current is None:
            return None

        new_status = status or current["status"]
        if new_status not in ALLOWED_TRANSITIONS.get(current["status"], frozenset()):
            raise InvalidTransitionError(
                f"Job {job_id} cannot move from {current['status']} to {new_status}"
            )

        merged = current["data"]
        if data:
            merged.update(data)

        now = datetime.now().isoformat()
        await db.execute(
            "UPDATE jobs SET status = ?, stage = ?, progress = ?, updated_at = ?, data = ?, "
            "artifact_url = ?, error = ? WHERE id = ?",
            (
                new_status,
                stage or current["stage"],
                progress if progress is not None else current["progress"],
                now,
                json.dumps(merged),
                artifact_url if artifact_url is not None else current["artifact_url"],
                error if error is not None else current["error"],
                job_id,
            ),
        )
        await db.commit()

        logger.debug(f"Updated job {job_id}: status={new_status} stage={stage or current['stage']}")

        return await self.get_job(job_id)

    async def list_jobs(self, status: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """List jobs, newest first, optionally filtered by status."""
        db = self._require_db()

        query = "SELECT * FROM jobs"
        params: list[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_dict(row) for row in rows]

    async def delete_job(self, job_id: str) -> bool:
        """Delete a job.

        Returns:
            True if deleted, False if not found
        """
        db = self._require_db()

        async with db.execute("DELETE FROM jobs WHERE id = ? RETURNING id", (job_id,)) as cursor:
            row = await cursor.fetchone()
        await db.commit()

        if row is not None:
            logger.info(f"Deleted job {job_id}")
            return True
        return False

    async def cleanup_old_jobs(self, days: int = 7) -> list[dict[str, Any]]:
        """Delete terminal jobs older than specified days.

        Processing jobs are preserved regardless of age.

        Returns:
            The deleted jobs, so callers can remove their artifacts
        """
        db = self._require_db()
        cutoff = (datetime.now() - timedelta(days=days)).isoformat()

        async with db.execute(
            "DELETE FROM jobs WHERE created_at < ? AND status IN (?, ?) RETURNING *",
            (cutoff, COMPLETED, FAILED),
        ) as cursor:
            rows = await cursor.fetchall()
        await db.commit()

        removed = [self._row_to_dict(row) for row in rows]
        if removed:
            logger.info(f"Cleaned up {len(removed)} old jobs (older than {days} days)")
        return removed

    async def heartbeat(self, worker_id: str) -> None:
        """Record that a worker process is alive."""
        db = self._require_db()
        await db.execute(
            "INSERT INTO workers (id, heartbeat_at) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET heartbeat_at = excluded.heartbeat_at",
            (worker_id, datetime.now().isoformat()),
        )
        await db.commit()

    async def remove_worker(self, worker_id: str) -> None:
        """Forget a worker that shut down; its unfinished jobs become orphans."""
        db = self._require_db()
        await db.execute("DELETE FROM workers WHERE id = ?", (worker_id,))
        await db.commit()

    async def fail_interrupted_jobs(self, reason: str, stale_after: float = 60.0) -> int:
        """Mark processing jobs whose worker is gone as failed.

        A job is orphaned when it has no owner, or when its owner has not
        sent a heartbeat within `stale_after` seconds. Jobs owned by a live
        worker, in this process or another one sharing the database, are
        left alone.

        Returns:
            Number of jobs marked failed
        """
        db = self._require_db()
        now = datetime.now()
        cutoff = (now - timedelta(seconds=stale_after)).isoformat()

        async with db.execute(
            "UPDATE jobs SET status = ?, stage = ?, updated_at = ?, error = ? "
            "WHERE status = ? AND (owner IS NULL OR owner NOT IN "
            "(SELECT id FROM workers WHERE heartbeat_at >= ?)) RETURNING id",
            (FAILED, "failed", now.isoformat(), reason, PROCESSING, cutoff),
        ) as cursor:
            rows = await cursor.fetchall()
        await db.commit()

        if rows:
            logger.warning(f"Marked {len(rows)} interrupted jobs as failed")
        return len(rows)

    async def put_article(self, target_id: str, text: str, topic: str = "") -> None:
        """Insert or replace the source article for a target."""
        db = self._require_db()
        now = datetime.now().isoformat()
        await db.execute(
            "INSERT INTO articles (target_id, topic, text, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(target_id) DO UPDATE SET topic = excluded.topic, "
            "text = excluded.text, updated_at = excluded.updated_at",
            (target_id, topic, text, now),
        )
        await db.commit()
        logger.debug(f"Stored article for target {target_id} ({len(text)} chars)")

    async def get_article(self, target_id: str) -> dict[str, Any] | None:
        """Get the stored article for a target.

        Returns:
            Dict with target_id, topic, text and updated_at, or None
        """
        db = self._require_db()
        async with db.execute(
            "SELECT * FROM articles WHERE target_id = ?", (target_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return dict(row) if row is not None else None

    def _row_to_dict(self, row: aiosqlite.Row) -> dict[str, Any]:
        """Convert a jobs row to a dict, parsing the JSON data column."""
        result: dict[str, Any] = {
            "id": row["id"],
            "target_id": row["target_id"],
            "status": row["status"],
            "stage": row["stage"],
            "progress": row["progress"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "artifact_url": row["artifact_url"],
            "error": row["error"],
            "owner": row["owner"],
            "data": {},
        }

        data_str = row["data"]
        if data_str:
            try:
                result["data"] = json.loads(data_str)
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse JSON data for job {row['id']}")

        return result
