"""Integration tests for the HTTP API, served in-process against fakes."""

import httpx
import pytest
import pytest_asyncio

from api.server import create_app
from conftest import FakeDownloader, sentence_script
from narrated_video.orchestrator import JobOrchestrator

ARTICLE = sentence_script(200, "Volcanic islands rise from hotspots deep in the mantle.")


@pytest_asyncio.fixture
async def api(job_store, make_context):
    """HTTP client plus the orchestrator behind it.

    ASGITransport does not run the lifespan, so the orchestrator is started
    here and attached to app.state the same way the lifespan does it.
    """
    context = make_context(job_store)
    app = create_app(context=context, config={"artifact_url_prefix": "/videos", "cors_origins": []})

    orchestrator = JobOrchestrator(context)
    orchestrator.assembler.downloader = FakeDownloader()
    await orchestrator.startup()
    app.state.orchestrator = orchestrator

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, orchestrator

    await orchestrator.shutdown()


class TestCoreRoutes:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_root_and_health(self, api):
        client, _ = api

        root = await client.get("/")
        health = await client.get("/api/health")

        assert root.json() == {"message": "Narrated Video API", "version": "1.0.0"}
        assert health.json() == {"status": "healthy", "queue_running": True}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unavailable_before_startup(self, job_store, make_context):
        app = create_app(context=make_context(job_store), config={"artifact_url_prefix": "/videos"})
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/video/t1/status")

        assert response.status_code == 503


class TestVideoLifecycle:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_article_start_poll_download_delete(self, api):
        client, orchestrator = api

        stored = await client.put("/api/articles/t1", json={"topic": "Volcanoes", "text": ARTICLE})
        assert stored.status_code == 200
        assert stored.json()["topic"] == "Volcanoes"

        before = await client.get("/api/video/t1/status")
        assert before.json()["status"] == "not_started"

        started = await client.post("/api/video/t1/start")
        assert started.status_code == 200
        assert started.json()["status"] == "started"
        job_id = started.json()["job_id"]

        await orchestrator.queue.join()

        status = (await client.get("/api/video/t1/status")).json()
        assert status["status"] == "completed"
        assert status["progress"] == 100
        assert status["artifact_url"] == f"/videos/{job_id}.mp4"

        again = await client.post("/api/video/t1/start")
        assert again.json()["status"] == "already_exists"
        assert again.json()["artifact_url"] == status["artifact_url"]

        download = await client.get("/api/video/t1/download")
        assert download.status_code == 200
        assert download.headers["content-type"] == "video/mp4"
        assert download.content == b"muxed"

        static = await client.get(status["artifact_url"])
        assert static.status_code == 200

        deleted = await client.delete("/api/video/t1")
        assert deleted.status_code == 200
        assert (await client.get("/api/video/t1/status")).json()["status"] == "not_started"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_start_with_inline_article(self, api):
        client, orchestrator = api

        response = await client.post(
            "/api/video/t2/start", json={"topic": "Islands", "article_text": ARTICLE}
        )
        await orchestrator.queue.join()

        assert response.json()["status"] == "started"
        assert (await client.get("/api/video/t2/status")).json()["status"] == "completed"


class TestErrors:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_start_without_article(self, api):
        client, _ = api

        response = await client.post("/api/video/missing/start")

        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_start_with_blank_article(self, api):
        client, _ = api

        response = await client.post("/api/video/t1/start", json={"article_text": "   "})
        stored = await client.put("/api/articles/t1", json={"text": "   "})

        assert response.status_code == 400
        assert stored.status_code == 400

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_download_and_delete_without_job(self, api):
        client, _ = api

        assert (await client.get("/api/video/none/download")).status_code == 404
        assert (await client.delete("/api/video/none")).status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_processing_job_cannot_be_deleted_or_downloaded(self, api, job_store):
        client, _ = api
        await job_store.create_job("job-busy", "busy")

        start = await client.post("/api/video/busy/start")
        download = await client.get("/api/video/busy/download")
        delete = await client.delete("/api/video/busy")

        assert start.json()["status"] == "processing"
        assert download.status_code == 400
        assert delete.status_code == 409
