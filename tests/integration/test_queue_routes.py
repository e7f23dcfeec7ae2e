"""
Route tests for the processing queue API, backed by a real reconciler over
in-memory sources.
"""

import pytest
from conftest import FakeSource, make_event, make_job
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.features.processing_queue.api.router import router
from app.features.processing_queue.domain.models import QueueStats
from app.features.processing_queue.services.batch_controller import BatchCursorController
from app.features.processing_queue.services.reconciler import DualChannelReconciler
from app.models.domain.errors import TransportError


@pytest.fixture
def sources():
    ai = FakeSource("ai", QueueStats(pending=2, completed=5))
    ai.recent = [make_job("job-1", "completed")]
    video = FakeSource("video", QueueStats(processing=1))
    return {"ai": ai, "video": video}


@pytest.fixture
def reconciler(sources):
    return DualChannelReconciler(list(sources.values()), poll_interval=60)


@pytest.fixture
def client(reconciler, fake_ai_client):
    app = FastAPI()
    app.include_router(router)
    app.state.reconciler = reconciler
    app.state.batch_controller = BatchCursorController(fake_ai_client, batch_size=100)
    return TestClient(app)


def test_stats_per_queue_and_combined(client):
    client.post("/queues/refresh")

    response = client.get("/queues/stats")

    assert response.status_code == 200
    rows = {row["queue_name"]: row for row in response.json()}
    assert rows["ai"]["total"] == 7
    assert rows["video"]["processing"] == 1
    assert rows["all"]["total"] == 8


def test_single_queue_stats_and_unknown_queue(client):
    client.post("/queues/refresh")

    assert client.get("/queues/ai/stats").json()["pending"] == 2
    assert client.get("/queues/nope/stats").status_code == 404
    assert client.get("/queues/jobs/recent", params={"queue": "nope"}).status_code == 404


def test_refresh_failure_is_bad_gateway(client, sources):
    sources["ai"].fail = True
    sources["video"].fail = True

    response = client.post("/queues/refresh")

    assert response.status_code == 502


def test_recent_jobs_and_seeded_activity(client):
    client.post("/queues/refresh")

    jobs = client.get("/queues/jobs/recent").json()
    activity = client.get("/queues/activity").json()

    assert jobs["count"] == 1
    assert jobs["jobs"][0]["id"] == "job-1"
    assert activity["count"] == 1
    assert activity["paused"] is False


def test_pause_resume_and_clear_activity(client, reconciler):
    assert client.post("/queues/activity/pause").json()["paused"] is True
    reconciler.publish(make_event("insert", "job-2", new_status="pending"))
    assert client.get("/queues/activity").json()["count"] == 0
    assert client.get("/queues/ai/stats").json()["pending"] == 1

    assert client.post("/queues/activity/resume").json()["paused"] is False
    reconciler.publish(make_event("insert", "job-3", new_status="pending"))
    assert client.get("/queues/activity").json()["count"] == 1

    assert client.delete("/queues/activity").json()["count"] == 0
    assert len(reconciler.activity_log) == 0


def test_clear_queue(client, sources):
    client.post("/queues/refresh")

    response = client.delete("/queues/video")

    assert response.status_code == 200
    assert response.json()["total"] == 0
    assert sources["video"].cleared is True


def test_clear_queue_transport_failure(client, sources):
    sources["video"].fail = True

    assert client.delete("/queues/video").status_code == 502


def test_status(client):
    data = client.get("/queues/status").json()

    assert data["queues"] == ["ai", "video"]
    assert data["realtime_enabled"] is False


def test_batch_flow(client, fake_ai_client):
    state = client.post("/queues/batch/start").json()
    assert state["state"] == "paused"
    assert state["cursor"]["offset"] == 100

    fake_ai_client.queue_batch.return_value = {
        "queued": 50,
        "skipped": 0,
        "next_offset": 150,
        "done": True,
        "total_remaining": 0,
        "message": "Queued 50 assets",
    }
    state = client.post("/queues/batch/continue").json()
    assert state["state"] == "complete"
    assert state["cursor"]["total_queued"] == 150

    assert client.post("/queues/batch/continue").status_code == 400
    assert client.post("/queues/batch/reset").json()["state"] == "idle"


def test_batch_failure_reports_error(client, fake_ai_client):
    fake_ai_client.queue_batch.side_effect = TransportError("AI service timed out")

    state = client.post("/queues/batch/start").json()

    assert state["state"] == "paused"
    assert state["last_error"] == "AI service timed out"
    assert state["cursor"]["offset"] == 0


def test_batch_stop(client):
    client.post("/queues/batch/start")

    assert client.post("/queues/batch/stop").json()["state"] == "stopped"
    assert client.get("/queues/batch").json()["state"] == "stopped"
