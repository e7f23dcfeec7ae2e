from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.features.processing_queue.domain.models import ChangeEvent, Job, QueueStats, Worker
from app.models.domain.errors import TransportError

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_job(job_id: str, status: str = "pending", queue_name: str = "ai", minutes: int = 0) -> Job:
    return Job(
        id=job_id,
        queue_name=queue_name,
        status=status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def make_event(
    event_type: str,
    job_id: str,
    old_status: str | None = None,
    new_status: str | None = None,
    queue_name: str = "ai",
) -> ChangeEvent:
    new = {"id": job_id, "status": new_status} if new_status else None
    old = {"id": job_id, "status": old_status} if old_status else None
    if event_type == "delete" and old is None:
        old = {"id": job_id}
    return ChangeEvent(queue_name=queue_name, event_type=event_type, new=new, old=old)


class FakeSource:
    """In-memory poll source; set ``fail`` to make every fetch raise TransportError."""

    def __init__(self, queue_name: str = "ai", stats: QueueStats | None = None):
        self.queue_name = queue_name
        self.stats = stats or QueueStats()
        self.recent: list[Job] = []
        self.active: list[Job] = []
        self.workers: list[Worker] | None = None
        self.fail = False
        self.fetch_count = 0
        self.cleared = False

    def _check(self):
        if self.fail:
            raise TransportError(f"{self.queue_name} unreachable", operation="fetch")

    async def fetch_stats(self) -> QueueStats:
        self.fetch_count += 1
        self._check()
        return self.stats

    async def fetch_recent_jobs(self, limit: int) -> list[Job]:
        self._check()
        return list(self.recent[:limit])

    async def fetch_active_jobs(self, limit: int) -> list[Job]:
        self._check()
        return list(self.active[:limit])

    async def fetch_workers(self) -> list[Worker] | None:
        self._check()
        return self.workers

    async def clear(self) -> None:
        self._check()
        self.cleared = True
        self.stats = QueueStats()
        self.recent = []
        self.active = []


class FakeChangeFeed:
    """
    Scripted push channel. Each call to ``events()`` consumes one script
    entry: a list of events to yield, or an exception to raise.
    """

    def __init__(self, script: list):
        self.script = list(script)
        self.subscriptions = 0

    async def events(self):
        self.subscriptions += 1
        if not self.script:
            raise TransportError("no more connections", operation="subscribe")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        for event in step:
            yield event


@pytest.fixture
def ai_source():
    return FakeSource("ai")


@pytest.fixture
def video_source():
    return FakeSource("video")


@pytest.fixture
def fake_ai_client():
    """AIServiceClient double with every endpoint as an AsyncMock."""
    client = AsyncMock()
    client.get_unprocessed_count.return_value = 250
    client.queue_batch.return_value = {
        "queued": 100,
        "skipped": 0,
        "next_offset": 100,
        "done": False,
        "total_remaining": 150,
        "message": "Queued 100 assets",
    }
    client.health_check.return_value = {"healthy": True, "status_code": 200}
    return client
