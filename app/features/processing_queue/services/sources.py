"""
Poll sources for the queues the reconciler tracks.

Each source answers the same four questions for one queue (stats, recent
jobs, active jobs, workers) and can clear it. The AI queue is served by
the AI service's HTTP API; table-backed queues are read straight from
Postgres and recounted from a full status scan.
"""

from typing import Protocol

from app.db.helpers import DatabaseError
from app.features.processing_queue.domain.models import Job, QueueStats, Worker
from app.features.processing_queue.repository.job_table_repository import JobTableRepository
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import TransportError
from app.services.ai_client import AIServiceClient

logger = get_logger(__name__)


class QueueSource(Protocol):
    queue_name: str

    async def fetch_stats(self) -> QueueStats: ...

    async def fetch_recent_jobs(self, limit: int) -> list[Job]: ...

    async def fetch_active_jobs(self, limit: int) -> list[Job]: ...

    async def fetch_workers(self) -> list[Worker] | None: ...

    async def clear(self) -> None: ...


class AIQueueSource:
    """AI processing queue, read through the AI service."""

    def __init__(self, client: AIServiceClient, queue_name: str = "ai"):
        self.queue_name = queue_name
        self._client = client

    async def fetch_stats(self) -> QueueStats:
        return QueueStats.from_counts(await self._client.get_queue_stats())

    async def fetch_recent_jobs(self, limit: int) -> list[Job]:
        rows = await self._client.get_recent_jobs(limit)
        return [Job.from_row(self.queue_name, row) for row in rows]

    async def fetch_active_jobs(self, limit: int) -> list[Job]:
        rows = await self._client.get_active_jobs(limit)
        return [Job.from_row(self.queue_name, row) for row in rows]

    async def fetch_workers(self) -> list[Worker] | None:
        rows = await self._client.get_worker_status()
        return [Worker.from_dict(row) for row in rows]

    async def clear(self) -> None:
        await self._client.clear_queue()


class TableQueueSource:
    """Queue stored in a Postgres table; has no worker registry of its own."""

    def __init__(self, queue_name: str, repository: JobTableRepository):
        self.queue_name = queue_name
        self._repository = repository

    async def fetch_stats(self) -> QueueStats:
        statuses = await self._run("fetch_stats", self._repository.fetch_statuses())
        return QueueStats.from_rows(statuses)

    async def fetch_recent_jobs(self, limit: int) -> list[Job]:
        rows = await self._run("fetch_recent_jobs", self._repository.fetch_recent_jobs(limit))
        return [Job.from_row(self.queue_name, row) for row in rows]

    async def fetch_active_jobs(self, limit: int) -> list[Job]:
        rows = await self._run("fetch_active_jobs", self._repository.fetch_active_jobs(limit))
        return [Job.from_row(self.queue_name, row) for row in rows]

    async def fetch_workers(self) -> list[Worker] | None:
        return None

    async def clear(self) -> None:
        await self._run("clear_queue", self._repository.delete_all())

    async def _run(self, operation: str, awaitable):
        try:
            return await awaitable
        except (DatabaseError, RuntimeError) as e:
            logger.error(
                "Job table query failed",
                queue_name=self.queue_name,
                operation=operation,
                error=str(e),
            )
            raise TransportError(
                f"Job store unavailable for {self.queue_name}: {e}", operation=operation
            ) from e
