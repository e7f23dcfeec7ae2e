"""
Dual-channel queue reconciler.

Two producers feed one inbox:

* the push listener turns change-feed notifications into ``change``
  messages (fresh but best effort);
* the poll timer fetches a full ``QueueSnapshot`` (ground truth) every
  ``poll_interval`` seconds or on demand.

A single consumer task applies inbox messages in arrival order. Applying
a message is synchronous, so the stats store, job lists and activity log
are only ever mutated by one writer and each message commits completely
before the next one is looked at.
"""

import asyncio
import itertools
from datetime import UTC, datetime
from typing import Any

from app.config import settings
from app.features.processing_queue.domain.models import (
    ActivityLogItem,
    ChangeEvent,
    Job,
    QueueSnapshot,
    QueueStats,
    Worker,
)
from app.features.processing_queue.services.activity_log import (
    ActivityLogBuffer,
    summarize_result,
)
from app.features.processing_queue.services.change_feed import ChangeFeed
from app.features.processing_queue.services.sources import QueueSource
from app.features.processing_queue.services.stats_store import QueueStatsStore
from app.infrastructure.observability.logging import get_logger, log_queue_event
from app.models.domain.errors import QueueEngineError, TransportError

logger = get_logger(__name__)

REALTIME_UNAVAILABLE_MESSAGE = "Real-time updates unavailable"


class DualChannelReconciler:
    """
    Keeps one consistent view of several job queues from push + poll.

    Args:
        sources: Poll sources, one per tracked queue
        change_feed: Push channel; ``None`` runs poll-only
        stats_store: Counter store (created if omitted)
        activity_log: Activity feed (created if omitted)
        poll_interval: Seconds between poll ticks
    """

    def __init__(
        self,
        sources: list[QueueSource],
        change_feed: ChangeFeed | None = None,
        stats_store: QueueStatsStore | None = None,
        activity_log: ActivityLogBuffer | None = None,
        poll_interval: float | None = None,
        recent_jobs_limit: int | None = None,
        active_jobs_limit: int | None = None,
        reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None,
    ):
        self._sources: dict[str, QueueSource] = {source.queue_name: source for source in sources}
        self._change_feed = change_feed
        if stats_store is None:
            stats_store = QueueStatsStore(list(self._sources))
        if activity_log is None:
            activity_log = ActivityLogBuffer(settings.ACTIVITY_LOG_CAPACITY)
        self.stats_store = stats_store
        self.activity_log = activity_log

        self.poll_interval = poll_interval or settings.QUEUE_POLL_INTERVAL_SECONDS
        self.recent_jobs_limit = recent_jobs_limit or settings.RECENT_JOBS_LIMIT
        self.active_jobs_limit = active_jobs_limit or settings.ACTIVE_JOBS_LIMIT
        self.reconnect_attempts = reconnect_attempts or settings.REALTIME_RECONNECT_ATTEMPTS
        self.reconnect_delay = (
            settings.REALTIME_RECONNECT_DELAY_SECONDS if reconnect_delay is None else reconnect_delay
        )

        self.paused = False
        self.realtime_unavailable = False
        self.last_error: str | None = None
        self.last_poll_at: datetime | None = None

        self._recent_jobs: dict[str, list[Job]] = {name: [] for name in self._sources}
        self._active_jobs: dict[str, list[Job]] = {name: [] for name in self._sources}
        self._workers: list[Worker] = []
        self._seeded = False
        self._sequence = itertools.count(1)

        self._inbox: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._live_task: asyncio.Task | None = None
        self._live_dirty = False
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def queue_names(self) -> list[str]:
        return list(self._sources)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, poll: bool = True) -> None:
        """Start the consumer, and the poll timer and push listener if configured."""
        if self._running:
            return

        self._running = True
        self._tasks.append(asyncio.create_task(self._consume(), name="reconciler-consumer"))
        if self._change_feed is not None:
            self._tasks.append(asyncio.create_task(self._push_loop(), name="reconciler-push"))
        if poll:
            self._tasks.append(asyncio.create_task(self._poll_loop(), name="reconciler-poll"))

        logger.info(
            "Queue reconciler started",
            queues=self.queue_names,
            realtime=self._change_feed is not None,
            poll_interval_seconds=self.poll_interval if poll else None,
        )

    async def stop(self) -> None:
        if not self._running:
            return

        tasks = list(self._tasks)
        if self._live_task is not None:
            tasks.append(self._live_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._tasks.clear()
        self._live_task = None
        self._running = False
        logger.info("Queue reconciler stopped")

    async def drain(self) -> None:
        """Wait until every message queued so far has been applied."""
        if self._running:
            await self._inbox.join()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def publish(self, event: ChangeEvent) -> None:
        """Push-channel entry point."""
        self._submit_nowait("change", event)

    async def poll_once(self) -> bool:
        """
        Fetch a full snapshot and queue it for application.

        Transport failures are logged and left for the next tick.

        Returns:
            bool: True if at least one queue was fetched
        """
        snapshot = await self._fetch_snapshot()
        if snapshot is None:
            return False
        await self._submit("snapshot", snapshot)
        return True

    async def refresh(self) -> bool:
        """On-demand poll; returns once the snapshot has been applied."""
        fetched = await self.poll_once()
        await self.drain()
        return fetched

    async def clear_queue(self, queue_name: str) -> None:
        """Delete every job of one queue at the source, then re-poll."""
        source = self._get_source(queue_name)
        logger.warning("Clearing queue", queue_name=queue_name)
        await source.clear()
        await self.refresh()

    async def _submit(self, kind: str, payload: Any) -> None:
        if self._running:
            await self._inbox.put((kind, payload))
        else:
            self._apply(kind, payload)

    def _submit_nowait(self, kind: str, payload: Any) -> None:
        if self._running:
            self._inbox.put_nowait((kind, payload))
        else:
            self._apply(kind, payload)

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Queue poll tick failed", error=str(e), error_type=type(e).__name__)
                self.last_error = str(e)
            await asyncio.sleep(self.poll_interval)

    async def _push_loop(self) -> None:
        failures = 0
        while failures < self.reconnect_attempts:
            try:
                async for event in self._change_feed.events():
                    failures = 0
                    self.publish(event)
                failures += 1
                logger.warning("Change feed ended, resubscribing", attempt=failures)
            except asyncio.CancelledError:
                raise
            except QueueEngineError as e:
                if not e.recoverable:
                    logger.error("Change feed failed permanently", error=str(e))
                    break
                failures += 1
                logger.warning("Change feed error, resubscribing", attempt=failures, error=str(e))
            except Exception as e:
                logger.error(
                    "Change feed crashed", error=str(e), error_type=type(e).__name__, exc_info=True
                )
                break

            if failures < self.reconnect_attempts:
                await asyncio.sleep(self.reconnect_delay * failures)

        self.realtime_unavailable = True
        self.last_error = REALTIME_UNAVAILABLE_MESSAGE
        logger.error(
            "Realtime subscription unavailable, continuing with polling only",
            attempts=failures,
            poll_interval_seconds=self.poll_interval,
        )

    async def _fetch_snapshot(self) -> QueueSnapshot | None:
        results = await asyncio.gather(
            *(self._fetch_queue(source) for source in self._sources.values()),
            return_exceptions=True,
        )

        snapshot = QueueSnapshot(stats={}, recent_jobs={}, active_jobs={}, workers=None)
        errors: list[str] = []

        for queue_name, result in zip(self._sources, results, strict=True):
            if isinstance(result, TransportError):
                errors.append(f"{queue_name}: {result}")
                logger.warning("Queue poll failed", queue_name=queue_name, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result

            stats, recent, active, workers = result
            snapshot.stats[queue_name] = stats
            snapshot.recent_jobs[queue_name] = recent
            snapshot.active_jobs[queue_name] = active
            if workers is not None:
                snapshot.workers = (snapshot.workers or []) + workers

        self.last_error = "; ".join(errors) if errors else None
        if not snapshot.stats:
            return None
        return snapshot

    async def _fetch_queue(
        self, source: QueueSource
    ) -> tuple[QueueStats, list[Job], list[Job], list[Worker] | None]:
        stats, recent, active = await asyncio.gather(
            source.fetch_stats(),
            source.fetch_recent_jobs(self.recent_jobs_limit),
            source.fetch_active_jobs(self.active_jobs_limit),
        )
        try:
            workers = await source.fetch_workers()
        except TransportError as e:
            logger.warning("Worker status fetch failed", queue_name=source.queue_name, error=str(e))
            workers = None
        return stats, recent, active, workers

    def _schedule_live_refresh(self) -> None:
        if not self._running:
            return
        self._live_dirty = True
        if self._live_task is None or self._live_task.done():
            self._live_task = asyncio.create_task(self._refresh_live_lists())

    async def _refresh_live_lists(self) -> None:
        """Re-fetch only active jobs and workers after a push event."""
        while self._live_dirty:
            self._live_dirty = False
            active: dict[str, list[Job]] = {}
            workers: list[Worker] | None = None

            for queue_name, source in self._sources.items():
                try:
                    active[queue_name] = await source.fetch_active_jobs(self.active_jobs_limit)
                    queue_workers = await source.fetch_workers()
                except TransportError as e:
                    logger.debug("Live list refresh failed", queue_name=queue_name, error=str(e))
                    continue
                if queue_workers is not None:
                    workers = (workers or []) + queue_workers

            await self._inbox.put(("live", (active, workers)))

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        while True:
            kind, payload = await self._inbox.get()
            try:
                self._apply(kind, payload)
            except Exception:
                logger.exception("Failed to apply queue message", kind=kind)
            finally:
                self._inbox.task_done()

    def _apply(self, kind: str, payload: Any) -> None:
        if kind == "change":
            self.apply_change(payload)
        elif kind == "snapshot":
            self.apply_snapshot(payload)
        elif kind == "live":
            active, workers = payload
            self.apply_live_lists(active, workers)
        else:
            raise ValueError(f"Unknown reconciler message '{kind}'")

    def apply_change(self, event: ChangeEvent) -> None:
        """Apply one push event: log it unless paused, always move the counters."""
        if event.queue_name not in self._sources:
            logger.debug("Ignoring change for untracked queue", queue_name=event.queue_name)
            return

        logged = not self.paused
        if logged:
            self.activity_log.append(self._item_from_event(event))

        self.stats_store.apply_delta(event.queue_name, event.old_status, event.new_status)

        log_queue_event(
            event.queue_name,
            event.event_type,
            event.job_id,
            old_status=event.old_status,
            new_status=event.new_status,
            logged=logged,
        )
        self._schedule_live_refresh()

    def apply_snapshot(self, snapshot: QueueSnapshot) -> None:
        """Replace counters and job lists with polled ground truth."""
        for queue_name, stats in snapshot.stats.items():
            self.stats_store.replace_snapshot(queue_name, stats)
        self._recent_jobs.update(snapshot.recent_jobs)
        self._active_jobs.update(snapshot.active_jobs)
        if snapshot.workers is not None:
            self._workers = list(snapshot.workers)

        if not self._seeded:
            self._seeded = True
            if len(self.activity_log) == 0:
                self.activity_log.extend(self._seed_items(snapshot.recent_jobs))

        self.last_poll_at = snapshot.fetched_at
        logger.debug(
            "Queue snapshot applied",
            queues=sorted(snapshot.stats),
            totals={name: stats.total for name, stats in snapshot.stats.items()},
        )

    def apply_live_lists(
        self, active_jobs: dict[str, list[Job]], workers: list[Worker] | None
    ) -> None:
        self._active_jobs.update(active_jobs)
        if workers is not None:
            self._workers = list(workers)

    def _item_from_event(self, event: ChangeEvent) -> ActivityLogItem:
        record = event.record
        if event.event_type == "insert":
            status = "queued"
        elif event.event_type == "delete":
            status = "removed"
        elif event.new_status == "processing":
            status = "started"
        else:
            status = str(event.new_status or "unknown")

        result = record.get("result")
        summary = summarize_result(result if isinstance(result, dict) else None)
        return ActivityLogItem(
            id=f"{event.job_id}-{next(self._sequence)}",
            timestamp=event.received_at,
            status=status,
            job_id=event.job_id,
            queue_name=event.queue_name,
            worker_id=record.get("worker_id"),
            result_summary=summary or record.get("error_message"),
        )

    def _seed_items(self, recent_jobs: dict[str, list[Job]]) -> list[ActivityLogItem]:
        now = datetime.now(UTC)
        jobs = [job for queue_jobs in recent_jobs.values() for job in queue_jobs]
        jobs.sort(key=lambda job: job.last_activity_at or now)

        items = []
        for job in jobs:
            result = job.payload.get("result")
            summary = summarize_result(result if isinstance(result, dict) else None)
            items.append(
                ActivityLogItem(
                    id=job.id,
                    timestamp=job.last_activity_at or now,
                    status=job.status,
                    job_id=job.id,
                    queue_name=job.queue_name,
                    worker_id=job.worker_id,
                    result_summary=summary or job.error_message,
                )
            )
        return items

    # ------------------------------------------------------------------
    # Visibility controls
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Stop adding push events to the activity log; counters keep updating."""
        self.paused = True
        logger.info("Activity log paused")

    def resume(self) -> None:
        self.paused = False
        logger.info("Activity log resumed")

    def clear_activity_log(self) -> None:
        self.activity_log.clear()
        logger.info("Activity log cleared")

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def stats(self, queue_name: str) -> QueueStats:
        self._get_source(queue_name)
        return self.stats_store.get(queue_name)

    def aggregate_stats(self, queue_names: list[str] | None = None) -> QueueStats:
        names = self.queue_names if queue_names is None else queue_names
        for name in names:
            self._get_source(name)
        return self.stats_store.aggregate(names)

    def recent_jobs(self, queue_name: str | None = None) -> list[Job]:
        return self._jobs_view(self._recent_jobs, queue_name)

    def active_jobs(self, queue_name: str | None = None) -> list[Job]:
        return self._jobs_view(self._active_jobs, queue_name)

    def workers(self) -> list[Worker]:
        return list(self._workers)

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "paused": self.paused,
            "realtime_enabled": self._change_feed is not None,
            "realtime_unavailable": self.realtime_unavailable,
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
            "last_error": self.last_error,
            "queues": self.queue_names,
        }

    def _jobs_view(self, jobs: dict[str, list[Job]], queue_name: str | None) -> list[Job]:
        if queue_name is not None:
            self._get_source(queue_name)
            return list(jobs.get(queue_name, []))

        # Combined view, newest first
        combined = [job for queue_jobs in jobs.values() for job in queue_jobs]
        epoch = datetime.min.replace(tzinfo=UTC)
        combined.sort(key=lambda job: job.created_at or epoch, reverse=True)
        return combined

    def _get_source(self, queue_name: str) -> QueueSource:
        try:
            return self._sources[queue_name]
        except KeyError:
            raise KeyError(f"Unknown queue '{queue_name}'") from None
