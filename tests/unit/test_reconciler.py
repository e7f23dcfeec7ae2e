"""
Tests for the push + poll queue reconciler.
"""

import asyncio

import pytest
from conftest import FakeChangeFeed, FakeSource, make_event, make_job

from app.features.processing_queue.domain.models import QueueStats, Worker
from app.features.processing_queue.services.activity_log import ActivityLogBuffer
from app.features.processing_queue.services.reconciler import (
    REALTIME_UNAVAILABLE_MESSAGE,
    DualChannelReconciler,
)
from app.models.domain.errors import TransportError


def _reconciler(*sources, **kwargs) -> DualChannelReconciler:
    kwargs.setdefault("poll_interval", 60)
    kwargs.setdefault("reconnect_delay", 0)
    return DualChannelReconciler(list(sources), **kwargs)


async def _settle(reconciler: DualChannelReconciler, rounds: int = 20):
    for _ in range(rounds):
        await asyncio.sleep(0)
    await reconciler.drain()


async def _wait_for(predicate, rounds: int = 200):
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# ----------------------------------------------------------------------
# Push events
# ----------------------------------------------------------------------


def test_push_event_updates_stats_and_log(ai_source):
    reconciler = _reconciler(ai_source)

    reconciler.publish(make_event("insert", "job-1", new_status="pending"))
    reconciler.publish(make_event("update", "job-1", "pending", "processing"))

    assert reconciler.stats("ai") == QueueStats(processing=1)
    assert [item.status for item in reconciler.activity_log.items()] == ["queued", "started"]


def test_event_status_mapping(ai_source):
    reconciler = _reconciler(ai_source)

    reconciler.publish(make_event("insert", "job-1", new_status="pending"))
    reconciler.publish(make_event("update", "job-1", "pending", "processing"))
    reconciler.publish(make_event("update", "job-1", "processing", "failed"))
    reconciler.publish(make_event("delete", "job-1", old_status="failed"))

    statuses = [item.status for item in reconciler.activity_log.items()]
    assert statuses == ["queued", "started", "failed", "removed"]
    assert reconciler.stats("ai").total == 0


def test_paused_log_still_updates_stats(ai_source):
    reconciler = _reconciler(ai_source)
    reconciler.pause()

    for n in range(3):
        reconciler.publish(make_event("insert", f"job-{n}", new_status="pending"))

    assert len(reconciler.activity_log) == 0
    assert reconciler.stats("ai").pending == 3


def test_resume_does_not_replay_paused_events(ai_source):
    reconciler = _reconciler(ai_source)
    reconciler.pause()
    reconciler.publish(make_event("insert", "job-1", new_status="pending"))

    reconciler.resume()
    reconciler.publish(make_event("insert", "job-2", new_status="pending"))

    assert [item.job_id for item in reconciler.activity_log.items()] == ["job-2"]
    assert reconciler.stats("ai").pending == 2


def test_clear_activity_log_keeps_stats(ai_source):
    reconciler = _reconciler(ai_source)
    reconciler.publish(make_event("insert", "job-1", new_status="pending"))

    reconciler.clear_activity_log()

    assert len(reconciler.activity_log) == 0
    assert reconciler.stats("ai").pending == 1


def test_log_is_bounded(ai_source):
    reconciler = _reconciler(ai_source, activity_log=ActivityLogBuffer(capacity=100))

    for n in range(250):
        reconciler.publish(make_event("insert", f"job-{n}", new_status="pending"))

    assert len(reconciler.activity_log) == 100
    assert reconciler.activity_log.items()[0].job_id == "job-150"


def test_event_for_untracked_queue_is_ignored(ai_source):
    reconciler = _reconciler(ai_source)

    reconciler.publish(make_event("insert", "job-1", new_status="pending", queue_name="video"))

    assert len(reconciler.activity_log) == 0
    assert reconciler.aggregate_stats().total == 0


# ----------------------------------------------------------------------
# Polling
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_poll_overrides_push_deltas(ai_source):
    reconciler = _reconciler(ai_source)
    for n in range(5):
        reconciler.publish(make_event("insert", f"job-{n}", new_status="pending"))
    assert reconciler.stats("ai").pending == 5

    ai_source.stats = QueueStats(pending=1, completed=4)
    assert await reconciler.refresh() is True

    assert reconciler.stats("ai") == QueueStats(pending=1, completed=4)


@pytest.mark.asyncio
async def test_first_poll_seeds_activity_log_once(ai_source):
    ai_source.recent = [
        make_job("job-new", "completed", minutes=10),
        make_job("job-old", "pending", minutes=1),
    ]
    reconciler = _reconciler(ai_source)

    await reconciler.refresh()
    assert [item.job_id for item in reconciler.activity_log.items()] == ["job-old", "job-new"]

    await reconciler.refresh()
    assert len(reconciler.activity_log) == 2


@pytest.mark.asyncio
async def test_first_poll_seeds_even_when_paused(ai_source):
    ai_source.recent = [make_job("job-1", "completed")]
    reconciler = _reconciler(ai_source)
    reconciler.pause()

    await reconciler.refresh()

    assert len(reconciler.activity_log) == 1


@pytest.mark.asyncio
async def test_poll_replaces_job_lists_and_workers(ai_source):
    ai_source.recent = [make_job("job-1", "completed")]
    ai_source.active = [make_job("job-2", "processing")]
    ai_source.workers = [Worker(worker_id="w-1", status="busy", current_job_id="job-2")]
    reconciler = _reconciler(ai_source)

    await reconciler.refresh()

    assert [job.id for job in reconciler.recent_jobs("ai")] == ["job-1"]
    assert [job.id for job in reconciler.active_jobs()] == ["job-2"]
    assert reconciler.workers()[0].worker_id == "w-1"
    assert reconciler.last_poll_at is not None


@pytest.mark.asyncio
async def test_poll_failure_keeps_previous_state(ai_source):
    ai_source.stats = QueueStats(pending=2)
    reconciler = _reconciler(ai_source)
    await reconciler.refresh()

    ai_source.fail = True
    ai_source.stats = QueueStats(pending=9)
    assert await reconciler.refresh() is False

    assert reconciler.stats("ai") == QueueStats(pending=2)
    assert "ai unreachable" in reconciler.last_error


@pytest.mark.asyncio
async def test_one_failing_queue_does_not_block_others(ai_source, video_source):
    ai_source.stats = QueueStats(completed=3)
    video_source.fail = True
    reconciler = _reconciler(ai_source, video_source)

    assert await reconciler.refresh() is True

    assert reconciler.stats("ai").completed == 3
    assert reconciler.stats("video").total == 0
    assert "video" in reconciler.last_error


@pytest.mark.asyncio
async def test_combined_recent_jobs_newest_first(ai_source, video_source):
    ai_source.recent = [make_job("a-1", minutes=1)]
    video_source.recent = [make_job("v-1", queue_name="video", minutes=5)]
    reconciler = _reconciler(ai_source, video_source)

    await reconciler.refresh()

    assert [job.id for job in reconciler.recent_jobs()] == ["v-1", "a-1"]


@pytest.mark.asyncio
async def test_clear_queue_clears_source_and_repolls(ai_source):
    ai_source.stats = QueueStats(pending=4)
    reconciler = _reconciler(ai_source)
    await reconciler.refresh()

    await reconciler.clear_queue("ai")

    assert ai_source.cleared is True
    assert reconciler.stats("ai").total == 0


def test_unknown_queue_raises_key_error(ai_source):
    reconciler = _reconciler(ai_source)

    with pytest.raises(KeyError):
        reconciler.stats("nope")
    with pytest.raises(KeyError):
        reconciler.recent_jobs("nope")


# ----------------------------------------------------------------------
# Running with background tasks
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_push_events_are_applied_by_consumer(ai_source):
    feed = FakeChangeFeed(
        [
            [
                make_event("insert", "job-1", new_status="pending"),
                make_event("insert", "job-2", new_status="pending"),
            ]
        ]
    )
    reconciler = _reconciler(ai_source, change_feed=feed, reconnect_attempts=1)

    await reconciler.start(poll=False)
    try:
        await _wait_for(lambda: reconciler.realtime_unavailable)
        await _settle(reconciler)

        assert reconciler.stats("ai").pending == 2
        assert len(reconciler.activity_log) == 2
    finally:
        await reconciler.stop()


@pytest.mark.asyncio
async def test_push_event_refreshes_active_jobs(ai_source):
    ai_source.active = [make_job("job-1", "processing")]
    reconciler = _reconciler(ai_source)

    await reconciler.start(poll=False)
    try:
        reconciler.publish(make_event("update", "job-1", "pending", "processing"))
        await _settle(reconciler)
        await _settle(reconciler)

        assert [job.id for job in reconciler.active_jobs("ai")] == ["job-1"]
    finally:
        await reconciler.stop()


@pytest.mark.asyncio
async def test_push_failure_falls_back_to_polling(ai_source):
    feed = FakeChangeFeed([TransportError("down"), TransportError("still down")])
    reconciler = _reconciler(ai_source, change_feed=feed, reconnect_attempts=2)

    await reconciler.start(poll=False)
    try:
        await _wait_for(lambda: reconciler.realtime_unavailable)
        assert feed.subscriptions == 2
        assert reconciler.last_error == REALTIME_UNAVAILABLE_MESSAGE

        ai_source.stats = QueueStats(pending=3)
        assert await reconciler.refresh() is True
        assert reconciler.stats("ai").pending == 3
    finally:
        await reconciler.stop()


@pytest.mark.asyncio
async def test_poll_timer_polls_on_start(ai_source):
    ai_source.stats = QueueStats(completed=2)
    reconciler = _reconciler(ai_source)

    await reconciler.start()
    try:
        await _wait_for(lambda: ai_source.fetch_count >= 1)
        await _settle(reconciler)
        assert reconciler.stats("ai").completed == 2
        assert reconciler.status()["running"] is True
    finally:
        await reconciler.stop()

    assert reconciler.running is False


@pytest.mark.asyncio
async def test_unexpected_feed_error_marks_realtime_unavailable(ai_source):
    feed = FakeChangeFeed([RuntimeError("bad payload")])
    reconciler = _reconciler(ai_source, change_feed=feed, reconnect_attempts=3)

    await reconciler.start(poll=False)
    try:
        await _wait_for(lambda: reconciler.realtime_unavailable)
        assert feed.subscriptions == 1
        assert reconciler.last_error == REALTIME_UNAVAILABLE_MESSAGE
        assert reconciler.running is True
    finally:
        await reconciler.stop()
