"""
Tests for the resumable batch enqueue controller.
"""

import asyncio

import pytest

from app.features.processing_queue.services.batch_controller import (
    OPERATOR_LOG_LINES,
    BatchCursorController,
)
from app.models.domain.errors import TransportError, ValidationError


def _batch(queued=100, skipped=0, next_offset=100, done=False, remaining=150):
    return {
        "queued": queued,
        "skipped": skipped,
        "next_offset": next_offset,
        "done": done,
        "total_remaining": remaining,
        "message": f"Queued {queued} assets",
    }


@pytest.mark.asyncio
async def test_start_submits_first_batch_then_pauses(fake_ai_client):
    controller = BatchCursorController(fake_ai_client, batch_size=100)

    state = await controller.start()

    assert state == "paused"
    fake_ai_client.queue_batch.assert_awaited_once_with(100, 0)
    assert controller.cursor.offset == 100
    assert controller.cursor.batch_number == 1
    assert controller.cursor.total_queued == 100
    assert controller.unprocessed_count == 250


@pytest.mark.asyncio
async def test_continue_resumes_from_server_offset(fake_ai_client):
    fake_ai_client.queue_batch.side_effect = [
        _batch(queued=90, skipped=10, next_offset=100),
        _batch(queued=100, next_offset=200, remaining=50),
    ]
    controller = BatchCursorController(fake_ai_client, batch_size=100)

    await controller.start()
    state = await controller.continue_()

    assert state == "paused"
    assert fake_ai_client.queue_batch.await_args_list[1].args == (100, 100)
    assert controller.cursor.offset == 200
    assert controller.cursor.total_queued == 190
    assert controller.cursor.total_skipped == 10
    assert controller.cursor.batch_number == 2


@pytest.mark.asyncio
async def test_done_completes(fake_ai_client):
    fake_ai_client.queue_batch.return_value = _batch(queued=40, next_offset=40, done=True, remaining=0)
    controller = BatchCursorController(fake_ai_client, batch_size=100)

    state = await controller.start()

    assert state == "complete"
    assert controller.cursor.done is True
    assert "All unprocessed assets have been queued." in controller.operator_log[-1]
    # Refreshed on start and again on completion
    assert fake_ai_client.get_unprocessed_count.await_count == 2


@pytest.mark.asyncio
async def test_zero_remaining_completes_without_done_flag(fake_ai_client):
    fake_ai_client.queue_batch.return_value = _batch(done=False, remaining=0)
    controller = BatchCursorController(fake_ai_client)

    assert await controller.start() == "complete"


@pytest.mark.asyncio
async def test_transport_failure_pauses_with_cursor_unchanged(fake_ai_client):
    fake_ai_client.queue_batch.side_effect = [
        _batch(next_offset=100),
        TransportError("Request timed out", operation="queue_batch"),
        _batch(next_offset=200),
    ]
    controller = BatchCursorController(fake_ai_client, batch_size=100)
    await controller.start()

    state = await controller.continue_()

    assert state == "paused"
    assert controller.last_error == "Request timed out"
    assert controller.cursor.offset == 100
    assert controller.cursor.batch_number == 1

    await controller.continue_()
    assert fake_ai_client.queue_batch.await_args_list[2].args == (100, 100)
    assert controller.cursor.offset == 200
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_stop_when_paused_prevents_further_batches(fake_ai_client):
    controller = BatchCursorController(fake_ai_client)
    await controller.start()

    assert controller.stop() == "stopped"

    with pytest.raises(ValidationError):
        await controller.continue_()
    assert fake_ai_client.queue_batch.await_count == 1


@pytest.mark.asyncio
async def test_stop_during_in_flight_batch_keeps_its_counts(fake_ai_client):
    release = asyncio.Event()

    async def slow_batch(batch_size, offset):
        await release.wait()
        return _batch()

    fake_ai_client.queue_batch.side_effect = slow_batch
    controller = BatchCursorController(fake_ai_client)

    task = asyncio.create_task(controller.start())
    for _ in range(10):
        await asyncio.sleep(0)
    assert controller.state == "queuing"

    controller.stop()
    release.set()
    state = await task

    assert state == "stopped"
    assert controller.cursor.total_queued == 100
    assert controller.cursor.offset == 100


@pytest.mark.asyncio
async def test_reset_discards_cursor(fake_ai_client):
    controller = BatchCursorController(fake_ai_client)
    await controller.start()

    state = await controller.reset()

    assert state == "idle"
    assert controller.cursor.offset == 0
    assert controller.cursor.total_queued == 0
    assert controller.operator_log == []


@pytest.mark.asyncio
async def test_reset_during_in_flight_batch_drops_its_result(fake_ai_client):
    release = asyncio.Event()

    async def slow_batch(batch_size, offset):
        await release.wait()
        return _batch()

    fake_ai_client.queue_batch.side_effect = slow_batch
    controller = BatchCursorController(fake_ai_client)

    task = asyncio.create_task(controller.start())
    for _ in range(10):
        await asyncio.sleep(0)
    assert controller.state == "queuing"

    await controller.reset()
    release.set()
    state = await task

    assert state == "idle"
    assert controller.state == "idle"
    assert controller.cursor.offset == 0
    assert controller.cursor.batch_number == 0
    assert controller.cursor.total_queued == 0
    assert controller.operator_log == []


@pytest.mark.asyncio
async def test_reset_during_failing_batch_stays_idle(fake_ai_client):
    release = asyncio.Event()

    async def failing_batch(batch_size, offset):
        await release.wait()
        raise TransportError("Request timed out", operation="queue_batch")

    fake_ai_client.queue_batch.side_effect = failing_batch
    controller = BatchCursorController(fake_ai_client)

    task = asyncio.create_task(controller.start())
    for _ in range(10):
        await asyncio.sleep(0)

    await controller.reset()
    release.set()

    assert await task == "idle"
    assert controller.last_error is None


@pytest.mark.asyncio
async def test_progress_percent(fake_ai_client):
    fake_ai_client.get_unprocessed_count.return_value = 300
    controller = BatchCursorController(fake_ai_client)

    await controller.start()
    # 100 queued against a backlog of 300 remaining + 100 queued
    assert controller.progress_percent == 25


@pytest.mark.asyncio
async def test_operator_log_is_bounded(fake_ai_client):
    controller = BatchCursorController(fake_ai_client)
    await controller.start()

    for _ in range(OPERATOR_LOG_LINES):
        await controller.continue_()

    assert len(controller.operator_log) == OPERATOR_LOG_LINES


@pytest.mark.asyncio
async def test_unprocessed_count_failure_is_not_fatal(fake_ai_client):
    fake_ai_client.get_unprocessed_count.side_effect = TransportError("down")
    controller = BatchCursorController(fake_ai_client)

    assert await controller.start() == "paused"
    assert controller.unprocessed_count is None
    assert controller.progress_percent == 0


def test_batch_size_must_be_positive(fake_ai_client):
    with pytest.raises(ValidationError):
        BatchCursorController(fake_ai_client, batch_size=-1)
