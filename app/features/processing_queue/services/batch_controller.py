"""
Operator-driven bulk enqueue of unprocessed assets.

Each batch asks the AI service to queue the next ``batch_size`` assets
starting at the cursor offset. The server's ``next_offset`` is
authoritative. Batches never chain on their own: after every batch the
controller pauses until the operator continues, stops or resets.
"""

import asyncio
from collections import deque
from datetime import UTC, datetime
from typing import Any, Literal

from app.config import settings
from app.features.processing_queue.domain.models import BatchCursor, BatchResult
from app.infrastructure.observability.logging import get_logger, log_batch_result
from app.models.domain.errors import TransportError, ValidationError
from app.services.ai_client import AIServiceClient

logger = get_logger(__name__)

BatchState = Literal["idle", "queuing", "paused", "complete", "stopped"]

OPERATOR_LOG_LINES = 200


class BatchCursorController:
    """
    Resumable batch enqueue state machine.

    idle -> queuing -> paused <-> queuing -> complete
    queuing/paused -> stopped, any -> idle on reset
    """

    def __init__(self, client: AIServiceClient, batch_size: int | None = None):
        self._client = client
        self.batch_size = batch_size or settings.BATCH_QUEUE_SIZE
        if self.batch_size <= 0:
            raise ValidationError("batch_size must be positive", operation="batch_init")

        self.state: BatchState = "idle"
        self.cursor = BatchCursor()
        self.last_error: str | None = None
        self.unprocessed_count: int | None = None
        self._abort = False
        # Bumped by reset(); a batch started under an older generation is discarded
        self._generation = 0
        self._lock = asyncio.Lock()
        self._log: deque[str] = deque(maxlen=OPERATOR_LOG_LINES)

    @property
    def operator_log(self) -> list[str]:
        return list(self._log)

    @property
    def progress_percent(self) -> int:
        """Share of the collection queued since start, against the last known backlog."""
        if self.unprocessed_count is None:
            return 0
        start_total = self.unprocessed_count + self.cursor.total_queued
        if start_total <= 0:
            return 0
        return round(self.cursor.total_queued / start_total * 100)

    async def start(self) -> BatchState:
        """Reset the cursor to offset 0 and submit batch 1."""
        async with self._lock:
            self._abort = False
            self.cursor = BatchCursor()
            self.last_error = None
            self._log.clear()
            self.state = "queuing"
            generation = self._generation

            await self.refresh_unprocessed_count()
            if generation != self._generation:
                return self.state
            self._add_log("Queuing unprocessed assets to the AI worker...")
            await self._run_batch(generation)
            return self.state

    async def continue_(self) -> BatchState:
        """Submit the next batch from the stored offset."""
        async with self._lock:
            if self.state != "paused":
                raise ValidationError(
                    f"Cannot continue from state '{self.state}'", operation="batch_continue"
                )
            self._abort = False
            self.last_error = None
            self.state = "queuing"
            await self._run_batch(self._generation)
            return self.state

    def stop(self) -> BatchState:
        """
        Stop further batches. A batch already in flight still completes and
        its counts are kept; already-queued assets are not rolled back.
        """
        if self.state in ("idle", "complete"):
            return self.state

        self._abort = True
        if not self._lock.locked():
            self.state = "stopped"
        self._add_log("Queuing stopped. Already-queued assets will still be processed.")
        logger.info("Batch queuing stopped", offset=self.cursor.offset, batch_number=self.cursor.batch_number)
        return self.state

    async def reset(self) -> BatchState:
        """Return to idle. A batch still in flight is queued server-side but its result is dropped."""
        self._generation += 1
        self._abort = True
        self.cursor = BatchCursor()
        self.last_error = None
        self._log.clear()
        self.state = "idle"
        logger.info("Batch queuing reset")
        await self.refresh_unprocessed_count()
        return self.state

    async def refresh_unprocessed_count(self) -> int | None:
        try:
            self.unprocessed_count = await self._client.get_unprocessed_count()
        except TransportError as e:
            logger.warning("Unprocessed count refresh failed", error=str(e))
        return self.unprocessed_count

    async def _run_batch(self, generation: int) -> None:
        batch_number = self.cursor.batch_number + 1
        offset = self.cursor.offset
        self._add_log(f"Queuing batch {batch_number} (offset {offset})...")

        try:
            data = await self._client.queue_batch(self.batch_size, offset)
            result = BatchResult.from_dict(data)
        except (TransportError, TypeError, ValueError) as e:
            if generation != self._generation:
                logger.info("Discarding failed batch after reset", batch_number=batch_number, error=str(e))
                return
            # Cursor untouched so continuing retries the same offset
            self.last_error = str(e)
            self.state = "stopped" if self._abort else "paused"
            self._add_log(f"Error: {e}")
            log_batch_result(batch_number, offset, 0, 0, error=str(e))
            return

        if generation != self._generation:
            logger.info(
                "Discarding batch result after reset",
                batch_number=batch_number,
                offset=offset,
                queued=result.queued,
            )
            return

        self.cursor.batch_number = batch_number
        self.cursor.total_queued += result.queued
        self.cursor.total_skipped += result.skipped
        self.cursor.offset = result.next_offset
        if result.message:
            self._add_log(result.message)
        log_batch_result(
            batch_number, offset, result.queued, result.skipped, next_offset=result.next_offset
        )

        if result.is_complete:
            self.cursor.done = True
            self.state = "complete"
            self._add_log("All unprocessed assets have been queued.")
            await self.refresh_unprocessed_count()
            return

        if self._abort:
            self.state = "stopped"
            self._add_log("Queuing stopped by user.")
            return

        self.state = "paused"
        self._add_log(
            f"Batch {batch_number} queued. Continue to queue the next {self.batch_size}."
        )

    def _add_log(self, message: str) -> None:
        timestamp = datetime.now(UTC).strftime("%H:%M:%S")
        self._log.append(f"[{timestamp}] {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "batch_size": self.batch_size,
            "cursor": self.cursor.to_dict(),
            "last_error": self.last_error,
            "unprocessed_count": self.unprocessed_count,
            "progress_percent": self.progress_percent,
            "log": self.operator_log,
        }
