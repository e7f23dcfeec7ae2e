"""
In-memory per-queue counters.

Snapshots from a poll overwrite a queue's counters outright; push deltas
move one job between statuses. Every update builds a new ``QueueStats``
and swaps it in, so readers never observe a half-applied change and
``total`` always equals the sum of its parts.
"""

from app.features.processing_queue.domain.models import JOB_STATUSES, QueueStats
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import InconsistentStateError

logger = get_logger(__name__)


class QueueStatsStore:
    """Authoritative counters for N independent queues."""

    def __init__(self, queue_names: list[str] | None = None):
        self._stats: dict[str, QueueStats] = {name: QueueStats() for name in queue_names or []}

    @property
    def queue_names(self) -> list[str]:
        return list(self._stats)

    def get(self, queue_name: str) -> QueueStats:
        return self._stats.get(queue_name, QueueStats())

    def replace_snapshot(self, queue_name: str, stats: QueueStats) -> QueueStats:
        """Overwrite a queue's counters with freshly fetched ground truth."""
        self._stats[queue_name] = QueueStats.from_counts(stats.to_dict())
        return self._stats[queue_name]

    def apply_delta(
        self, queue_name: str, old_status: str | None, new_status: str | None
    ) -> QueueStats:
        """
        Move one job from ``old_status`` to ``new_status``.

        ``old_status=None`` is an insert and ``new_status=None`` a delete.
        Decrements are clamped at zero so that deltas arriving after a
        poll already counted them cannot drive a counter negative.
        """
        current = self.get(queue_name)
        updated = current

        if old_status == new_status:
            return current

        if old_status in JOB_STATUSES:
            remaining = updated.count(old_status) - 1
            if remaining < 0:
                error = InconsistentStateError(
                    f"{queue_name}.{old_status} would go negative",
                    queue_name=queue_name,
                    status=old_status,
                )
                logger.warning(
                    "Clamped queue counter at zero",
                    queue_name=queue_name,
                    status=old_status,
                    error=str(error),
                    error_type=type(error).__name__,
                )
                remaining = 0
            updated = updated.with_count(old_status, remaining)

        if new_status in JOB_STATUSES:
            updated = updated.with_count(new_status, updated.count(new_status) + 1)

        self._stats[queue_name] = updated
        return updated

    def aggregate(self, queue_names: list[str] | None = None) -> QueueStats:
        """Sum counters across queues; computed on every call."""
        names = self.queue_names if queue_names is None else queue_names
        combined = QueueStats()
        for name in names:
            combined = combined + self.get(name)
        return combined

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {name: stats.to_dict() for name, stats in self._stats.items()}
