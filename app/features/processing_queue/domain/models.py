"""
Domain models for the processing queue feature.

Lightweight dataclasses describing the cached job rows, counters and
change events the reconciler works with. Rows arrive either from the AI
service (JSON, ISO timestamps) or from the job table (psycopg rows with
datetimes); the ``from_row`` constructors accept both.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
EventType = Literal["insert", "update", "delete"]

JOB_STATUSES: tuple[str, ...] = ("pending", "processing", "completed", "failed")
EVENT_TYPES: tuple[str, ...] = ("insert", "update", "delete")

_JOB_FIELDS = {
    "id",
    "status",
    "created_at",
    "started_at",
    "completed_at",
    "error_message",
    "worker_id",
    "queue_name",
}


def parse_timestamp(value: Any) -> datetime | None:
    """Accept datetimes or ISO-8601 strings; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(slots=True)
class Job:
    """Read-only cached copy of one job row."""

    id: str
    queue_name: str
    status: str
    created_at: datetime | None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    worker_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, queue_name: str, row: dict[str, Any]) -> "Job":
        # Columns that are not part of the shared shape travel as payload
        payload = {key: value for key, value in row.items() if key not in _JOB_FIELDS}
        return cls(
            id=str(row.get("id", "")),
            queue_name=queue_name,
            status=str(row.get("status") or "pending"),
            created_at=parse_timestamp(row.get("created_at")),
            started_at=parse_timestamp(row.get("started_at") or row.get("picked_up_at")),
            completed_at=parse_timestamp(row.get("completed_at")),
            error_message=row.get("error_message"),
            worker_id=row.get("worker_id"),
            payload=payload,
        )

    @property
    def last_activity_at(self) -> datetime | None:
        return self.completed_at or self.started_at or self.created_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "queue_name": self.queue_name,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error_message": self.error_message,
            "worker_id": self.worker_id,
            "payload": self.payload,
        }


@dataclass(slots=True, frozen=True)
class QueueStats:
    """Counters for one queue. ``total`` is always derived from the parts."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    @classmethod
    def from_counts(cls, counts: dict[str, Any]) -> "QueueStats":
        """Build from a stats payload, ignoring any server-side total."""
        return cls(**{status: max(0, int(counts.get(status) or 0)) for status in JOB_STATUSES})

    @classmethod
    def from_rows(cls, statuses: list[str]) -> "QueueStats":
        """Recount from a full scan of row statuses."""
        counts = dict.fromkeys(JOB_STATUSES, 0)
        for status in statuses:
            if status in counts:
                counts[status] += 1
        return cls(**counts)

    def count(self, status: str) -> int:
        return getattr(self, status)

    def with_count(self, status: str, value: int) -> "QueueStats":
        return replace(self, **{status: value})

    def __add__(self, other: "QueueStats") -> "QueueStats":
        return QueueStats(
            pending=self.pending + other.pending,
            processing=self.processing + other.processing,
            completed=self.completed + other.completed,
            failed=self.failed + other.failed,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass(slots=True, frozen=True)
class ActivityLogItem:
    """One reconciled change as shown in the activity feed. Never mutated."""

    id: str
    timestamp: datetime
    status: str
    job_id: str
    queue_name: str
    worker_id: str | None = None
    result_summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "job_id": self.job_id,
            "queue_name": self.queue_name,
            "worker_id": self.worker_id,
            "result_summary": self.result_summary,
        }


@dataclass(slots=True)
class Worker:
    worker_id: str
    status: str
    current_job_id: str | None = None
    started_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Worker":
        return cls(
            worker_id=str(data.get("worker_id", "")),
            status=str(data.get("status") or "unknown"),
            current_job_id=data.get("current_job_id") or data.get("current_asset"),
            started_at=parse_timestamp(data.get("started_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "status": self.status,
            "current_job_id": self.current_job_id,
            "started_at": _iso(self.started_at),
        }


@dataclass(slots=True)
class ChangeEvent:
    """A push notification for one job row."""

    queue_name: str
    event_type: str
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def old_status(self) -> str | None:
        return (self.old or {}).get("status")

    @property
    def new_status(self) -> str | None:
        if self.event_type == "delete":
            return None
        return (self.new or {}).get("status")

    @property
    def record(self) -> dict[str, Any]:
        return self.new or self.old or {}

    @property
    def job_id(self) -> str:
        return str(self.record.get("id", ""))


@dataclass(slots=True)
class QueueSnapshot:
    """Everything one poll tick fetched, applied atomically by the reconciler."""

    stats: dict[str, QueueStats]
    recent_jobs: dict[str, list[Job]]
    active_jobs: dict[str, list[Job]]
    workers: list[Worker] | None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class BatchCursor:
    offset: int = 0
    batch_number: int = 0
    total_queued: int = 0
    total_skipped: int = 0
    done: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "offset": self.offset,
            "batch_number": self.batch_number,
            "total_queued": self.total_queued,
            "total_skipped": self.total_skipped,
            "done": self.done,
        }


@dataclass(slots=True)
class BatchResult:
    """Response of the queue-next-batch endpoint."""

    queued: int
    skipped: int
    next_offset: int
    done: bool
    remaining: int | None = None
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchResult":
        remaining = data.get("remaining", data.get("total_remaining"))
        return cls(
            queued=int(data.get("queued") or 0),
            skipped=int(data.get("skipped") or 0),
            next_offset=int(data.get("next_offset") or 0),
            done=bool(data.get("done", False)),
            remaining=int(remaining) if remaining is not None else None,
            message=str(data.get("message") or ""),
        )

    @property
    def is_complete(self) -> bool:
        return self.done or self.remaining == 0


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
