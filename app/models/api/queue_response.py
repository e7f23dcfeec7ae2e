# app/models/api/queue_response.py
"""
Queue monitor API response models.
Used by the processing queue routes for output formatting.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class QueueStatsResponse(BaseModel):
    """Counters for one queue, or the sum over several."""

    queue_name: str = Field(..., description="Queue name, or 'all' for the combined view")
    pending: int = Field(..., ge=0)
    processing: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    total: int = Field(..., ge=0, description="Always pending + processing + completed + failed")


class JobResponse(BaseModel):
    id: str
    queue_name: str
    status: str
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    worker_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class JobsListResponse(BaseModel):
    jobs: list[JobResponse]
    count: int


class WorkerResponse(BaseModel):
    worker_id: str
    status: str
    current_job_id: str | None = None
    started_at: datetime | None = None


class WorkersListResponse(BaseModel):
    workers: list[WorkerResponse]
    count: int


class ActivityLogItemResponse(BaseModel):
    id: str
    timestamp: datetime
    status: str = Field(..., description="queued, started, completed, failed or removed")
    job_id: str
    queue_name: str
    worker_id: str | None = None
    result_summary: str | None = None


class ActivityLogResponse(BaseModel):
    items: list[ActivityLogItemResponse] = Field(..., description="Newest first")
    count: int
    paused: bool


class MonitorStatusResponse(BaseModel):
    """Reconciler flags shown alongside the queue view."""

    running: bool
    paused: bool
    realtime_enabled: bool
    realtime_unavailable: bool = Field(..., description="Push channel gave up; polling only")
    last_poll_at: datetime | None = None
    last_error: str | None = None
    queues: list[str]


class BatchCursorResponse(BaseModel):
    offset: int
    batch_number: int
    total_queued: int
    total_skipped: int
    done: bool


class BatchStateResponse(BaseModel):
    state: str = Field(..., description="idle, queuing, paused, complete or stopped")
    batch_size: int
    cursor: BatchCursorResponse
    last_error: str | None = None
    unprocessed_count: int | None = None
    progress_percent: int = Field(..., ge=0, le=100)
    log: list[str] = Field(default_factory=list, description="Operator log, oldest first")
