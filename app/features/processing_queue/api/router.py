"""
Processing queue routes.

Read accessors over the reconciler's cached view plus the operator
actions (pause/resume/clear the activity log, refresh, clear a queue,
drive the batch cursor). State lives on ``app.state`` and is built in
the application lifespan.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.features.processing_queue.domain.models import QueueStats
from app.features.processing_queue.services.batch_controller import BatchCursorController
from app.features.processing_queue.services.reconciler import DualChannelReconciler
from app.infrastructure.observability.logging import get_logger
from app.models.api.queue_response import (
    ActivityLogResponse,
    BatchStateResponse,
    JobsListResponse,
    MonitorStatusResponse,
    QueueStatsResponse,
    WorkersListResponse,
)
from app.models.domain.errors import QueueEngineError
from app.routes.errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/queues", tags=["queues"])


def get_reconciler(request: Request) -> DualChannelReconciler:
    return request.app.state.reconciler


def get_batch_controller(request: Request) -> BatchCursorController:
    return request.app.state.batch_controller


def _stats_response(queue_name: str, stats: QueueStats) -> QueueStatsResponse:
    return QueueStatsResponse(queue_name=queue_name, **stats.to_dict())


# ----------------------------------------------------------------------
# Monitor view
# ----------------------------------------------------------------------


@router.get("/status", response_model=MonitorStatusResponse)
async def get_monitor_status(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    return MonitorStatusResponse(**reconciler.status())


@router.get("/stats", response_model=list[QueueStatsResponse])
async def list_queue_stats(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    """Per-queue counters followed by the combined 'all' row."""
    rows = [_stats_response(name, reconciler.stats(name)) for name in reconciler.queue_names]
    rows.append(_stats_response("all", reconciler.aggregate_stats()))
    return rows


@router.get("/jobs/recent", response_model=JobsListResponse)
async def list_recent_jobs(
    queue: str | None = Query(None, description="Queue name; all queues when omitted"),
    reconciler: DualChannelReconciler = Depends(get_reconciler),
):
    try:
        jobs = reconciler.recent_jobs(queue)
    except KeyError as e:
        raise to_http_exception(e) from e
    return {"jobs": [job.to_dict() for job in jobs], "count": len(jobs)}


@router.get("/jobs/active", response_model=JobsListResponse)
async def list_active_jobs(
    queue: str | None = Query(None, description="Queue name; all queues when omitted"),
    reconciler: DualChannelReconciler = Depends(get_reconciler),
):
    try:
        jobs = reconciler.active_jobs(queue)
    except KeyError as e:
        raise to_http_exception(e) from e
    return {"jobs": [job.to_dict() for job in jobs], "count": len(jobs)}


@router.get("/workers", response_model=WorkersListResponse)
async def list_workers(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    workers = reconciler.workers()
    return {"workers": [worker.to_dict() for worker in workers], "count": len(workers)}


@router.get("/activity", response_model=ActivityLogResponse)
async def get_activity_log(
    limit: int | None = Query(None, ge=1, le=1000),
    reconciler: DualChannelReconciler = Depends(get_reconciler),
):
    items = reconciler.activity_log.latest(limit)
    return {
        "items": [item.to_dict() for item in items],
        "count": len(items),
        "paused": reconciler.paused,
    }


@router.post("/activity/pause", response_model=MonitorStatusResponse)
async def pause_activity_log(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    reconciler.pause()
    return MonitorStatusResponse(**reconciler.status())


@router.post("/activity/resume", response_model=MonitorStatusResponse)
async def resume_activity_log(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    reconciler.resume()
    return MonitorStatusResponse(**reconciler.status())


@router.delete("/activity", response_model=ActivityLogResponse)
async def clear_activity_log(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    reconciler.clear_activity_log()
    return {"items": [], "count": 0, "paused": reconciler.paused}


@router.post("/refresh", response_model=MonitorStatusResponse)
async def refresh_queues(reconciler: DualChannelReconciler = Depends(get_reconciler)):
    """Poll now instead of waiting for the next tick."""
    fetched = await reconciler.refresh()
    if not fetched:
        raise HTTPException(status_code=502, detail=reconciler.last_error or "Refresh failed")
    return MonitorStatusResponse(**reconciler.status())


# ----------------------------------------------------------------------
# Batch queuing
# ----------------------------------------------------------------------


@router.get("/batch", response_model=BatchStateResponse)
async def get_batch_state(controller: BatchCursorController = Depends(get_batch_controller)):
    return controller.to_dict()


@router.post("/batch/start", response_model=BatchStateResponse)
async def start_batch_queuing(controller: BatchCursorController = Depends(get_batch_controller)):
    await controller.start()
    return controller.to_dict()


@router.post("/batch/continue", response_model=BatchStateResponse)
async def continue_batch_queuing(
    controller: BatchCursorController = Depends(get_batch_controller),
):
    try:
        await controller.continue_()
    except QueueEngineError as e:
        raise to_http_exception(e) from e
    return controller.to_dict()


@router.post("/batch/stop", response_model=BatchStateResponse)
async def stop_batch_queuing(controller: BatchCursorController = Depends(get_batch_controller)):
    controller.stop()
    return controller.to_dict()


@router.post("/batch/reset", response_model=BatchStateResponse)
async def reset_batch_queuing(controller: BatchCursorController = Depends(get_batch_controller)):
    await controller.reset()
    return controller.to_dict()


# ----------------------------------------------------------------------
# Per-queue routes (declared last so fixed paths above take precedence)
# ----------------------------------------------------------------------


@router.get("/{queue_name}/stats", response_model=QueueStatsResponse)
async def get_queue_stats(
    queue_name: str, reconciler: DualChannelReconciler = Depends(get_reconciler)
):
    try:
        return _stats_response(queue_name, reconciler.stats(queue_name))
    except KeyError as e:
        raise to_http_exception(e) from e


@router.delete("/{queue_name}", response_model=QueueStatsResponse)
async def clear_queue(
    queue_name: str, reconciler: DualChannelReconciler = Depends(get_reconciler)
):
    """Delete every job in one queue at the source; returns the re-polled counters."""
    try:
        await reconciler.clear_queue(queue_name)
        return _stats_response(queue_name, reconciler.stats(queue_name))
    except (KeyError, QueueEngineError) as e:
        raise to_http_exception(e) from e
