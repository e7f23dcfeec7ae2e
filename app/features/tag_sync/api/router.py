"""
Tag sync routes: preview, selection, apply and cluster assignment.
"""

from fastapi import APIRouter, Depends, Request

from app.features.tag_sync.services.tag_sync_service import TagSyncService
from app.infrastructure.observability.logging import get_logger
from app.models.api.tag_sync_request import (
    AssignClusterRequest,
    ExcludeFaceRequest,
    TagSyncPreviewRequest,
    ToggleMatchRequest,
)
from app.models.api.tag_sync_response import (
    ApplyTagSyncResponse,
    AssignClusterResponse,
    ClusterExclusionsResponse,
    TagSyncPreviewResponse,
    ToggleMatchResponse,
)
from app.models.domain.errors import QueueEngineError
from app.routes.errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/tag-sync", tags=["tag-sync"])


def get_tag_sync_service(request: Request) -> TagSyncService:
    return request.app.state.tag_sync_service


@router.get("/preview", response_model=TagSyncPreviewResponse)
async def get_current_preview(service: TagSyncService = Depends(get_tag_sync_service)):
    """The last loaded preview with the current selection."""
    return service.to_dict()


@router.post("/preview", response_model=TagSyncPreviewResponse)
async def load_preview(
    body: TagSyncPreviewRequest, service: TagSyncService = Depends(get_tag_sync_service)
):
    try:
        return await service.load_preview(body.iou_threshold, body.limit)
    except QueueEngineError as e:
        raise to_http_exception(e) from e


@router.post("/selection/toggle", response_model=ToggleMatchResponse)
async def toggle_match(
    body: ToggleMatchRequest, service: TagSyncService = Depends(get_tag_sync_service)
):
    try:
        selected = service.toggle(body.manual_tag_id, body.ai_face_id)
    except QueueEngineError as e:
        raise to_http_exception(e) from e
    return {
        "manual_tag_id": body.manual_tag_id,
        "ai_face_id": body.ai_face_id,
        "selected": selected,
        "selected_count": len(service.selection.selected()),
    }


@router.post("/apply", response_model=ApplyTagSyncResponse)
async def apply_matches(service: TagSyncService = Depends(get_tag_sync_service)):
    try:
        return await service.apply()
    except QueueEngineError as e:
        raise to_http_exception(e) from e


@router.get("/clusters/{cluster_id}/exclusions", response_model=ClusterExclusionsResponse)
async def get_cluster_exclusions(
    cluster_id: str, service: TagSyncService = Depends(get_tag_sync_service)
):
    service.review_cluster(cluster_id)
    return {"cluster_id": cluster_id, "excluded_face_ids": service.selection.excluded_for(cluster_id)}


@router.post("/clusters/{cluster_id}/exclusions", response_model=ClusterExclusionsResponse)
async def toggle_cluster_exclusion(
    cluster_id: str,
    body: ExcludeFaceRequest,
    service: TagSyncService = Depends(get_tag_sync_service),
):
    """Flip one face in or out of the exclusion list of the reviewed cluster."""
    service.review_cluster(cluster_id)
    service.exclude(body.asset_id, body.face_id)
    return {"cluster_id": cluster_id, "excluded_face_ids": service.selection.excluded_for(cluster_id)}


@router.post("/clusters/{cluster_id}/assign", response_model=AssignClusterResponse)
async def assign_cluster(
    cluster_id: str,
    body: AssignClusterRequest,
    service: TagSyncService = Depends(get_tag_sync_service),
):
    excluded = service.selection.excluded_for(cluster_id)
    try:
        result = await service.assign_cluster(cluster_id, body.contact_id, name=body.name)
    except QueueEngineError as e:
        raise to_http_exception(e) from e
    return {
        "cluster_id": cluster_id,
        "contact_id": body.contact_id,
        "excluded_face_ids": excluded,
        "result": result,
    }
