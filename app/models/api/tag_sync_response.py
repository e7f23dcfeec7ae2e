# app/models/api/tag_sync_response.py
"""
Tag sync API response models.
Used by the tag sync routes for output formatting.
"""

from typing import Any

from pydantic import BaseModel, Field


class BoundingBoxResponse(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ManualTagResponse(BaseModel):
    tag_id: str
    contact_id: str
    contact_name: str | None = None
    bounding_box: BoundingBoxResponse
    tagged_by: dict[str, Any] | None = None
    is_auto_matched: bool = Field(..., description="Produced by a previous auto-match")


class AIDetectionResponse(BaseModel):
    face_id: str
    bounding_box: BoundingBoxResponse
    cluster_id: str | None = None
    thumbnail_url: str | None = None


class TagMatchResponse(BaseModel):
    manual_tag_id: str
    ai_face_id: str
    iou_score: float
    status: str = Field(..., description="matched or low_confidence")
    selection_state: str = Field(
        ..., description="selected-match, deselected-match, selected-low or unselected-low"
    )


class AssetPreviewResponse(BaseModel):
    asset_id: str
    thumbnail_url: str | None = None
    image_width: int | None = None
    image_height: int | None = None
    manual_tags: list[ManualTagResponse]
    ai_detections: list[AIDetectionResponse]
    matches: list[TagMatchResponse]


class TagSyncSummaryResponse(BaseModel):
    total_assets: int
    total_manual_tags: int
    manually_placed_tags: int
    auto_matched_tags: int
    total_ai_faces: int
    matched: int
    low_confidence: int
    unmatched_manual: int
    unmatched_ai: int


class TagSyncPreviewResponse(BaseModel):
    iou_threshold: float
    assets: list[AssetPreviewResponse]
    summary: TagSyncSummaryResponse
    selected_count: int


class ToggleMatchResponse(BaseModel):
    manual_tag_id: str
    ai_face_id: str
    selected: bool
    selected_count: int


class ApplyTagSyncResponse(BaseModel):
    submitted: int
    applied: int
    result: dict[str, Any] = Field(default_factory=dict)


class ClusterExclusionsResponse(BaseModel):
    cluster_id: str
    excluded_face_ids: list[str]


class AssignClusterResponse(BaseModel):
    cluster_id: str
    contact_id: str
    excluded_face_ids: list[str]
    result: dict[str, Any] = Field(default_factory=dict)
