# app/models/api/tag_sync_request.py
"""
Tag sync API request models.
Used by the tag sync routes for input validation.
"""

from pydantic import BaseModel, Field


class TagSyncPreviewRequest(BaseModel):
    iou_threshold: float | None = Field(
        None, gt=0, le=1, description="Match threshold; the configured default when omitted"
    )
    limit: int | None = Field(None, ge=1, le=1000, description="Maximum assets to preview")


class ToggleMatchRequest(BaseModel):
    manual_tag_id: str = Field(..., min_length=1)
    ai_face_id: str = Field(..., min_length=1)


class ExcludeFaceRequest(BaseModel):
    asset_id: str = Field(..., min_length=1)
    face_id: str = Field(..., min_length=1)


class AssignClusterRequest(BaseModel):
    contact_id: str = Field(..., min_length=1, description="Contact the cluster belongs to")
    name: str | None = Field(None, description="Optional display name for the cluster")
