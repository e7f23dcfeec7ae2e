"""
Tag sync workflow: load a preview from the AI service, recompute matches
locally at the operator's threshold, let the operator adjust the
selection, then apply it or assign a face cluster to a contact.
"""

import asyncio
from typing import Any

from app.config import settings
from app.features.tag_sync.domain.models import AssetPreview, TagSyncSummary
from app.features.tag_sync.services.matcher import match_asset, summarize
from app.features.tag_sync.services.selection import MatchSelectionModel
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import TransportError, ValidationError
from app.services.ai_client import AIServiceClient

logger = get_logger(__name__)


class TagSyncService:
    """Holds the current preview and the operator's selection over it."""

    def __init__(
        self,
        client: AIServiceClient,
        iou_threshold: float | None = None,
        preview_limit: int | None = None,
    ):
        self._client = client
        self.iou_threshold = iou_threshold or settings.TAG_SYNC_IOU_THRESHOLD
        self.preview_limit = preview_limit or settings.TAG_SYNC_PREVIEW_LIMIT
        self.assets: list[AssetPreview] = []
        self.summary = TagSyncSummary()
        self.selection = MatchSelectionModel()
        self._lock = asyncio.Lock()

    async def load_preview(
        self, iou_threshold: float | None = None, limit: int | None = None
    ) -> dict[str, Any]:
        threshold = self.iou_threshold if iou_threshold is None else iou_threshold
        if not 0 < threshold <= 1:
            raise ValidationError(
                f"iou_threshold must be in (0, 1], got {threshold}", operation="preview_tag_sync"
            )
        limit = limit or self.preview_limit

        async with self._lock:
            data = await self._client.preview_tag_sync(threshold, limit)
            assets = [
                match_asset(AssetPreview.from_dict(raw), threshold)
                for raw in data.get("assets") or []
            ]

            self.iou_threshold = threshold
            self.assets = assets
            self.summary = summarize(assets)
            self.selection.load(match for asset in assets for match in asset.matches)

        logger.info(
            "Tag sync preview loaded",
            iou_threshold=threshold,
            limit=limit,
            **self.summary.to_dict(),
        )
        return self.to_dict()

    def toggle(self, manual_tag_id: str, ai_face_id: str) -> bool:
        return self.selection.toggle(manual_tag_id, ai_face_id)

    async def apply(self) -> dict[str, Any]:
        """
        Submit the selected pairs, then reload the preview.

        Raises:
            EmptySelection: Nothing selected; no request is made
            TransportError: The apply call failed
        """
        pairs = self.selection.apply()
        result = await self._client.apply_tag_sync(pairs)
        logger.info("Tag sync applied", submitted=len(pairs), applied=result.get("applied"))

        try:
            await self.load_preview(self.iou_threshold)
        except TransportError as e:
            logger.warning("Preview reload after apply failed", error=str(e))
        return {"submitted": len(pairs), "applied": result.get("applied", 0), "result": result}

    def review_cluster(self, cluster_id: str) -> None:
        self.selection.review_cluster(cluster_id)

    def exclude(self, asset_id: str, face_id: str) -> bool:
        return self.selection.exclude(asset_id, face_id)

    async def assign_cluster(
        self, cluster_id: str, contact_id: str, name: str | None = None
    ) -> dict[str, Any]:
        if not contact_id:
            raise ValidationError("contact_id is required", operation="assign_cluster")

        excluded = self.selection.excluded_for(cluster_id)
        result = await self._client.assign_cluster(
            cluster_id, contact_id, name=name, exclude_face_ids=excluded or None
        )
        logger.info(
            "Cluster assigned",
            cluster_id=cluster_id,
            contact_id=contact_id,
            excluded_faces=len(excluded),
        )
        return result

    def to_dict(self) -> dict[str, Any]:
        assets = []
        for asset in self.assets:
            data = asset.to_dict()
            for match, match_data in zip(asset.matches, data["matches"], strict=True):
                match_data["selection_state"] = self.selection.selection_state(match)
            assets.append(data)
        return {
            "iou_threshold": self.iou_threshold,
            "assets": assets,
            "summary": self.summary.to_dict(),
            "selected_count": len(self.selection.selected()),
        }
