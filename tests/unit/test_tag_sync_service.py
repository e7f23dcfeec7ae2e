"""
Tests for the tag sync workflow service.
"""

from unittest.mock import AsyncMock

import pytest

from app.features.tag_sync.services.tag_sync_service import TagSyncService
from app.models.domain.errors import EmptySelection, TransportError, ValidationError

PREVIEW = {
    "assets": [
        {
            "asset_id": "asset-1",
            "image_width": 400,
            "image_height": 200,
            "manual_tags": [
                {
                    "tag_id": "t-1",
                    "contact_id": "c-1",
                    "contact_name": "Ana",
                    "bounding_box": {"x": 0.25, "y": 0.25, "width": 0.5, "height": 0.5},
                },
                {
                    "tag_id": "t-2",
                    "contact_id": "c-2",
                    "bounding_box": {"x": 0, "y": 0, "width": 0.5, "height": 0.5},
                    "tagged_by": {"source": "tag_sync"},
                },
            ],
            "ai_detections": [
                {"face_id": "f-1", "bounding_box": {"x": 100, "y": 50, "width": 200, "height": 100}},
            ],
            # Server-side matches are recomputed locally
            "matches": [
                {"manual_tag_id": "t-9", "ai_face_id": "f-9", "iou_score": 1, "status": "matched"}
            ],
        }
    ],
    "summary": {"total_assets": 1},
}


@pytest.fixture
def client():
    client = AsyncMock()
    client.preview_tag_sync.return_value = PREVIEW
    client.apply_tag_sync.return_value = {"applied": 1}
    client.assign_cluster.return_value = {"assigned": 3}
    return client


@pytest.mark.asyncio
async def test_load_preview_recomputes_matches(client):
    service = TagSyncService(client, iou_threshold=0.4, preview_limit=200)

    preview = await service.load_preview()

    client.preview_tag_sync.assert_awaited_once_with(0.4, 200)
    matches = preview["assets"][0]["matches"]
    # t-1 matches f-1 exactly; t-2 vs f-1 scores 1/7, below the low floor
    assert [(m["manual_tag_id"], m["status"]) for m in matches] == [("t-1", "matched")]
    assert matches[0]["selection_state"] == "selected-match"
    assert preview["summary"]["auto_matched_tags"] == 1
    assert preview["summary"]["unmatched_manual"] == 1
    assert preview["selected_count"] == 1


@pytest.mark.asyncio
async def test_apply_submits_selection_and_reloads(client):
    service = TagSyncService(client)
    await service.load_preview(0.4)

    result = await service.apply()

    client.apply_tag_sync.assert_awaited_once_with([{"manual_tag_id": "t-1", "ai_face_id": "f-1"}])
    assert result["applied"] == 1
    assert client.preview_tag_sync.await_count == 2


@pytest.mark.asyncio
async def test_apply_with_empty_selection_makes_no_request(client):
    service = TagSyncService(client)
    await service.load_preview(0.4)
    service.toggle("t-1", "f-1")

    with pytest.raises(EmptySelection):
        await service.apply()

    client.apply_tag_sync.assert_not_awaited()


@pytest.mark.asyncio
async def test_apply_survives_failed_reload(client):
    service = TagSyncService(client)
    await service.load_preview(0.4)
    client.preview_tag_sync.side_effect = TransportError("down")

    result = await service.apply()

    assert result["submitted"] == 1


@pytest.mark.asyncio
async def test_assign_cluster_sends_exclusions(client):
    service = TagSyncService(client)
    service.review_cluster("cluster-1")
    service.exclude("asset-1", "f-1")

    await service.assign_cluster("cluster-1", "c-1", name="Ana")

    client.assign_cluster.assert_awaited_once_with(
        "cluster-1", "c-1", name="Ana", exclude_face_ids=["f-1"]
    )


@pytest.mark.asyncio
async def test_assign_other_cluster_sends_no_exclusions(client):
    service = TagSyncService(client)
    service.review_cluster("cluster-1")
    service.exclude("asset-1", "f-1")

    await service.assign_cluster("cluster-2", "c-1")

    client.assign_cluster.assert_awaited_once_with(
        "cluster-2", "c-1", name=None, exclude_face_ids=None
    )


@pytest.mark.asyncio
async def test_invalid_threshold_rejected_before_request(client):
    service = TagSyncService(client)

    with pytest.raises(ValidationError):
        await service.load_preview(1.5)

    client.preview_tag_sync.assert_not_awaited()
