"""
Geometric matching of manual face tags to AI face detections.

Pairs are scored by intersection-over-union in percentage space:

* ``iou >= threshold``                   -> matched
* ``threshold / 2 < iou < threshold``    -> low_confidence
* otherwise                              -> not emitted

Every qualifying pair is emitted, so one tag can match several faces.
Deciding between them is left to the operator's selection.
"""

from collections.abc import Iterable
from dataclasses import fields

from app.features.tag_sync.domain.models import (
    AIDetection,
    AssetPreview,
    BoundingBox,
    ManualTag,
    TagMatch,
    TagSyncSummary,
)
from app.features.tag_sync.services.geometry import to_percent_box
from app.models.domain.errors import ValidationError


def compute_iou(a: BoundingBox, b: BoundingBox) -> float:
    """IoU of two boxes in the same unit space; zero-area boxes score 0."""
    if a.width <= 0 or a.height <= 0 or b.width <= 0 or b.height <= 0:
        return 0.0

    left = max(a.x, b.x)
    top = max(a.y, b.y)
    right = min(a.x + a.width, b.x + b.width)
    bottom = min(a.y + a.height, b.y + b.height)

    if right <= left or bottom <= top:
        return 0.0

    intersection = (right - left) * (bottom - top)
    union = a.width * a.height + b.width * b.height - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def match_tags(
    manual_tags: list[ManualTag],
    ai_detections: list[AIDetection],
    iou_threshold: float,
    image_width: int | None = None,
    image_height: int | None = None,
) -> list[TagMatch]:
    """
    Score every (manual tag, detection) pair of one asset.

    Output order follows manual-tag order, then detection order. Inputs are
    not modified.
    """
    if not 0 < iou_threshold <= 1:
        raise ValidationError(
            f"iou_threshold must be in (0, 1], got {iou_threshold}", operation="match_tags"
        )

    low_floor = iou_threshold / 2
    faces = [
        (face, to_percent_box(face.bounding_box, image_width, image_height))
        for face in ai_detections
    ]

    matches: list[TagMatch] = []
    for tag in manual_tags:
        tag_box = to_percent_box(tag.bounding_box, image_width, image_height)
        for face, face_box in faces:
            # Classify on the reported score so the status agrees with iou_score
            score = round(compute_iou(tag_box, face_box), 4)
            if score >= iou_threshold:
                status = "matched"
            elif score > low_floor:
                status = "low_confidence"
            else:
                continue
            matches.append(
                TagMatch(
                    manual_tag_id=tag.tag_id,
                    ai_face_id=face.face_id,
                    iou_score=score,
                    status=status,
                )
            )
    return matches


def match_asset(asset: AssetPreview, iou_threshold: float) -> AssetPreview:
    """Fill ``asset.matches`` from its tags and detections."""
    asset.matches = match_tags(
        asset.manual_tags,
        asset.ai_detections,
        iou_threshold,
        image_width=asset.image_width,
        image_height=asset.image_height,
    )
    return asset


def summarize(assets: Iterable[AssetPreview]) -> TagSyncSummary:
    """
    Preview summary counts. A tag or face that appears in no emitted pair
    is counted as unmatched.
    """
    counts = dict.fromkeys((f.name for f in fields(TagSyncSummary)), 0)
    for asset in assets:
        counts["total_assets"] += 1
        counts["total_manual_tags"] += len(asset.manual_tags)
        counts["total_ai_faces"] += len(asset.ai_detections)

        auto = sum(1 for tag in asset.manual_tags if tag.is_auto_matched)
        counts["auto_matched_tags"] += auto
        counts["manually_placed_tags"] += len(asset.manual_tags) - auto

        paired_tags = {match.manual_tag_id for match in asset.matches}
        paired_faces = {match.ai_face_id for match in asset.matches}
        counts["matched"] += sum(1 for match in asset.matches if match.status == "matched")
        counts["low_confidence"] += sum(
            1 for match in asset.matches if match.status == "low_confidence"
        )
        counts["unmatched_manual"] += sum(
            1 for tag in asset.manual_tags if tag.tag_id not in paired_tags
        )
        counts["unmatched_ai"] += sum(
            1 for face in asset.ai_detections if face.face_id not in paired_faces
        )
    return TagSyncSummary(**counts)
