"""
Domain models for tag sync: manual face tags, AI face detections and the
geometric matches between them.

Bounding boxes arrive either normalized (0-1) or in pixels; they are
stored as received and converted only when compared.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

MatchStatus = Literal["matched", "low_confidence"]


@dataclass(slots=True, frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoundingBox":
        return cls(
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(slots=True)
class ManualTag:
    """A face tag placed in the mobile app (or written back by a previous sync)."""

    tag_id: str
    contact_id: str
    bounding_box: BoundingBox
    contact_name: str | None = None
    tagged_by: dict[str, Any] | None = None

    @property
    def is_auto_matched(self) -> bool:
        """True when a previous auto-match produced this tag."""
        return bool((self.tagged_by or {}).get("source"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManualTag":
        return cls(
            tag_id=str(data["tag_id"]),
            contact_id=str(data.get("contact_id") or ""),
            bounding_box=BoundingBox.from_dict(data.get("bounding_box") or {}),
            contact_name=data.get("contact_name"),
            tagged_by=data.get("tagged_by") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag_id": self.tag_id,
            "contact_id": self.contact_id,
            "contact_name": self.contact_name,
            "bounding_box": self.bounding_box.to_dict(),
            "tagged_by": self.tagged_by,
            "is_auto_matched": self.is_auto_matched,
        }


@dataclass(slots=True)
class AIDetection:
    face_id: str
    bounding_box: BoundingBox
    cluster_id: str | None = None
    thumbnail_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIDetection":
        return cls(
            face_id=str(data["face_id"]),
            bounding_box=BoundingBox.from_dict(data.get("bounding_box") or {}),
            cluster_id=data.get("cluster_id"),
            thumbnail_url=data.get("thumbnail_url"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "face_id": self.face_id,
            "bounding_box": self.bounding_box.to_dict(),
            "cluster_id": self.cluster_id,
            "thumbnail_url": self.thumbnail_url,
        }


@dataclass(slots=True, frozen=True)
class TagMatch:
    manual_tag_id: str
    ai_face_id: str
    iou_score: float
    status: MatchStatus

    @property
    def key(self) -> tuple[str, str]:
        return (self.manual_tag_id, self.ai_face_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "manual_tag_id": self.manual_tag_id,
            "ai_face_id": self.ai_face_id,
            "iou_score": self.iou_score,
            "status": self.status,
        }


@dataclass(slots=True)
class AssetPreview:
    """One asset of a tag-sync preview with its locally computed matches."""

    asset_id: str
    manual_tags: list[ManualTag] = field(default_factory=list)
    ai_detections: list[AIDetection] = field(default_factory=list)
    matches: list[TagMatch] = field(default_factory=list)
    thumbnail_url: str | None = None
    image_width: int | None = None
    image_height: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetPreview":
        # Server-side matches are ignored; they are recomputed locally
        return cls(
            asset_id=str(data["asset_id"]),
            manual_tags=[ManualTag.from_dict(tag) for tag in data.get("manual_tags") or []],
            ai_detections=[AIDetection.from_dict(face) for face in data.get("ai_detections") or []],
            thumbnail_url=data.get("thumbnail_url"),
            image_width=data.get("image_width") or None,
            image_height=data.get("image_height") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "thumbnail_url": self.thumbnail_url,
            "image_width": self.image_width,
            "image_height": self.image_height,
            "manual_tags": [tag.to_dict() for tag in self.manual_tags],
            "ai_detections": [face.to_dict() for face in self.ai_detections],
            "matches": [match.to_dict() for match in self.matches],
        }


@dataclass(slots=True, frozen=True)
class TagSyncSummary:
    total_assets: int = 0
    total_manual_tags: int = 0
    manually_placed_tags: int = 0
    auto_matched_tags: int = 0
    total_ai_faces: int = 0
    matched: int = 0
    low_confidence: int = 0
    unmatched_manual: int = 0
    unmatched_ai: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_assets": self.total_assets,
            "total_manual_tags": self.total_manual_tags,
            "manually_placed_tags": self.manually_placed_tags,
            "auto_matched_tags": self.auto_matched_tags,
            "total_ai_faces": self.total_ai_faces,
            "matched": self.matched,
            "low_confidence": self.low_confidence,
            "unmatched_manual": self.unmatched_manual,
            "unmatched_ai": self.unmatched_ai,
        }
