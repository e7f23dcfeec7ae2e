"""
Service layer for the tag sync feature.
"""

from .geometry import is_normalized, require_dimensions, to_percent, to_percent_box
from .matcher import compute_iou, match_asset, match_tags, summarize
from .selection import ClusterExclusions, MatchSelectionModel
from .tag_sync_service import TagSyncService

__all__ = [
    "is_normalized",
    "require_dimensions",
    "to_percent",
    "to_percent_box",
    "compute_iou",
    "match_asset",
    "match_tags",
    "summarize",
    "ClusterExclusions",
    "MatchSelectionModel",
    "TagSyncService",
]
