"""
Domain models for the tag sync feature.
"""

from .models import AIDetection, AssetPreview, BoundingBox, ManualTag, TagMatch, TagSyncSummary

__all__ = ["AIDetection", "AssetPreview", "BoundingBox", "ManualTag", "TagMatch", "TagSyncSummary"]
