"""
Tag sync feature package.

Matches manual face tags from the mobile app against AI face detections,
lets an operator review the matches and applies the confirmed ones.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as tag_sync_router  # noqa: F401
from .services.tag_sync_service import TagSyncService  # noqa: F401
from .services.matcher import compute_iou, match_tags, summarize  # noqa: F401
from .domain.models import BoundingBox, ManualTag, AIDetection, TagMatch  # noqa: F401
