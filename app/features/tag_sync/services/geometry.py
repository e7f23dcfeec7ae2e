"""
Bounding-box unit handling.

Manual tags are stored normalized (0-1); AI detections may come back in
pixels. Every box is converted to a 0-100 percentage space before two
boxes are compared or rendered together.
"""

from app.features.tag_sync.domain.models import BoundingBox
from app.models.domain.errors import MissingImageDimension


def is_normalized(box: BoundingBox) -> bool:
    """
    A box is normalized iff all four fields are <= 1.

    The unit is decided once per box, never per field. A genuinely tiny
    pixel box (all values <= 1px) is misread as normalized.
    """
    return box.x <= 1 and box.y <= 1 and box.width <= 1 and box.height <= 1


def to_percent(value: float, dimension: int | None, normalized: bool) -> float:
    if normalized:
        return value * 100
    if not dimension:
        return 0.0
    return value / dimension * 100


def to_percent_box(
    box: BoundingBox, image_width: int | None = None, image_height: int | None = None
) -> BoundingBox:
    normalized = is_normalized(box)
    return BoundingBox(
        x=to_percent(box.x, image_width, normalized),
        y=to_percent(box.y, image_height, normalized),
        width=to_percent(box.width, image_width, normalized),
        height=to_percent(box.height, image_height, normalized),
    )


def require_dimensions(
    box: BoundingBox, image_width: int | None, image_height: int | None
) -> None:
    """Raise MissingImageDimension if a pixel box cannot be converted faithfully."""
    if is_normalized(box):
        return
    if not image_width:
        raise MissingImageDimension("width")
    if not image_height:
        raise MissingImageDimension("height")
