"""
Operator selection over a tag-sync preview.

Two independent pieces of state:

* which emitted matches will be applied (``matched`` pairs start selected,
  ``low_confidence`` pairs start unselected);
* which faces are excluded from the cluster currently under review, sent
  along with a cluster assignment.
"""

from collections.abc import Iterable

from app.features.tag_sync.domain.models import TagMatch
from app.models.domain.errors import EmptySelection, ValidationError

MatchKey = tuple[str, str]


class ClusterExclusions:
    """Faces excluded from one cluster; reset whenever another cluster is reviewed."""

    def __init__(self):
        self.cluster_id: str | None = None
        self._excluded: dict[tuple[str, str], None] = {}

    def review(self, cluster_id: str) -> None:
        if cluster_id != self.cluster_id:
            self.cluster_id = cluster_id
            self._excluded.clear()

    def toggle(self, asset_id: str, face_id: str) -> bool:
        """Flip exclusion of one face; returns True if it is now excluded."""
        if self.cluster_id is None:
            raise ValidationError("No cluster under review", operation="exclude_face")
        key = (asset_id, face_id)
        if key in self._excluded:
            del self._excluded[key]
            return False
        self._excluded[key] = None
        return True

    def is_excluded(self, asset_id: str, face_id: str) -> bool:
        return (asset_id, face_id) in self._excluded

    def excluded_for(self, cluster_id: str) -> list[str]:
        """Face ids to submit with an assignment of ``cluster_id``."""
        if cluster_id != self.cluster_id:
            return []
        return [face_id for _, face_id in self._excluded]


class MatchSelectionModel:
    def __init__(self, matches: Iterable[TagMatch] = ()):
        self._matches: dict[MatchKey, TagMatch] = {}
        self._selected: set[MatchKey] = set()
        self.exclusions = ClusterExclusions()
        self.load(matches)

    def load(self, matches: Iterable[TagMatch]) -> None:
        """Start over from a fresh preview: select every ``matched`` pair."""
        self._matches = {match.key: match for match in matches}
        self._selected = {key for key, match in self._matches.items() if match.status == "matched"}

    @property
    def matches(self) -> list[TagMatch]:
        return list(self._matches.values())

    def toggle(self, manual_tag_id: str, ai_face_id: str) -> bool:
        """Flip one pair's selection; returns True if it is now selected."""
        key = (manual_tag_id, ai_face_id)
        if key not in self._matches:
            raise ValidationError(
                f"No match between tag {manual_tag_id} and face {ai_face_id}",
                operation="toggle_match",
            )
        if key in self._selected:
            self._selected.discard(key)
            return False
        self._selected.add(key)
        return True

    def is_selected(self, manual_tag_id: str, ai_face_id: str) -> bool:
        return (manual_tag_id, ai_face_id) in self._selected

    def selected(self) -> list[TagMatch]:
        return [match for key, match in self._matches.items() if key in self._selected]

    def selection_state(self, match: TagMatch) -> str:
        selected = match.key in self._selected
        if match.status == "matched":
            return "selected-match" if selected else "deselected-match"
        return "selected-low" if selected else "unselected-low"

    def apply(self) -> list[dict[str, str]]:
        """Selected pairs in request shape; raises EmptySelection if none."""
        pairs = [
            {"manual_tag_id": match.manual_tag_id, "ai_face_id": match.ai_face_id}
            for match in self.selected()
        ]
        if not pairs:
            raise EmptySelection()
        return pairs

    # Cluster review

    def review_cluster(self, cluster_id: str) -> None:
        self.exclusions.review(cluster_id)

    def exclude(self, asset_id: str, face_id: str) -> bool:
        return self.exclusions.toggle(asset_id, face_id)

    def excluded_for(self, cluster_id: str) -> list[str]:
        return self.exclusions.excluded_for(cluster_id)
