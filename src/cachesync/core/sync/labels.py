"""
Priority to label mapping.

The values of the map form the managed label set: the only labels the sync
engine will ever add or remove.
"""

from collections.abc import Iterable, Mapping

from cachesync.core.config.models import DEFAULT_PRIORITY_LABELS
from cachesync.core.errors import UnknownPriorityError

from .models import LabelDiff


class PriorityLabelMap:
    """
    Maps a source priority to the label it implies.

    Example:
        >>> labels = PriorityLabelMap()
        >>> labels.desired_labels("High")
        {'High-Priority'}
        >>> labels.managed
        frozenset({'High-Priority', 'Medium-Priority', 'Low-Priority'})
    """

    def __init__(self, mapping: Mapping[str, str] | None = None) -> None:
        self.mapping = dict(mapping if mapping is not None else DEFAULT_PRIORITY_LABELS)
        if not self.mapping:
            raise ValueError("Priority label map must not be empty")

    @property
    def managed(self) -> frozenset[str]:
        """Labels this map may add or remove."""
        return frozenset(self.mapping.values())

    def desired_labels(self, priority: str | None) -> set[str]:
        """
        Labels an item with this priority should carry.

        Raises:
            UnknownPriorityError: If the priority has no mapping
        """
        if priority is None or not priority.strip():
            return set()
        label = self.mapping.get(priority.strip())
        if label is None:
            raise UnknownPriorityError(priority)
        return {label}

    def diff(self, current: Iterable[str], priority: str | None) -> LabelDiff:
        """Diff current labels against those implied by ``priority``."""
        return compute_label_diff(current, self.desired_labels(priority), self.managed)

    def __repr__(self) -> str:
        return f"PriorityLabelMap({self.mapping!r})"


def compute_label_diff(
    current: Iterable[str],
    desired: Iterable[str],
    managed: Iterable[str],
) -> LabelDiff:
    """
    Compute missing and obsolete labels restricted to the managed set.

    Example:
        >>> compute_label_diff({"A", "High-Priority"}, {"Medium-Priority"}, PriorityLabelMap().managed)
        LabelDiff(missing={'Medium-Priority'}, obsolete={'High-Priority'})
    """
    return LabelDiff.compute(current, desired, managed)
