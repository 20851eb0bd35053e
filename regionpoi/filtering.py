"""Category filter and per-category limiter over cached points."""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from .merge import point_sort_key
from .models import ClassifiedPoint


def filter_and_limit(
    all_points: Sequence[ClassifiedPoint],
    active_categories: Iterable[str],
    per_category_cap: int,
) -> List[ClassifiedPoint]:
    """Top `per_category_cap` points of each active category, score descending.

    Pure: the input sequence is not modified.
    """
    active = set(active_categories)
    cap = max(0, int(per_category_cap))
    if not active or cap == 0:
        return []

    partitions: Dict[str, List[ClassifiedPoint]] = {}
    for point in all_points:
        if point.category in active:
            partitions.setdefault(point.category, []).append(point)

    selected: List[ClassifiedPoint] = []
    for category in sorted(partitions):
        ranked = sorted(partitions[category], key=point_sort_key)
        selected.extend(ranked[:cap])
    return sorted(selected, key=point_sort_key)


def count_by_category(points: Iterable[ClassifiedPoint]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for point in points:
        counts[point.category] = counts.get(point.category, 0) + 1
    return counts
