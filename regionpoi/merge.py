"""Result merger: clip to the region polygon, score, classify, deduplicate."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .categories import CategoryRule, build_rules, classify
from .geo import point_in_polygons
from .models import ClassifiedPoint, Polygon, RawResult
from .scoring import score_result

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Bez nazwy"


@dataclass
class MergeStats:
    received: int = 0
    outside_region: int = 0
    unclassified: int = 0
    duplicates: int = 0
    replaced: int = 0


def _tiebreak_key(point: ClassifiedPoint) -> Tuple[str, str, float, float, str, str, str]:
    return (
        point.category,
        point.name,
        point.lat,
        point.lng,
        point.url or "",
        point.description or "",
        point.thumbnail or "",
    )


def point_sort_key(point: ClassifiedPoint) -> Tuple[float, str]:
    return (-point.score, point.id)


class ResultMerger:
    """Single aggregation point for every worker's raw results.

    Insertions hold a lock, so workers may call add() concurrently. A duplicate
    identifier replaces the kept entry only with a strictly higher score; equal
    scores fall back to a fixed field ordering so arrival order never matters.
    """

    def __init__(self, polygons: Sequence[Polygon], rules: Optional[List[CategoryRule]] = None) -> None:
        self.polygons = list(polygons)
        self.rules = rules if rules is not None else build_rules()
        self.stats = MergeStats()
        self._points: Dict[str, ClassifiedPoint] = {}
        self._lock = threading.Lock()

    def _to_point(self, raw: RawResult) -> Optional[ClassifiedPoint]:
        try:
            category = classify(raw, self.rules)
            if category is None:
                return None
            score = score_result(raw)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Dropping malformed record %s: %s", getattr(raw, "id", None), exc)
            return None
        return ClassifiedPoint(
            id=raw.id,
            lat=raw.lat,
            lng=raw.lng,
            name=(raw.title or raw.tags.get("name") or DEFAULT_NAME).strip() or DEFAULT_NAME,
            category=category,
            score=score,
            description=raw.description,
            thumbnail=raw.thumbnail,
            url=raw.url,
        )

    def add(self, raw: RawResult) -> bool:
        """Merge one record; True if it is now the kept entry for its id."""
        if not point_in_polygons(raw.lat, raw.lng, self.polygons):
            with self._lock:
                self.stats.received += 1
                self.stats.outside_region += 1
            return False
        point = self._to_point(raw)
        with self._lock:
            self.stats.received += 1
            if point is None:
                self.stats.unclassified += 1
                return False
            existing = self._points.get(point.id)
            if existing is None:
                self._points[point.id] = point
                return True
            self.stats.duplicates += 1
            if point.score > existing.score or (
                point.score == existing.score and _tiebreak_key(point) < _tiebreak_key(existing)
            ):
                self._points[point.id] = point
                self.stats.replaced += 1
                return True
            return False

    def add_many(self, raws: Iterable[RawResult]) -> int:
        kept = 0
        for raw in raws:
            if self.add(raw):
                kept += 1
        return kept

    def results(self) -> List[ClassifiedPoint]:
        """Every kept point, score descending (ties by id)."""
        with self._lock:
            points = list(self._points.values())
        return sorted(points, key=point_sort_key)


def merge_results(
    raws: Iterable[RawResult],
    polygons: Sequence[Polygon],
    rules: Optional[List[CategoryRule]] = None,
) -> List[ClassifiedPoint]:
    merger = ResultMerger(polygons, rules=rules)
    merger.add_many(raws)
    return merger.results()
