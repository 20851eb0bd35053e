"""In-memory region cache for discovered points."""
from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .models import ClassifiedPoint, Polygon

logger = logging.getLogger(__name__)


def make_geometry_fingerprint(polygons: Sequence[Polygon]) -> str:
    payload = json.dumps(
        [[[[round(lat, 7), round(lng, 7)] for lat, lng in ring] for ring in poly] for poly in polygons],
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    points: Tuple[ClassifiedPoint, ...]


class RegionCache:
    """Unfiltered, score-sorted points keyed by region.

    Written at most once per region unless invalidated; never evicted. Reads
    and writes share one lock, so a reader never sees a partial entry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, region_key: str, fingerprint: Optional[str] = None) -> Optional[List[ClassifiedPoint]]:
        """Cached points, or None. A fingerprint mismatch invalidates the entry."""
        with self._lock:
            entry = self._entries.get(region_key)
            if entry is not None and fingerprint and entry.fingerprint and entry.fingerprint != fingerprint:
                logger.info("Region %s geometry changed; invalidating cache entry", region_key)
                del self._entries[region_key]
                entry = None
            if entry is None:
                self.misses += 1
                return None
            self.hits += 1
            return list(entry.points)

    def put(
        self, region_key: str, points: Sequence[ClassifiedPoint], fingerprint: str = ""
    ) -> List[ClassifiedPoint]:
        """Store points unless an entry exists; returns the entry in effect."""
        with self._lock:
            existing = self._entries.get(region_key)
            if existing is not None:
                return list(existing.points)
            entry = CacheEntry(fingerprint=fingerprint, points=tuple(points))
            self._entries[region_key] = entry
            logger.info("Cached %s points for region %s", len(entry.points), region_key)
            return list(entry.points)

    def contains(self, region_key: str) -> bool:
        with self._lock:
            return region_key in self._entries

    def invalidate(self, region_key: str) -> bool:
        with self._lock:
            return self._entries.pop(region_key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
