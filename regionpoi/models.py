"""Record types shared across the discovery stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Ring = List[Tuple[float, float]]
Polygon = List[Ring]


@dataclass(frozen=True)
class BBox:
    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)


@dataclass(frozen=True)
class Region:
    """A selectable area: stable name, polygons of (lat, lng) rings, derived bbox."""

    name: str
    polygons: Tuple[Polygon, ...]
    bbox: Optional[BBox]
    fingerprint: str = ""

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class RawResult:
    """One backend record, validated at ingestion.

    Optional fields default to empty values so that scoring and classification
    never need to guard for missing keys.
    """

    id: str
    lat: float
    lng: float
    tags: Dict[str, str] = field(default_factory=dict)
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    url: Optional[str] = None
    categories: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassifiedPoint:
    id: str
    lat: float
    lng: float
    name: str
    category: str
    score: float
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "score": self.score,
            "lat": self.lat,
            "lng": self.lng,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "url": self.url,
        }
