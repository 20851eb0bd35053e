"""Region source: named polygons from a GeoJSON FeatureCollection."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cache import make_geometry_fingerprint
from .geo import bounds_of, geometry_to_polygons
from .models import Region

logger = logging.getLogger(__name__)

NAME_PROPERTIES = ("name", "NAME_1", "woj")
DEFAULT_REGION_NAME = "Województwo"


def feature_name(feature: Dict[str, Any]) -> str:
    props = feature.get("properties") or {}
    for key in NAME_PROPERTIES:
        value = props.get(key)
        if value:
            return str(value)
    return DEFAULT_REGION_NAME


def region_from_feature(feature: Dict[str, Any], name: Optional[str] = None) -> Region:
    polygons = geometry_to_polygons(feature.get("geometry"))
    return Region(
        name=name or feature_name(feature),
        polygons=tuple(polygons),
        bbox=bounds_of(polygons),
        fingerprint=make_geometry_fingerprint(polygons),
    )


def load_regions(path: str) -> List[Region]:
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)
    features = data.get("features") or []
    regions = [region_from_feature(feature) for feature in features if isinstance(feature, dict)]
    empty = [r.name for r in regions if r.bbox is None]
    if empty:
        logger.warning("Regions without usable geometry: %s", ", ".join(empty))
    return sorted(regions, key=lambda r: r.name.casefold())


def find_region(regions: List[Region], name: str) -> Optional[Region]:
    wanted = name.strip().casefold()
    for region in regions:
        if region.name.casefold() == wanted:
            return region
    return None
