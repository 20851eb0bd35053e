"""Geospatial helpers: polygon rings, bounds, point-in-polygon."""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from .models import BBox, Polygon, Ring

KM_PER_DEG_LAT = 111.32


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def meters_to_degrees(meters: float, at_lat: float) -> Dict[str, float]:
    """Degree deltas (lat, lng) spanned by `meters` around latitude `at_lat`."""
    cos_lat = math.cos(math.radians(at_lat))
    if abs(cos_lat) < 1e-3:
        cos_lat = 1e-3
    km = meters / 1000.0
    return {"lat": km / KM_PER_DEG_LAT, "lng": km / (KM_PER_DEG_LAT * cos_lat)}


def geometry_to_polygons(geometry: Optional[Dict[str, Any]]) -> List[Polygon]:
    """Convert a GeoJSON Polygon/MultiPolygon into polygons of (lat, lng) rings.

    Ring 0 of each polygon is the outer boundary, the rest are holes. Anything
    else (missing geometry, points, lines) yields an empty list.
    """
    if not geometry:
        return []
    if geometry.get("type") == "Feature":
        geometry = geometry.get("geometry") or {}
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if gtype == "Polygon":
        raw_polygons = [coords]
    elif gtype == "MultiPolygon":
        raw_polygons = coords
    else:
        return []

    polygons: List[Polygon] = []
    for raw in raw_polygons:
        rings: Polygon = []
        for raw_ring in raw or []:
            ring: Ring = []
            for pos in raw_ring or []:
                if len(pos) < 2:
                    continue
                ring.append((float(pos[1]), float(pos[0])))
            if len(ring) >= 3:
                rings.append(ring)
        if rings:
            polygons.append(rings)
    return polygons


def rings_of(polygons: Sequence[Polygon]) -> List[Ring]:
    rings: List[Ring] = []
    for poly in polygons:
        rings.extend(poly)
    return rings


def bounds_of(polygons: Sequence[Polygon]) -> Optional[BBox]:
    """Axis-aligned bounds over every ring; None for empty geometry."""
    lat_min = lng_min = math.inf
    lat_max = lng_max = -math.inf
    for ring in rings_of(polygons):
        for lat, lng in ring:
            lat_min = min(lat_min, lat)
            lat_max = max(lat_max, lat)
            lng_min = min(lng_min, lng)
            lng_max = max(lng_max, lng)
    if lat_min > lat_max or lng_min > lng_max:
        return None
    return BBox(south=lat_min, west=lng_min, north=lat_max, east=lng_max)


def point_in_ring(lat: float, lng: float, ring: Ring) -> bool:
    # even-odd ray casting along the longitude axis
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        yi, xi = ring[i]
        yj, xj = ring[j]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(lat: float, lng: float, polygon: Polygon) -> bool:
    if not polygon:
        return False
    if not point_in_ring(lat, lng, polygon[0]):
        return False
    for hole in polygon[1:]:
        if point_in_ring(lat, lng, hole):
            return False
    return True


def point_in_polygons(lat: float, lng: float, polygons: Sequence[Polygon]) -> bool:
    for polygon in polygons:
        if point_in_polygon(lat, lng, polygon):
            return True
    return False
