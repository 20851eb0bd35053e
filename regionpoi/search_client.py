"""Search backends (Overpass, Wikipedia geosearch) and response parsing."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from . import config
from .coverage import Cell
from .http import CancelToken, HttpClient
from .models import RawResult


class SearchBackend:
    """search(cell, token) -> list of RawResult; may raise SearchError/FetchCancelled."""

    name = "base"
    sampling_mode = config.SAMPLING_MODE_TILES

    def search(self, cell: Cell, token: Optional[CancelToken] = None) -> List[RawResult]:
        raise NotImplementedError


class OverpassBackend(SearchBackend):
    name = "overpass"
    sampling_mode = config.SAMPLING_MODE_TILES

    def __init__(
        self,
        http_client: HttpClient,
        endpoints: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.http = http_client
        self.endpoints = list(endpoints) if endpoints else list(config.OVERPASS_ENDPOINTS)
        self.limit = limit

    def search(self, cell: Cell, token: Optional[CancelToken] = None) -> List[RawResult]:
        query = build_overpass_query(cell, self.limit or config.CELL_RESULT_LIMIT)
        response = self.http.post_form(self.endpoints, {"data": query}, token)
        return parse_overpass_response(response)


class WikipediaGeoBackend(SearchBackend):
    name = "wikipedia"
    sampling_mode = config.SAMPLING_MODE_HEX

    def __init__(
        self,
        http_client: HttpClient,
        endpoints: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.http = http_client
        self.endpoints = list(endpoints) if endpoints else list(config.WIKI_ENDPOINTS)
        self.limit = limit

    def search(self, cell: Cell, token: Optional[CancelToken] = None) -> List[RawResult]:
        params = build_geosearch_params(cell, self.limit or config.CELL_RESULT_LIMIT)
        response = self.http.get_json(self.endpoints, params, token)
        return parse_geosearch_response(response)


def build_overpass_query(cell: Cell, limit: int) -> str:
    if cell.bbox is not None:
        area = f"({cell.bbox.south},{cell.bbox.west},{cell.bbox.north},{cell.bbox.east})"
    else:
        radius = int(cell.radius_m or config.HEX_RADIUS_M)
        area = f"(around:{radius},{cell.lat},{cell.lng})"

    patterns: List[str] = []
    for category in config.CATEGORIES:
        for pattern in config.OVERPASS_FILTERS.get(category, []):
            if pattern not in patterns:
                patterns.append(pattern)
    body = "\n".join(f"  {p}{area};" for p in patterns)
    return (
        f"[out:json][timeout:{config.OVERPASS_QUERY_TIMEOUT_S}];\n"
        f"(\n{body}\n);\n"
        f"out tags center qt {max(1, int(limit))};"
    )


def build_geosearch_params(cell: Cell, limit: int) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "action": "query",
        "format": "json",
        "formatversion": 2,
        "generator": "geosearch",
        "ggslimit": min(max(1, int(limit)), config.WIKI_MAX_LIMIT),
        "ggsnamespace": 0,
        "prop": "coordinates|pageimages|description|categories|pageprops|info",
        "inprop": "url",
        "piprop": "thumbnail",
        "pithumbsize": config.WIKI_THUMB_SIZE,
        "pilimit": "max",
        "cllimit": "max",
        "clshow": "!hidden",
        "colimit": "max",
        "ppprop": "wikibase_item",
    }
    if cell.bbox is not None:
        # top|left|bottom|right
        params["ggsbbox"] = f"{cell.bbox.north}|{cell.bbox.west}|{cell.bbox.south}|{cell.bbox.east}"
    else:
        radius = int(min(cell.radius_m or config.WIKI_MAX_RADIUS_M, config.WIKI_MAX_RADIUS_M))
        params["ggscoord"] = f"{cell.lat}|{cell.lng}"
        params["ggsradius"] = max(10, radius)
    return params


# Adapters/mappers for backend response fields

def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_overpass_response(response: Dict[str, Any]) -> List[RawResult]:
    elements = response.get("elements") or []
    parsed: List[RawResult] = []
    for el in elements:
        if not isinstance(el, dict):
            continue
        osm_type = el.get("type") or "node"
        osm_id = el.get("id")
        if osm_id is None:
            continue
        center = el.get("center") or {}
        lat = _to_float(el.get("lat"))
        lng = _to_float(el.get("lon"))
        if lat is None or lng is None:
            lat = _to_float(center.get("lat"))
            lng = _to_float(center.get("lon"))
        if lat is None or lng is None:
            continue
        raw_tags = el.get("tags") or {}
        tags = {str(k): str(v) for k, v in raw_tags.items() if v is not None} if isinstance(raw_tags, dict) else {}
        parsed.append(
            RawResult(
                id=f"{osm_type}/{osm_id}",
                lat=lat,
                lng=lng,
                tags=tags,
                title=tags.get("name"),
                description=tags.get("description"),
                thumbnail=tags.get("image"),
                url=config.OSM_OBJECT_URL.format(osm_type=osm_type, osm_id=osm_id),
            )
        )
    return parsed


def parse_geosearch_response(response: Dict[str, Any]) -> List[RawResult]:
    query = response.get("query") or {}
    pages = query.get("pages") or []
    if isinstance(pages, dict):
        # formatversion=1 keys pages by id
        pages = list(pages.values())
    parsed: List[RawResult] = []
    for page in pages:
        if not isinstance(page, dict):
            continue
        pageid = page.get("pageid")
        if pageid is None:
            continue
        coords = page.get("coordinates") or []
        first = coords[0] if coords and isinstance(coords[0], dict) else {}
        lat = _to_float(first.get("lat"))
        lng = _to_float(first.get("lon"))
        if lat is None or lng is None:
            continue
        title = page.get("title")
        tags: Dict[str, str] = {}
        if title:
            tags["wikipedia"] = f"pl:{title}"
        wikibase_item = (page.get("pageprops") or {}).get("wikibase_item")
        if wikibase_item:
            tags["wikidata"] = str(wikibase_item)
        categories = tuple(
            str(c.get("title"))
            for c in page.get("categories") or []
            if isinstance(c, dict) and c.get("title")
        )
        thumbnail = (page.get("thumbnail") or {}).get("source")
        parsed.append(
            RawResult(
                id=str(pageid),
                lat=lat,
                lng=lng,
                tags=tags,
                title=title,
                description=page.get("description"),
                thumbnail=thumbnail,
                url=page.get("fullurl") or config.WIKI_ARTICLE_URL.format(pageid=pageid),
                categories=categories,
            )
        )
    return parsed
