"""Project configuration.

Loads user-defined discovery parameters from poi_config.json when available,
falling back to sensible defaults. Keep backend request shapes centralized here.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- Backend endpoints (tried in order) ---

OVERPASS_ENDPOINTS: List[str] = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.private.coffee/api/interpreter",
]
WIKI_ENDPOINTS: List[str] = [
    "https://pl.wikipedia.org/w/api.php",
    "https://pl.m.wikipedia.org/w/api.php",
]
WIKI_ARTICLE_URL = "https://pl.wikipedia.org/?curid={pageid}"
OSM_OBJECT_URL = "https://www.openstreetmap.org/{osm_type}/{osm_id}"

USER_AGENT = "regionpoi/0.1 (region POI discovery)"

# --- Categories ---

CATEGORIES: List[str] = ["landmark", "church", "nature", "mountain"]

# Overpass tag filters per category. The region cache holds the unfiltered set,
# so every category is always queried.
OVERPASS_FILTERS: Dict[str, List[str]] = {
    "landmark": [
        'node["name"]["tourism"="attraction"]',
        'node["name"]["tourism"="museum"]',
        'node["name"]["historic"]',
        'node["name"]["memorial"]',
    ],
    "church": ['node["name"]["amenity"="place_of_worship"]'],
    "nature": [
        'node["name"]["tourism"="viewpoint"]',
        'node["name"]["natural"="spring"]',
    ],
    "mountain": ['node["name"]["natural"="peak"]'],
}
OVERPASS_QUERY_TIMEOUT_S = 20

# --- Classification rules (first match wins) ---
# Tag values of "*" match any non-empty value.

CATEGORY_RULES: List[Dict[str, Any]] = [
    {
        "category": "church",
        "tags": {"amenity": ["place_of_worship"], "building": ["church", "chapel", "cathedral"]},
        "title_prefixes": [
            "kościół", "bazylika", "katedra", "kolegiata", "cerkiew", "kaplica",
            "sanktuarium", "klasztor", "opactwo", "synagoga", "zbór",
        ],
        "category_keywords": [
            "kościoły", "cerkwie", "kaplice", "klasztory", "sanktuaria", "synagogi",
            "bazyliki", "katedry",
        ],
    },
    {
        "category": "mountain",
        "tags": {"natural": ["peak", "volcano", "ridge"]},
        "title_prefixes": ["góra ", "szczyt ", "wzgórze "],
        "category_keywords": ["szczyty", "góry ", "wzniesienia", "pasma górskie"],
    },
    {
        "category": "nature",
        "tags": {
            "tourism": ["viewpoint"],
            "natural": ["spring", "waterfall", "cave_entrance", "tree"],
            "leisure": ["nature_reserve"],
            "boundary": ["national_park"],
        },
        "title_prefixes": ["rezerwat przyrody", "jezioro ", "wodospad ", "jaskinia "],
        "category_keywords": [
            "rezerwaty przyrody", "parki narodowe", "parki krajobrazowe", "jeziora",
            "wodospady", "jaskinie", "pomniki przyrody", "obszary natura 2000",
        ],
    },
    {
        "category": "landmark",
        "tags": {
            "tourism": ["attraction", "museum"],
            "historic": ["*"],
            "memorial": ["*"],
            "heritage": ["*"],
        },
        "title_prefixes": ["zamek ", "pałac ", "dwór ", "muzeum ", "twierdza ", "ratusz "],
        "category_keywords": [
            "zabytki", "zamki", "pałace", "dwory", "muzea", "twierdze", "ratusze",
            "pomniki", "fortyfikacje", "ruiny",
        ],
    },
]

# Index/list pages and administrative units never become points.
ADMIN_CATEGORY_PATTERNS: List[str] = [
    "miejscowości w",
    "wsie w",
    "miasta w",
    "gminy w",
    "powiaty w",
    "sołectwa w",
    "osiedla w",
    "dzielnice",
    "jednostki administracyjne",
]
ADMIN_TITLE_PREFIXES: List[str] = [
    "gmina ",
    "powiat ",
    "województwo ",
    "lista ",
    "sołectwo ",
]

# --- Scoring ---

# (tag key, accepted values or ["*"], weight)
SCORE_TAG_WEIGHTS: List[Any] = [
    ("wikipedia", ["*"], 4.0),
    ("wikidata", ["*"], 3.0),
    ("heritage", ["*"], 2.0),
    ("tourism", ["attraction", "museum"], 2.0),
    (("historic", "memorial"), ["*"], 1.0),
    ("amenity", ["place_of_worship"], 1.0),
    (("natural", "tourism"), ["peak", "viewpoint"], 1.0),
]
SCORE_HERITAGE_CATEGORY_KEYWORDS: List[str] = ["zabytki", "rejestr zabytków", "pomniki historii"]
SCORE_HERITAGE_CATEGORY_BONUS = 2.0
SCORE_THUMBNAIL_BONUS = 1.0
SCORE_DESCRIPTION_BONUS = 1.0

# --- Sampling ---

SAMPLING_MODE_TILES = "tiles"
SAMPLING_MODE_HEX = "hex"

TILE_ROWS = 4
TILE_COLS = 3

HEX_RADIUS_M = 10000.0
HEX_SPACING_FACTOR = 0.8
HEX_MIN_CENTERS = 24
HEX_SHRINK_FACTOR = 0.75
HEX_MAX_REFINEMENTS = 3

# --- Fetch ---

FETCH_CONCURRENCY = 5
CELL_RESULT_LIMIT = 100
WIKI_MAX_RADIUS_M = 10000
WIKI_MAX_LIMIT = 500
WIKI_THUMB_SIZE = 320

# --- Filter/limiter ---

PER_CATEGORY_CAP = 50

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20
HTTP_BACKOFF_BASE = 0.25
HTTP_BACKOFF_MAX = 8.0

# --- Outputs ---

OUTPUT_DIR = "out"
PROGRESS_LOG_EVERY = 5


@dataclass(frozen=True)
class SamplingConfig:
    mode: str = SAMPLING_MODE_TILES
    tile_rows: int = TILE_ROWS
    tile_cols: int = TILE_COLS
    hex_radius_m: float = HEX_RADIUS_M
    hex_min_centers: int = HEX_MIN_CENTERS
    hex_shrink_factor: float = HEX_SHRINK_FACTOR
    hex_max_refinements: int = HEX_MAX_REFINEMENTS


def load_search_config(path: Optional[str] = None) -> bool:
    """Load discovery configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "poi_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    endpoints = data.get("endpoints", {})
    if endpoints.get("overpass"):
        globals_ref["OVERPASS_ENDPOINTS"] = list(endpoints["overpass"])
    if endpoints.get("wikipedia"):
        globals_ref["WIKI_ENDPOINTS"] = list(endpoints["wikipedia"])

    sampling = data.get("sampling", {})
    if "tile_rows" in sampling:
        globals_ref["TILE_ROWS"] = int(sampling["tile_rows"])
    if "tile_cols" in sampling:
        globals_ref["TILE_COLS"] = int(sampling["tile_cols"])
    if "hex_radius_m" in sampling:
        globals_ref["HEX_RADIUS_M"] = float(sampling["hex_radius_m"])
    if "hex_min_centers" in sampling:
        globals_ref["HEX_MIN_CENTERS"] = int(sampling["hex_min_centers"])
    if "hex_shrink_factor" in sampling:
        globals_ref["HEX_SHRINK_FACTOR"] = float(sampling["hex_shrink_factor"])
    if "hex_max_refinements" in sampling:
        globals_ref["HEX_MAX_REFINEMENTS"] = int(sampling["hex_max_refinements"])

    fetch = data.get("fetch", {})
    if "concurrency" in fetch:
        globals_ref["FETCH_CONCURRENCY"] = max(1, int(fetch["concurrency"]))
    if "cell_result_limit" in fetch:
        globals_ref["CELL_RESULT_LIMIT"] = max(1, int(fetch["cell_result_limit"]))
    if "timeout_seconds" in fetch:
        globals_ref["HTTP_TIMEOUT_SECONDS"] = float(fetch["timeout_seconds"])

    if "per_category_cap" in data:
        globals_ref["PER_CATEGORY_CAP"] = max(0, int(data["per_category_cap"]))

    rules = data.get("category_rules")
    if rules:
        globals_ref["CATEGORY_RULES"] = list(rules)
    admin_patterns = data.get("admin_category_patterns")
    if admin_patterns:
        globals_ref["ADMIN_CATEGORY_PATTERNS"] = [str(p).lower() for p in admin_patterns]
    admin_prefixes = data.get("admin_title_prefixes")
    if admin_prefixes:
        globals_ref["ADMIN_TITLE_PREFIXES"] = [str(p).lower() for p in admin_prefixes]

    return True
