from regionpoi import config
from regionpoi.coverage import Cell
from regionpoi.models import BBox
from regionpoi.search_client import (
    OverpassBackend,
    WikipediaGeoBackend,
    build_geosearch_params,
    build_overpass_query,
    parse_geosearch_response,
    parse_overpass_response,
)


def test_parse_overpass_missing_fields():
    response = {
        "elements": [
            {"type": "node", "id": 1, "lat": 50.1, "lon": 19.9, "tags": {"name": "Wawel", "historic": "castle"}},
            {"type": "way", "id": 2, "center": {"lat": 50.2, "lon": 19.8}, "tags": {"name": "Kościół"}},
            {"type": "node", "id": 3},
            {"type": "node", "lat": 50.0, "lon": 19.0},
            {"type": "node", "id": 4, "lat": "bad", "lon": 19.0},
        ]
    }
    parsed = parse_overpass_response(response)
    assert [r.id for r in parsed] == ["node/1", "way/2"]
    assert parsed[0].title == "Wawel"
    assert parsed[0].tags["historic"] == "castle"
    assert parsed[0].url == "https://www.openstreetmap.org/node/1"
    assert (parsed[1].lat, parsed[1].lng) == (50.2, 19.8)
    assert parse_overpass_response({}) == []


def test_parse_geosearch_pages():
    response = {
        "query": {
            "pages": [
                {
                    "pageid": 101,
                    "title": "Kościół Mariacki w Krakowie",
                    "coordinates": [{"lat": 50.0616, "lon": 19.9394}],
                    "description": "kościół w Krakowie",
                    "thumbnail": {"source": "https://upload.example/thumb.jpg"},
                    "categories": [{"title": "Kategoria:Kościoły w Krakowie"}],
                    "pageprops": {"wikibase_item": "Q1"},
                    "fullurl": "https://pl.wikipedia.org/wiki/Ko%C5%9Bci%C3%B3%C5%82_Mariacki",
                },
                {"pageid": 102, "title": "No coords"},
                {"title": "No id", "coordinates": [{"lat": 1, "lon": 2}]},
            ]
        }
    }
    parsed = parse_geosearch_response(response)
    assert len(parsed) == 1
    page = parsed[0]
    assert page.id == "101"
    assert page.tags == {"wikipedia": "pl:Kościół Mariacki w Krakowie", "wikidata": "Q1"}
    assert page.categories == ("Kategoria:Kościoły w Krakowie",)
    assert page.thumbnail == "https://upload.example/thumb.jpg"
    assert page.url.startswith("https://pl.wikipedia.org/wiki/")


def test_parse_geosearch_formatversion_1_and_default_url():
    response = {"query": {"pages": {"7": {"pageid": 7, "title": "Giewont", "coordinates": [{"lat": 49.25, "lon": 19.93}]}}}}
    parsed = parse_geosearch_response(response)
    assert parsed[0].url == "https://pl.wikipedia.org/?curid=7"
    assert "wikidata" not in parsed[0].tags


def test_overpass_query_covers_every_category_for_bbox_cell():
    cell = Cell(index=0, lat=50.5, lng=19.5, bbox=BBox(50.0, 19.0, 51.0, 20.0))
    query = build_overpass_query(cell, 40)
    assert query.startswith("[out:json]")
    assert '(50.0,19.0,51.0,20.0);' in query
    for patterns in config.OVERPASS_FILTERS.values():
        for pattern in patterns:
            assert pattern in query
    assert query.rstrip().endswith("out tags center qt 40;")


def test_geosearch_params_radius_and_bbox():
    radius_cell = Cell(index=0, lat=50.0, lng=19.0, radius_m=25000)
    params = build_geosearch_params(radius_cell, 1000)
    assert params["ggscoord"] == "50.0|19.0"
    assert params["ggsradius"] == config.WIKI_MAX_RADIUS_M
    assert params["ggslimit"] == config.WIKI_MAX_LIMIT
    assert "ggsbbox" not in params

    box_cell = Cell(index=1, lat=50.5, lng=19.5, bbox=BBox(50.0, 19.0, 51.0, 20.0))
    params = build_geosearch_params(box_cell, 50)
    assert params["ggsbbox"] == "51.0|19.0|50.0|20.0"
    assert "ggscoord" not in params


class RecordingHttp:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get_json(self, endpoints, params, token=None):
        self.calls.append(("GET", list(endpoints), params))
        return self.payload

    def post_form(self, endpoints, data, token=None):
        self.calls.append(("POST", list(endpoints), data))
        return self.payload


def test_backends_use_configured_mirrors():
    http = RecordingHttp({"elements": [{"type": "node", "id": 9, "lat": 50.1, "lon": 19.1, "tags": {}}]})
    backend = OverpassBackend(http)
    cell = Cell(index=0, lat=50.5, lng=19.5, bbox=BBox(50.0, 19.0, 51.0, 20.0))
    results = backend.search(cell)
    assert [r.id for r in results] == ["node/9"]
    method, endpoints, data = http.calls[0]
    assert method == "POST"
    assert endpoints == config.OVERPASS_ENDPOINTS
    assert "data" in data

    http = RecordingHttp({"query": {"pages": []}})
    wiki = WikipediaGeoBackend(http, endpoints=["https://mirror.example/w/api.php"])
    assert wiki.search(Cell(index=0, lat=50.0, lng=19.0, radius_m=5000)) == []
    assert http.calls[0][1] == ["https://mirror.example/w/api.php"]
