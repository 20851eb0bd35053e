import json

from regionpoi import config


def test_load_search_config_missing_file(tmp_path):
    assert config.load_search_config(str(tmp_path / "missing.json")) is False


def test_load_search_config_overrides(tmp_path, monkeypatch):
    for name in (
        "OVERPASS_ENDPOINTS",
        "TILE_ROWS",
        "HEX_RADIUS_M",
        "FETCH_CONCURRENCY",
        "PER_CATEGORY_CAP",
        "ADMIN_TITLE_PREFIXES",
    ):
        monkeypatch.setattr(config, name, getattr(config, name))

    path = tmp_path / "poi_config.json"
    path.write_text(
        json.dumps(
            {
                "endpoints": {"overpass": ["https://mirror.example/api/interpreter"]},
                "sampling": {"tile_rows": 6, "hex_radius_m": 5000},
                "fetch": {"concurrency": 0},
                "per_category_cap": 20,
                "admin_title_prefixes": ["Gmina "],
            }
        ),
        encoding="utf-8",
    )

    assert config.load_search_config(str(path)) is True
    assert config.OVERPASS_ENDPOINTS == ["https://mirror.example/api/interpreter"]
    assert config.TILE_ROWS == 6
    assert config.HEX_RADIUS_M == 5000.0
    assert config.FETCH_CONCURRENCY == 1
    assert config.PER_CATEGORY_CAP == 20
    assert config.ADMIN_TITLE_PREFIXES == ["gmina "]
