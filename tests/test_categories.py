import pytest

from regionpoi import config
from regionpoi.categories import build_rules, classify
from regionpoi.models import RawResult


def _raw(tags=None, title=None, categories=()):
    return RawResult(id="x", lat=50.0, lng=19.0, tags=tags or {}, title=title, categories=tuple(categories))


def test_tag_rules_map_to_categories():
    assert classify(_raw({"amenity": "place_of_worship"})) == "church"
    assert classify(_raw({"natural": "peak"})) == "mountain"
    assert classify(_raw({"tourism": "viewpoint"})) == "nature"
    assert classify(_raw({"natural": "spring"})) == "nature"
    assert classify(_raw({"tourism": "museum"})) == "landmark"
    assert classify(_raw({"historic": "castle"})) == "landmark"


def test_priority_church_over_mountain_over_nature_over_landmark():
    assert classify(_raw({"amenity": "place_of_worship", "natural": "peak", "historic": "yes"})) == "church"
    assert classify(_raw({"natural": "peak", "tourism": "viewpoint"})) == "mountain"
    assert classify(_raw({"tourism": "viewpoint", "historic": "yes"})) == "nature"


def test_text_signals_classify_wiki_pages():
    assert classify(_raw(title="Bazylika Mariacka")) == "church"
    assert classify(_raw(title="Turbacz", categories=["Kategoria:Szczyty Gorców"])) == "mountain"
    assert classify(_raw(title="Morskie Oko", categories=["Kategoria:Jeziora w Tatrach"])) == "nature"
    assert classify(_raw(title="Zamek Królewski na Wawelu")) == "landmark"
    assert classify(_raw(title="Sukiennice", categories=["Kategoria:Zabytki w Krakowie"])) == "landmark"


def test_unmatched_records_are_dropped():
    assert classify(_raw({"shop": "bakery"}, title="Piekarnia")) is None
    assert classify(_raw()) is None


def test_administrative_pages_are_excluded():
    assert classify(_raw(title="Gmina Zakopane", categories=["Kategoria:Kościoły"])) is None
    assert classify(_raw(title="Powiat tatrzański")) is None
    assert classify(
        _raw({"historic": "yes"}, title="Bukowina", categories=["Kategoria:Wsie w województwie małopolskim"])
    ) is None


def test_rule_table_is_configuration(monkeypatch):
    monkeypatch.setattr(
        config,
        "CATEGORY_RULES",
        [{"category": "nature", "tags": {"leisure": ["park"]}}],
    )
    assert classify(_raw({"leisure": "park"})) == "nature"
    assert classify(_raw({"amenity": "place_of_worship"})) is None


def test_rule_table_rejects_unknown_category():
    with pytest.raises(ValueError):
        build_rules([{"category": "pub", "tags": {"amenity": ["pub"]}}])
