import math

from geoplexer.models.schemas import Coordinate
from geoplexer.services.geo_identity import (
    distance,
    normalize_title,
    same_by_name,
    same_by_radius,
    same_for_cache,
    same_for_lists,
)

EIFFEL = {"lat": 48.8584, "lng": 2.2945, "title": "Eiffel Tower"}
BIG_BEN = {"lat": 51.5007, "lng": -0.1246, "title": "Big Ben"}


def test_distance_is_symmetric_and_zero_on_itself():
    assert distance(EIFFEL, BIG_BEN) == distance(BIG_BEN, EIFFEL)
    assert distance(EIFFEL, EIFFEL) == 0


def test_distance_paris_to_london():
    meters = distance(EIFFEL, BIG_BEN)
    assert 335_000 < meters < 345_000


def test_distance_accepts_models_and_mappings():
    a = Coordinate(lat=48.8584, lng=2.2945)
    assert distance(a, EIFFEL) == 0


def test_distance_missing_or_non_finite_is_infinite():
    assert distance(None, EIFFEL) == math.inf
    assert distance({"lat": float("nan"), "lng": 2.0}, EIFFEL) == math.inf
    assert distance({"lat": 48.0}, EIFFEL) == math.inf
    assert distance({"lat": "48.0", "lng": 2.0}, EIFFEL) == math.inf


def test_same_by_radius_default_is_one_kilometer():
    near = {"lat": EIFFEL["lat"] + 0.008, "lng": EIFFEL["lng"]}  # ~890 m
    far = {"lat": EIFFEL["lat"] + 0.011, "lng": EIFFEL["lng"]}  # ~1.2 km
    assert same_by_radius(EIFFEL, near)
    assert not same_by_radius(EIFFEL, far)
    assert same_by_radius(EIFFEL, far, 2000)


def test_normalize_title_collapses_whitespace_and_case():
    assert normalize_title("  Eiffel   TOWER \n") == "eiffel tower"
    assert normalize_title(None) == ""


def test_same_by_name_requires_non_empty_titles():
    assert same_by_name({"title": "Louvre"}, {"title": " louvre "})
    assert not same_by_name({"title": ""}, {"title": ""})
    assert not same_by_name({"title": "Louvre"}, {})


def test_fifty_meters_apart_with_different_names_is_a_cache_hit():
    other = {"lat": EIFFEL["lat"] + 0.00045, "lng": EIFFEL["lng"], "title": "Champ de Mars"}
    assert same_for_cache(EIFFEL, other)
    assert same_for_lists(EIFFEL, other)


def test_five_km_apart_with_same_name_matches_lists_but_not_cache():
    other = {"lat": EIFFEL["lat"] + 0.045, "lng": EIFFEL["lng"], "title": "  eiffel tower"}
    assert same_for_lists(EIFFEL, other)
    assert not same_for_cache(EIFFEL, other)


def test_five_km_apart_with_different_names_is_distinct():
    other = {"lat": EIFFEL["lat"] + 0.045, "lng": EIFFEL["lng"], "title": "Montmartre"}
    assert not same_for_lists(EIFFEL, other)


def test_same_name_beyond_ten_km_is_distinct():
    other = {"lat": EIFFEL["lat"] + 0.2, "lng": EIFFEL["lng"], "title": "Eiffel Tower"}
    assert not same_for_lists(EIFFEL, other)


def test_same_for_lists_is_reflexive():
    for record in (EIFFEL, BIG_BEN, {"lat": 0.0, "lng": 0.0, "title": ""}):
        assert same_for_lists(record, record)
