"""
Tests for bookmarks/history bookkeeping.
"""
import json
import itertools

import pytest

from geoplexer.models.schemas import Coordinate, SavedPlace
from geoplexer.services.place_store import (
    BOOKMARKS_STORAGE_KEY,
    HISTORY_LIMIT,
    HISTORY_STORAGE_KEY,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    PlaceStore,
    build_place_id,
    dedupe_places,
)


def _place(lat: float, lng: float, title: str = "Somewhere", **extra) -> SavedPlace:
    return SavedPlace(id=build_place_id(lat, lng), title=title, lat=lat, lng=lng, **extra)


def _clock():
    counter = itertools.count(1000)
    return lambda: next(counter)


class FailingStore:
    def load(self, key):
        raise OSError("disk gone")

    def save(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return PlaceStore(kv, clock=_clock())


def test_build_place_id_rounds_to_four_places():
    assert build_place_id(48.85841234, 2.29451111) == "48.8584,2.2945"


def test_dedupe_keeps_first_and_is_idempotent():
    places = [
        _place(48.8584, 2.2945, "Eiffel Tower", summary="first"),
        _place(48.8588, 2.2950, "Other name", summary="close duplicate"),
        _place(48.9034, 2.2945, "eiffel  tower", summary="same name 5 km away"),
        _place(51.5007, -0.1246, "Big Ben"),
    ]

    once = dedupe_places(places)
    assert [p.summary for p in once] == ["first", ""]
    assert [p.title for p in once] == ["Eiffel Tower", "Big Ben"]
    assert dedupe_places(once) == once


def test_upsert_history_moves_equivalent_to_front_and_merges(store):
    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower", summary="old"))
    store.upsert_history(_place(51.5007, -0.1246, "Big Ben"))

    merged = store.upsert_history(_place(48.8586, 2.2946, "Eiffel Tower", summary="new"))

    assert len(store.history) == 2
    assert store.history[0] is merged
    assert merged.summary == "new"
    assert merged.saved_at == 1002
    assert store.history[1].title == "Big Ben"


def test_upsert_history_merge_keeps_fields_the_entry_did_not_set(store):
    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower", summary="kept"))

    partial = SavedPlace(id="48.8584,2.2945", lat=48.8584, lng=2.2945, weather={"current": {}})
    merged = store.upsert_history(partial)

    assert merged.summary == "kept"
    assert merged.title == "Eiffel Tower"
    assert merged.weather == {"current": {}}


def test_history_never_exceeds_limit_and_latest_is_first(store):
    for index in range(HISTORY_LIMIT + 10):
        store.upsert_history(_place(-60 + index * 0.5, 10.0, f"Spot {index}"))
        assert len(store.history) <= HISTORY_LIMIT
        assert store.history[0].title == f"Spot {index}"

    assert len(store.history) == HISTORY_LIMIT
    assert store.history[-1].title == "Spot 10"


def test_find_cached_prefers_bookmarks_over_history(store):
    store.upsert_history(_place(48.8584, 2.2945, "History copy"))
    store.toggle_bookmark(_place(48.8590, 2.2945, "Bookmark copy"))

    hit = store.find_cached(Coordinate(lat=48.8587, lng=2.2945))
    assert hit is not None
    assert hit.title == "Bookmark copy"


def test_find_cached_ignores_same_name_far_away(store):
    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower"))
    assert store.find_cached({"lat": 48.9034, "lng": 2.2945, "title": "Eiffel Tower"}) is None


def test_toggle_bookmark_adds_then_removes(store):
    assert store.toggle_bookmark(_place(48.8584, 2.2945, "Eiffel Tower")) is True
    assert store.is_bookmarked(Coordinate(lat=48.8585, lng=2.2945))

    assert store.toggle_bookmark(_place(48.8586, 2.2947, "Eiffel Tower")) is False
    assert store.bookmarks == ()


def test_merge_into_bookmark_preserves_saved_at(store):
    store.toggle_bookmark(_place(48.8584, 2.2945, "Eiffel Tower", saved_at=42))

    updated = store.merge_into_bookmark(
        _place(48.8584, 2.2945, "Eiffel Tower", weather={"current": {"temperature_2m": 21}}, saved_at=999)
    )

    assert updated is True
    assert store.bookmarks[0].saved_at == 42
    assert store.bookmarks[0].weather == {"current": {"temperature_2m": 21}}


def test_merge_into_bookmark_without_match_is_a_no_op(store, kv):
    assert store.merge_into_bookmark(_place(10.0, 10.0)) is False
    assert store.bookmarks == ()
    assert BOOKMARKS_STORAGE_KEY not in kv.data


def test_mutations_are_persisted_with_camel_case_keys(store, kv):
    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower", places_status="ready"))

    stored = json.loads(kv.data[HISTORY_STORAGE_KEY])
    assert stored[0]["id"] == "48.8584,2.2945"
    assert stored[0]["placesStatus"] == "ready"
    assert "savedAt" in stored[0]


def test_clear_all_empties_and_persists(store, kv):
    store.upsert_history(_place(48.8584, 2.2945))
    store.toggle_bookmark(_place(48.8584, 2.2945))

    store.clear_all()

    assert store.history == ()
    assert store.bookmarks == ()
    assert kv.data[HISTORY_STORAGE_KEY] == "[]"
    assert kv.data[BOOKMARKS_STORAGE_KEY] == "[]"


def test_load_dedupes_and_tolerates_bad_entries():
    good = _place(48.8584, 2.2945, "Eiffel Tower").model_dump(mode="json", by_alias=True)
    duplicate = dict(good, title="Duplicate")
    kv = InMemoryKeyValueStore(
        {
            HISTORY_STORAGE_KEY: json.dumps([good, duplicate, "junk", {"title": "no coords"}]),
            BOOKMARKS_STORAGE_KEY: "{not json",
        }
    )

    store = PlaceStore(kv)

    assert [p.title for p in store.history] == ["Eiffel Tower"]
    assert store.bookmarks == ()


def test_load_non_list_payload_is_empty():
    store = PlaceStore(InMemoryKeyValueStore({HISTORY_STORAGE_KEY: '{"a": 1}'}))
    assert store.history == ()


def test_storage_failures_are_swallowed():
    store = PlaceStore(FailingStore())

    store.upsert_history(_place(48.8584, 2.2945))
    store.toggle_bookmark(_place(48.8584, 2.2945))
    store.clear_all()

    assert store.history == ()


def test_json_file_store_survives_restart(tmp_path):
    first = PlaceStore(JsonFileKeyValueStore(tmp_path / "saved"))
    first.toggle_bookmark(_place(48.8584, 2.2945, "Eiffel Tower"))

    second = PlaceStore(JsonFileKeyValueStore(tmp_path / "saved"))

    assert [p.title for p in second.bookmarks] == ["Eiffel Tower"]
    assert (tmp_path / "saved" / f"{BOOKMARKS_STORAGE_KEY}.json").exists()


class BrokenBackend:
    def load(self, key):
        raise RuntimeError("backend offline")

    def save(self, key, value):
        raise RuntimeError("backend offline")


def test_undecodable_file_loads_as_empty(tmp_path):
    (tmp_path / f"{HISTORY_STORAGE_KEY}.json").write_bytes(b"\xff\xfe\x00garbage")

    store = PlaceStore(JsonFileKeyValueStore(tmp_path))

    assert store.history == ()
    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower"))
    assert [p.title for p in store.history] == ["Eiffel Tower"]


def test_non_os_backend_errors_are_swallowed():
    store = PlaceStore(BrokenBackend())

    store.upsert_history(_place(48.8584, 2.2945, "Eiffel Tower"))
    assert store.toggle_bookmark(_place(48.8584, 2.2945, "Eiffel Tower")) is True
    store.clear_all()

    assert store.history == ()
    assert store.bookmarks == ()
