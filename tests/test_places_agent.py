import pytest

from geoplexer.agents import places_agent as places_module
from geoplexer.agents.places_agent import (
    PlacesAgent,
    is_poi_place,
    is_retail_place,
    normalize_interest,
    normalize_ll,
    normalize_zoom,
)
from geoplexer.models.interests import DEFAULT_INTEREST, OPTIONAL_INTERESTS
from geoplexer.models.schemas import Coordinate, PlaceItem
from geoplexer.services import serper_client

PARIS = Coordinate(lat=48.8584, lng=2.2945)
INTERESTS = {interest.id: interest for interest in [DEFAULT_INTEREST, *OPTIONAL_INTERESTS]}


def _fake_search(results, calls=None):
    async def fake_search_maps(query, ll):
        if calls is not None:
            calls.append((query, ll))
        return results.get(query, ([], None))

    return fake_search_maps


def test_poi_filter_keywords():
    assert is_poi_place(PlaceItem(title="Eiffel Tower", category="Tourist attraction"))
    assert is_poi_place(PlaceItem(title="Monceau Park"))
    assert not is_poi_place(PlaceItem(title="Cafe de Flore", category="Cafe"))


def test_retail_detection():
    assert is_retail_place(PlaceItem(title="Nicolas", category="Liquor Store"))
    assert is_retail_place(PlaceItem(title="Carrefour City", category="Supermarket"))
    assert is_retail_place(PlaceItem(title="Corner", category="Beer stores"))
    assert not is_retail_place(PlaceItem(title="Harry's Bar", category="Cocktail bar"))


@pytest.mark.asyncio
async def test_search_calls_each_interest_with_anchor(monkeypatch):
    calls = []
    monkeypatch.setattr(serper_client, "search_maps", _fake_search({}, calls))

    response = await PlacesAgent().search(PARIS, [INTERESTS["food"], INTERESTS["coffee"]], zoom=16)

    assert sorted(calls) == [
        ("top coffee shops", "@48.8584,2.2945,16z"),
        ("top rated restaurants", "@48.8584,2.2945,16z"),
    ]
    assert [group.id for group in response.groups] == ["food", "coffee"]
    assert response.error is None


@pytest.mark.asyncio
async def test_attractions_group_keeps_only_points_of_interest(monkeypatch):
    results = {
        DEFAULT_INTEREST.query: (
            [
                PlaceItem(title="Eiffel Tower", category="Historical landmark"),
                PlaceItem(title="Souvenir kiosk", category="Gift shop"),
                PlaceItem(title="Musée d'Orsay", category="Art museum"),
            ],
            None,
        ),
        "top rated restaurants": ([PlaceItem(title="Bistro", category="Restaurant")], None),
    }
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [DEFAULT_INTEREST, INTERESTS["food"]])

    attractions, food = response.groups
    assert [p.title for p in attractions.places] == ["Eiffel Tower", "Musée d'Orsay"]
    assert [p.title for p in food.places] == ["Bistro"]


@pytest.mark.asyncio
async def test_liquor_store_moves_from_nightlife_to_shopping_once(monkeypatch):
    liquor = PlaceItem(title="Cave Saint-Germain", category="Liquor Store", address="1 Rue du Bac")
    results = {
        "top bars": (
            [liquor, PlaceItem(title="Harry's New York Bar", category="Bar")],
            None,
        ),
        "top shopping malls": (
            [
                PlaceItem(title="cave  saint-germain", category="Wine", address="1 rue du bac"),
                PlaceItem(title="Le Bon Marché", category="Department store"),
            ],
            None,
        ),
    }
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [INTERESTS["nightlife"], INTERESTS["shopping"]])

    nightlife, shopping = response.groups
    assert [p.title for p in nightlife.places] == ["Harry's New York Bar"]
    titles = [p.title.lower().replace("  ", " ") for p in shopping.places]
    assert titles.count("cave saint-germain") == 1
    assert len(shopping.places) == 2


@pytest.mark.asyncio
async def test_retail_places_are_appended_to_shopping(monkeypatch):
    results = {
        "top bars": ([PlaceItem(title="Franprix", category="Grocery store")], None),
        "top shopping malls": ([PlaceItem(title="Galeries Lafayette", category="Mall")], None),
    }
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [INTERESTS["nightlife"], INTERESTS["shopping"]])

    nightlife, shopping = response.groups
    assert nightlife.places == []
    assert [p.title for p in shopping.places] == ["Galeries Lafayette", "Franprix"]


@pytest.mark.asyncio
async def test_retail_places_are_dropped_without_shopping_group(monkeypatch):
    results = {"top bars": ([PlaceItem(title="Shell", category="Gas station")], None)}
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [INTERESTS["nightlife"]])

    assert response.groups[0].places == []


@pytest.mark.asyncio
async def test_failing_interest_does_not_fail_siblings(monkeypatch):
    results = {
        DEFAULT_INTEREST.query: ([PlaceItem(title="Louvre Museum")], None),
        "top rated restaurants": ([], "Serper error 500: upstream"),
    }
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [DEFAULT_INTEREST, INTERESTS["food"]])

    attractions, food = response.groups
    assert [p.title for p in attractions.places] == ["Louvre Museum"]
    assert food.error == "Serper error 500: upstream"
    assert food.places == []
    assert response.error is None


@pytest.mark.asyncio
async def test_top_level_error_only_when_default_group_is_empty_and_failed(monkeypatch):
    results = {DEFAULT_INTEREST.query: ([], "SERPER_API_KEY is not configured.")}
    monkeypatch.setattr(serper_client, "search_maps", _fake_search(results))

    response = await PlacesAgent().search(PARIS, [DEFAULT_INTEREST])

    assert response.error == "SERPER_API_KEY is not configured."


def test_normalize_interest_from_string_and_mapping():
    assert normalize_interest("  sushi ", 3).model_dump() == {
        "id": "interest-3",
        "label": "sushi",
        "query": "sushi",
    }
    assert normalize_interest({"label": "Street Food", "q": "street food stalls"}, 0).model_dump() == {
        "id": "street-food",
        "label": "Street Food",
        "query": "street food stalls",
    }
    assert normalize_interest({"id": "food", "query": "top rated restaurants"}, 1).label == (
        "top rated restaurants"
    )
    assert normalize_interest({"query": "x"}, 2).id == "interest-2"
    assert normalize_interest({"label": "  "}, 0) is None
    assert normalize_interest(42, 0) is None


def test_normalize_zoom_clamps_and_falls_back(monkeypatch):
    monkeypatch.setattr(places_module.settings, "SERPER_MAPS_ZOOM", 16)
    assert normalize_zoom(None) == 16
    assert normalize_zoom("abc") == 16
    assert normalize_zoom(50) == 21
    assert normalize_zoom(1) == 3
    assert normalize_zoom("14.2") == 14


def test_normalize_ll_variants():
    assert normalize_ll("48.85, 2.29", None, 16) == "@48.85,2.29,16z"
    assert normalize_ll("@48.85,2.29,14", None, 16) == "@48.85,2.29,14z"
    assert normalize_ll("@48.85,2.29,12z", None, 16) == "@48.85,2.29,12z"
    assert normalize_ll("bad", PARIS, 15) == "@48.8584,2.2945,15z"
    assert normalize_ll(None, None, 16) is None


def test_normalize_zoom_rounds_halves_up():
    assert normalize_zoom(16.5) == 17
    assert normalize_zoom("14.5") == 15
    assert normalize_zoom(15.49) == 15
