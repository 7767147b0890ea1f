# geoplexer/agents/places_agent.py

import asyncio
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from geoplexer.core.config import settings
from geoplexer.core.logging_config import logger
from geoplexer.models.interests import (
    DEFAULT_INTEREST,
    NIGHTLIFE_INTEREST_ID,
    SHOPPING_INTEREST_ID,
)
from geoplexer.models.schemas import Coordinate, Interest, PlaceGroup, PlaceItem, PlacesResponse
from geoplexer.services import serper_client

# --------- Classification keywords ---------

POI_KEYWORDS = [
    "tourist attraction",
    "point of interest",
    "landmark",
    "museum",
    "park",
    "historical landmark",
    "historic landmark",
    "viewpoint",
    "monument",
]

RETAIL_KEYWORDS = [
    "convenience",
    "convenience store",
    "liquor store",
    "bottle shop",
    "wine shop",
    "package store",
    "grocery",
    "supermarket",
    "mini mart",
    "minimart",
    "gas station",
    "pharmacy",
    "drugstore",
]

_STORE_PATTERNS = [
    re.compile(r"\b\w+\s+stores?\b"),
    re.compile(r"\bstore\b"),
]

_WHITESPACE = re.compile(r"\s+")

MIN_ZOOM = 3
MAX_ZOOM = 21


def _haystack(place: PlaceItem) -> str:
    return " ".join(part for part in (place.category, place.title) if part).lower()


def is_poi_place(place: PlaceItem) -> bool:
    text = _haystack(place)
    return bool(text) and any(keyword in text for keyword in POI_KEYWORDS)


def is_retail_place(place: PlaceItem) -> bool:
    text = _haystack(place)
    if not text:
        return False
    if any(keyword in text for keyword in RETAIL_KEYWORDS):
        return True
    return any(pattern.search(text) for pattern in _STORE_PATTERNS)


def place_key(place: PlaceItem) -> str:
    raw = f"{place.title}::{place.address or ''}"
    return _WHITESPACE.sub(" ", raw.strip().lower())


# --------- Request normalization ---------


def normalize_interest(value: Any, index: int) -> Optional[Interest]:
    if isinstance(value, str):
        query = value.strip()
        if not query:
            return None
        return Interest(id=f"interest-{index}", label=query, query=query)

    if not isinstance(value, dict):
        return None

    label = value.get("label").strip() if isinstance(value.get("label"), str) else ""
    if isinstance(value.get("query"), str):
        query = value["query"].strip()
    elif isinstance(value.get("q"), str):
        query = value["q"].strip()
    else:
        query = label
    if not query:
        return None

    raw_id = value.get("id").strip() if isinstance(value.get("id"), str) else ""
    interest_id = raw_id or _WHITESPACE.sub("-", label.lower()) or f"interest-{index}"
    return Interest(id=interest_id, label=label or query, query=query)


def normalize_interests(values: Iterable[Any]) -> List[Interest]:
    interests = []
    for index, value in enumerate(values):
        interest = normalize_interest(value, index)
        if interest is not None:
            interests.append(interest)
    return interests


def normalize_zoom(value: Any) -> int:
    fallback = settings.SERPER_MAPS_ZOOM
    try:
        zoom = float(value)
    except (TypeError, ValueError):
        zoom = fallback
    if not math.isfinite(zoom):
        zoom = fallback
    return max(MIN_ZOOM, min(MAX_ZOOM, math.floor(zoom + 0.5)))


def normalize_ll(value: Any, coordinate: Optional[Coordinate], zoom: int) -> Optional[str]:
    """
    Build the "@lat,lng,zoomz" anchor, preferring an explicit `ll` string.
    """
    if isinstance(value, str):
        cleaned = _WHITESPACE.sub("", value)
        if cleaned:
            parts = cleaned.lstrip("@").split(",")
            if len(parts) >= 2:
                zoom_part = parts[2] if len(parts) > 2 else ""
                if not zoom_part:
                    zoom_part = f"{zoom}z"
                elif not zoom_part.lower().endswith("z"):
                    zoom_part = f"{zoom_part}z"
                return f"@{parts[0]},{parts[1]},{zoom_part}"

    if coordinate is None:
        return None
    return f"@{coordinate.lat:.4f},{coordinate.lng:.4f},{zoom}z"


# --------- Aggregator ---------


class PlacesAgent:
    """
    Agent that returns nearby places grouped by interest.

    Strategy:
    1) Run one local search per interest, concurrently. A failing interest
       yields an empty group carrying its error.
    2) Keep only real points of interest in the default "attractions" group.
    3) Move shops that leaked into "nightlife" over to "shopping".
    """

    async def search(
        self,
        coordinate: Coordinate,
        interests: Sequence[Interest],
        zoom: Any = None,
        ll: Any = None,
    ) -> PlacesResponse:
        zoom_level = normalize_zoom(zoom)
        anchor = normalize_ll(ll, coordinate, zoom_level)

        groups = await asyncio.gather(
            *(self._search_interest(interest, anchor) for interest in interests)
        )
        groups = list(groups)
        self._reclassify_retail(groups)

        default_group = next((g for g in groups if g.id == DEFAULT_INTEREST.id), None)
        error = None
        if default_group is not None and not default_group.places and default_group.error:
            error = default_group.error

        logger.info(
            f"PlacesAgent: {len(groups)} groups near {anchor} -> "
            + ", ".join(f"{g.id}={len(g.places)}" for g in groups)
        )
        return PlacesResponse(groups=groups, error=error)

    async def _search_interest(self, interest: Interest, anchor: str) -> PlaceGroup:
        places, error = await serper_client.search_maps(interest.query, anchor)
        if interest.id == DEFAULT_INTEREST.id:
            places = [place for place in places if is_poi_place(place)]

        return PlaceGroup(
            id=interest.id,
            label=interest.label,
            query=interest.query,
            places=places,
            error=error,
        )

    def _reclassify_retail(self, groups: List[PlaceGroup]) -> None:
        by_id: Dict[str, PlaceGroup] = {}
        for group in groups:
            by_id.setdefault(group.id, group)

        nightlife = by_id.get(NIGHTLIFE_INTEREST_ID)
        if nightlife is None:
            return

        retail = [place for place in nightlife.places if is_retail_place(place)]
        if not retail:
            return
        nightlife.places = [place for place in nightlife.places if not is_retail_place(place)]

        shopping = by_id.get(SHOPPING_INTEREST_ID)
        if shopping is None:
            logger.info(f"PlacesAgent: dropped {len(retail)} retail places from nightlife")
            return

        merged: Dict[str, PlaceItem] = {}
        for place in shopping.places + retail:
            merged.setdefault(place_key(place), place)
        shopping.places = list(merged.values())
        logger.info(f"PlacesAgent: moved {len(retail)} retail places to shopping")
