# geoplexer/services/place_normalizer.py

"""
Turns raw local-search payloads into PlaceItem lists.

The search provider does not always nest results the same way, and items use
different field names depending on the result type. Both the bucket locations
and the per-attribute field candidates are plain tables, probed in order.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from geoplexer.models.schemas import PlaceItem

MAX_PLACES_PER_GROUP = 12

# Paths into the payload where result arrays may live, in priority order
PLACE_BUCKETS: Tuple[Tuple[str, ...], ...] = (
    ("places",),
    ("localResults", "places"),
    ("localResults",),
    ("local",),
    ("mapResults",),
)


def _first_present(item: Dict[str, Any], candidates: Tuple[str, ...]) -> Any:
    for name in candidates:
        value = item.get(name)
        if value is not None:
            return value
    return None


def _first_string(item: Dict[str, Any], candidates: Tuple[str, ...]) -> Optional[str]:
    for name in candidates:
        value = item.get(name)
        if isinstance(value, str):
            return value
    return None


def parse_rating(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


_REVIEW_NOISE = re.compile(r"[,\s]+")


def parse_review_count(value: Any) -> Optional[int]:
    """Accepts 1234, 1234.0 or "1,234"."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = _REVIEW_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            parsed = float(cleaned)
        except ValueError:
            return None
        return int(parsed) if math.isfinite(parsed) else None
    return None


@dataclass(frozen=True)
class FieldExtractor:
    field: str
    candidates: Tuple[str, ...]
    pick: Callable[[Dict[str, Any], Tuple[str, ...]], Any]
    coerce: Optional[Callable[[Any], Any]] = None

    def extract(self, item: Dict[str, Any]) -> Any:
        value = self.pick(item, self.candidates)
        if value is None or self.coerce is None:
            return value
        return self.coerce(value)


PLACE_FIELD_EXTRACTORS: Tuple[FieldExtractor, ...] = (
    FieldExtractor("rating", ("rating", "stars", "score"), _first_present, parse_rating),
    FieldExtractor(
        "reviews_count",
        ("reviews", "userRatingsTotal", "reviewsCount"),
        _first_present,
        parse_review_count,
    ),
    FieldExtractor("category", ("category", "type"), _first_string),
    FieldExtractor("address", ("address", "location"), _first_string),
    FieldExtractor("thumbnail_url", ("thumbnailUrl", "imageUrl", "thumbnail"), _first_string),
    FieldExtractor("link", ("link", "url"), _first_string),
)


def normalize_place(item: Dict[str, Any]) -> Optional[PlaceItem]:
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        return None

    fields = {extractor.field: extractor.extract(item) for extractor in PLACE_FIELD_EXTRACTORS}
    return PlaceItem(title=title.strip(), **fields)


def _dig(data: Any, path: Tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def extract_places(data: Any, limit: int = MAX_PLACES_PER_GROUP) -> List[PlaceItem]:
    collected: List[Dict[str, Any]] = []
    for path in PLACE_BUCKETS:
        bucket = _dig(data, path)
        if isinstance(bucket, list):
            collected.extend(item for item in bucket if isinstance(item, dict))

    places: List[PlaceItem] = []
    for raw in collected:
        place = normalize_place(raw)
        if place is not None:
            places.append(place)
    return places[:limit]
