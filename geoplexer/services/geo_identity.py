# geoplexer/services/geo_identity.py

"""
Rules deciding whether two place records denote the same real-world spot.

Records may be pydantic models, plain objects with ``lat``/``lng``/``title``
attributes, or mappings with the same keys. Missing or non-finite
coordinates never match anything.
"""

import math
import re
from typing import Any, Optional

EARTH_RADIUS_M = 6_371_000
PLACE_CACHE_RADIUS_M = 1000
PLACE_NAME_RADIUS_M = 10_000

_WHITESPACE = re.compile(r"\s+")


def _field(record: Any, name: str) -> Any:
    if record is None:
        return None
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def normalize_title(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _WHITESPACE.sub(" ", value.strip().lower())


def distance(a: Any, b: Any) -> float:
    """
    Great-circle distance in meters (haversine, spherical Earth).

    Returns ``math.inf`` when either record is missing or has a
    non-finite coordinate.
    """
    lat1 = _finite(_field(a, "lat"))
    lng1 = _finite(_field(a, "lng"))
    lat2 = _finite(_field(b, "lat"))
    lng2 = _finite(_field(b, "lng"))
    if None in (lat1, lng1, lat2, lng2):
        return math.inf

    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    sin_lat = math.sin(d_lat / 2)
    sin_lng = math.sin(d_lng / 2)
    h = (
        sin_lat * sin_lat
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * sin_lng * sin_lng
    )
    # Rounding can push h a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def same_by_radius(a: Any, b: Any, radius_m: float = PLACE_CACHE_RADIUS_M) -> bool:
    meters = distance(a, b)
    return math.isfinite(meters) and meters <= radius_m


def same_by_name(a: Any, b: Any) -> bool:
    key_a = normalize_title(_field(a, "title"))
    key_b = normalize_title(_field(b, "title"))
    return bool(key_a and key_b and key_a == key_b)


def same_for_lists(a: Any, b: Any) -> bool:
    """Bookmark/history identity: close by, or same name within 10 km."""
    return same_by_radius(a, b) or (
        same_by_name(a, b) and same_by_radius(a, b, PLACE_NAME_RADIUS_M)
    )


def same_for_cache(a: Any, b: Any) -> bool:
    """A raw click has no name yet, so only the tight radius applies."""
    return same_by_radius(a, b)
