# geoplexer/core/validate.py

import math
from typing import Any, Optional

from geoplexer.models.schemas import Coordinate


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def parse_lat_lng(payload: Any) -> Optional[Coordinate]:
    """
    Pull a valid coordinate out of a request body.

    Returns None for anything that is not a mapping with finite, in-range
    `lat` and `lng` values (numbers or numeric strings).
    """
    if not isinstance(payload, dict):
        return None

    lat = _to_float(payload.get("lat"))
    lng = _to_float(payload.get("lng"))
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if lat < -90 or lat > 90:
        return None
    if lng < -180 or lng > 180:
        return None

    return Coordinate(lat=lat, lng=lng)
