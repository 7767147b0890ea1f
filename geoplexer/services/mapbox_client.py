# geoplexer/services/mapbox_client.py

from typing import Any, Dict, Optional

import httpx

from geoplexer.core.logging_config import logger

MAPBOX_REVERSE_URL = "https://api.mapbox.com/search/geocode/v6/reverse"
FALLBACK_LABEL = "Open ocean"


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _join_label(*parts: Optional[str]) -> str:
    return ", ".join(part for part in parts if part)


def build_raw_label(feature: Any) -> str:
    if not isinstance(feature, dict):
        return ""
    properties = _dict(feature.get("properties"))
    return (
        properties.get("full_address")
        or properties.get("place_formatted")
        or feature.get("place_name")
        or properties.get("name_preferred")
        or properties.get("name")
        or ""
    )


def build_context_label(feature: Any) -> str:
    """
    Prefer a short "Locality, Place, Country" style label.

    Japanese addresses read oddly with locality names, so for Japan the
    label starts at the place level.
    """
    if not isinstance(feature, dict):
        return ""
    context = _dict(_dict(feature.get("properties")).get("context"))

    def name(level: str) -> Optional[str]:
        return _dict(context.get(level)).get("name")

    locality = name("locality")
    neighborhood = name("neighborhood")
    place = name("place")
    region = name("region")
    country = name("country")

    if locality and place and country and country != "Japan":
        return _join_label(locality, place, country)
    if neighborhood and place and country and country != "Japan":
        return _join_label(neighborhood, place, country)
    if place and region and country:
        return _join_label(place, region, country)
    if place and country:
        return _join_label(place, country)
    if region and country:
        return _join_label(region, country)
    return country or ""


async def reverse_geocode(
    latitude: float,
    longitude: float,
    access_token: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Resolve a coordinate to a human-readable label.

    Always yields a label for a completed request (the fallback when nothing
    is found); transport errors are left to the caller.
    """
    if not access_token:
        return FALLBACK_LABEL

    params = {
        "longitude": str(longitude),
        "latitude": str(latitude),
        "access_token": access_token,
        "language": "en",
        "limit": "1",
    }

    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        response = await client.get(MAPBOX_REVERSE_URL, params=params)

    if response.is_error:
        logger.warning(f"Mapbox reverse geocode returned {response.status_code}")
        return FALLBACK_LABEL

    data = response.json()
    features = _dict(data).get("features") or []
    feature = features[0] if features else None
    if not feature:
        return FALLBACK_LABEL

    label = build_context_label(feature) or build_raw_label(feature) or FALLBACK_LABEL
    logger.info(f"Mapbox reverse geocoded ({latitude}, {longitude}) -> {label!r}")
    return label


class MapboxGeocoder:
    """Binds the access token so the orchestrator only passes coordinates."""

    def __init__(self, access_token: Optional[str]) -> None:
        self.access_token = access_token

    async def reverse(self, latitude: float, longitude: float) -> str:
        return await reverse_geocode(latitude, longitude, self.access_token)
