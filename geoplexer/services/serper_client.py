# geoplexer/services/serper_client.py

from typing import List, Optional, Tuple

import httpx

from geoplexer.core.config import settings
from geoplexer.core.logging_config import logger
from geoplexer.models.schemas import PlaceItem
from geoplexer.services.place_normalizer import extract_places

SERPER_MAPS_URL = "https://google.serper.dev/maps"


async def search_maps(
    query: str,
    ll: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[List[PlaceItem], Optional[str]]:
    """
    Run one local search around the `ll` anchor ("@lat,lng,16z").

    Never raises: failures come back as (empty list, error message) so a
    single bad interest does not take its siblings down.
    """
    api_key = settings.SERPER_API_KEY
    if not api_key:
        return [], "SERPER_API_KEY is not configured."

    timeout = settings.SERPER_TIMEOUT_MS / 1000

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(
                SERPER_MAPS_URL,
                json={"q": query, "ll": ll},
                headers={"X-API-KEY": api_key},
            )
    except httpx.HTTPError as exc:
        logger.error(f"Serper request failed for {query!r}: {exc!r}")
        return [], str(exc) or "Places request failed."

    if response.is_error:
        logger.error(f"Serper returned {response.status_code} for {query!r}")
        return [], f"Serper error {response.status_code}: {response.text[:120]}"

    try:
        data = response.json()
    except ValueError as exc:
        logger.error(f"Serper returned invalid JSON for {query!r}: {exc}")
        return [], "Places request failed."

    places = extract_places(data)
    logger.info(f"Serper found {len(places)} places for {query!r} at {ll}")
    return places, None
