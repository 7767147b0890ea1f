# geoplexer/services/open_meteo_client.py

from typing import Any, Dict, Optional

import httpx

from geoplexer.core.config import settings
from geoplexer.core.logging_config import logger

OPEN_METEO_BASE_URL = "https://api.open-meteo.com/v1/forecast"


async def get_forecast(
    latitude: float,
    longitude: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Dict[str, Any]]:
    """
    Fetch current conditions plus an hourly forecast from Open-Meteo.

    Returns:
        The provider payload as-is if successful, otherwise None.
    """
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m,wind_speed_10m,weather_code",
        "hourly": "temperature_2m,relative_humidity_2m,wind_speed_10m",
    }

    try:
        async with httpx.AsyncClient(
            timeout=settings.WEATHER_TIMEOUT_MS / 1000, transport=transport
        ) as client:
            response = await client.get(OPEN_METEO_BASE_URL, params=params)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error(f"Open-Meteo request failed: {exc}")
        return None

    try:
        data = response.json()
    except ValueError as exc:
        logger.error(f"Error parsing Open-Meteo response: {exc}")
        return None

    if not isinstance(data, dict):
        logger.error("Open-Meteo response is not a JSON object")
        return None

    current = data.get("current") or {}
    logger.info(
        f"Open-Meteo weather @ ({latitude}, {longitude}) -> "
        f"{current.get('temperature_2m')}°C, code={current.get('weather_code')}"
    )

    return data
