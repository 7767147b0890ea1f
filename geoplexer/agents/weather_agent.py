# geoplexer/agents/weather_agent.py

import math
from typing import Any, Dict, Optional

from geoplexer.models.schemas import Coordinate
from geoplexer.services.open_meteo_client import get_forecast
from geoplexer.core.logging_config import logger

# WMO weather interpretation codes, grouped the way they are displayed
_WEATHER_KINDS = {
    "clear": (0,),
    "partly": (1, 2, 3),
    "fog": (45, 48),
    "drizzle": (51, 53, 55, 56, 57),
    "rain": (61, 63, 65, 66, 67, 80, 81, 82),
    "snow": (71, 73, 75, 77, 85, 86),
    "storm": (95, 96, 99),
}


def weather_kind(payload: Optional[Dict[str, Any]]) -> str:
    code = ((payload or {}).get("current") or {}).get("weather_code")
    if isinstance(code, bool) or not isinstance(code, (int, float)):
        return "unknown"
    for kind, codes in _WEATHER_KINDS.items():
        if code in codes:
            return kind
    return "unknown"


def weather_label(payload: Optional[Dict[str, Any]], status: str) -> str:
    """Short header label: "18°C", "Weather..." or "Weather unavailable"."""
    if status == "loading":
        return "Weather..."
    if status == "error":
        return "Weather unavailable"
    temperature = ((payload or {}).get("current") or {}).get("temperature_2m")
    if status == "ready" and isinstance(temperature, (int, float)) and not isinstance(temperature, bool):
        return f"{math.floor(temperature + 0.5)}°C"
    return "--"


class WeatherAgent:
    async def get_forecast_for_location(
        self, location: Coordinate
    ) -> Optional[Dict[str, Any]]:
        """
        Child agent responsible for fetching the forecast for a coordinate.
        """
        forecast = await get_forecast(location.lat, location.lng)
        if forecast is None:
            logger.warning(
                f"WeatherAgent: no weather data for ({location.lat}, {location.lng})"
            )
        return forecast
