# geoplexer/client/api_client.py

from typing import Any, Dict, Optional, Sequence

import httpx

from geoplexer.core.errors import UpstreamError
from geoplexer.models.schemas import AiResponse, Interest, PlacesResponse

PLACES_ZOOM = 16


class GeoplexerApiClient:
    """
    Thin async client for the Geoplexer HTTP API.

    Non-2xx responses raise UpstreamError with a display-ready message;
    transport problems surface as httpx.HTTPError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            return await client.post(path, json=payload)

    async def fetch_places(
        self,
        lat: float,
        lng: float,
        interests: Sequence[Interest],
        zoom: int = PLACES_ZOOM,
    ) -> PlacesResponse:
        response = await self._post(
            "/places",
            {
                "lat": lat,
                "lng": lng,
                "zoom": zoom,
                "ll": f"@{lat:.4f},{lng:.4f},{zoom}z",
                "interests": [interest.model_dump() for interest in interests],
            },
        )
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise UpstreamError(
                message if isinstance(message, str) else "Places request failed.",
                response.status_code,
            )
        return PlacesResponse.model_validate(payload if isinstance(payload, dict) else {})

    async def fetch_weather(self, lat: float, lng: float) -> Dict[str, Any]:
        response = await self._post("/weather", {"lat": lat, "lng": lng})
        if response.is_error:
            raise UpstreamError(
                f"Weather request failed ({response.status_code})", response.status_code
            )
        payload = response.json()
        if not isinstance(payload, dict):
            raise UpstreamError("Weather request failed (unexpected payload)", response.status_code)
        return payload

    async def fetch_point_summary(self, lat: float, lng: float, best_label: str) -> AiResponse:
        response = await self._post(
            "/ai/point",
            {"lat": lat, "lng": lng, "bestLabel": best_label, "context": {}},
        )
        if response.is_error:
            raise UpstreamError(
                f"AI request failed ({response.status_code})", response.status_code
            )
        return AiResponse.model_validate(response.json())
