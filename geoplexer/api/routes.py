# geoplexer/api/routes.py

from typing import Any, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from geoplexer.agents.places_agent import PlacesAgent, normalize_interests
from geoplexer.agents.summary_agent import SummaryAgent
from geoplexer.agents.weather_agent import WeatherAgent
from geoplexer.core.logging_config import logger
from geoplexer.core.validate import parse_lat_lng
from geoplexer.models.schemas import AiResponse, PlacesResponse
from geoplexer.services.image_proxy import (
    CACHE_CONTROL,
    ImageFetchError,
    UnsupportedImageError,
    fetch_image,
    parse_image_url,
)

router = APIRouter()

places_agent = PlacesAgent()
weather_agent = WeatherAgent()
summary_agent = SummaryAgent()


async def _read_json(request: Request) -> Optional[Any]:
    """Request body as JSON, or None when it is missing or malformed."""
    try:
        return await request.json()
    except ValueError:
        return None


def _bad_request(message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=400)


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.post("/places", response_model=PlacesResponse, response_model_exclude_none=True)
async def places_endpoint(request: Request):
    """
    Nearby places grouped by interest.

    Accepts `interests` (strings or {id, label, query} objects), or a
    single `interest` / `q` for older callers.
    """
    body = await _read_json(request)
    coordinate = parse_lat_lng(body)

    raw_interests: list = []
    if isinstance(body, dict):
        if isinstance(body.get("interests"), list):
            raw_interests = body["interests"]
        elif body.get("interest"):
            raw_interests = [body["interest"]]
        elif body.get("q"):
            raw_interests = [body["q"]]
    interests = normalize_interests(raw_interests)

    if coordinate is None or not interests:
        return _bad_request("Invalid payload", groups=[])

    return await places_agent.search(
        coordinate,
        interests,
        zoom=body.get("zoom"),
        ll=body.get("ll"),
    )


@router.post("/weather")
async def weather_endpoint(request: Request):
    body = await _read_json(request)
    coordinate = parse_lat_lng(body)
    if coordinate is None:
        return _bad_request("Invalid lat/lng")

    forecast = await weather_agent.get_forecast_for_location(coordinate)
    if forecast is None:
        return JSONResponse({"error": "Weather request failed"}, status_code=502)
    return forecast


@router.post("/ai/point", response_model=AiResponse)
async def ai_point_endpoint(request: Request):
    body = await _read_json(request)
    coordinate = parse_lat_lng(body)
    if coordinate is None:
        return _bad_request("Invalid lat/lng")

    best_label = str(body.get("bestLabel") or "").strip()
    if not best_label:
        return _bad_request("Missing bestLabel")

    context = body.get("context")
    return await summary_agent.enrich_point(
        coordinate.lat,
        coordinate.lng,
        best_label,
        context if isinstance(context, dict) else {},
    )


@router.post("/ai/city", response_model=AiResponse)
async def ai_city_endpoint(request: Request):
    body = await _read_json(request)
    if not isinstance(body, dict):
        return _bad_request("Invalid payload")

    name = str(body.get("name") or "").strip()
    cc = str(body.get("cc") or "").strip()
    coordinate = parse_lat_lng(body)
    if not name or not cc or coordinate is None:
        return _bad_request("Invalid payload")

    return await summary_agent.enrich_city(name, cc, coordinate.lat, coordinate.lng)


@router.get("/image")
async def image_proxy_endpoint(
    url: Optional[str] = Query(None, description="Absolute http(s) image URL"),
):
    """
    Proxy a remote image so the page can embed it without mixed-origin issues.
    Private and loopback hosts are refused.
    """
    target = parse_image_url(url)
    if target is None:
        return PlainTextResponse("Invalid image url.", status_code=400)

    try:
        content, content_type = await fetch_image(target)
    except UnsupportedImageError as exc:
        logger.info(f"Image proxy refused content-type {exc}")
        return PlainTextResponse("Unsupported image response.", status_code=415)
    except ImageFetchError:
        return PlainTextResponse("Image fetch failed.", status_code=502)

    return Response(
        content=content,
        media_type=content_type,
        headers={"Cache-Control": CACHE_CONTROL},
    )
