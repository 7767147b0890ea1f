# geoplexer/agents/selection_orchestrator.py

import asyncio
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import httpx

from geoplexer.agents.weather_agent import weather_kind, weather_label
from geoplexer.client.api_client import GeoplexerApiClient
from geoplexer.core.config import settings
from geoplexer.core.errors import UpstreamError
from geoplexer.core.logging_config import logger
from geoplexer.models.interests import DEFAULT_INTEREST, OPTIONAL_INTERESTS
from geoplexer.models.schemas import (
    AiResponse,
    Coordinate,
    Interest,
    PlaceGroup,
    PlacesResponse,
    SavedPlace,
    ViewState,
)
from geoplexer.services.mapbox_client import FALLBACK_LABEL, MapboxGeocoder
from geoplexer.services.perplexity_client import strip_think_content
from geoplexer.services.place_store import JsonFileKeyValueStore, PlaceStore, build_place_id

MISSING_TOKEN_MESSAGE = "Missing MAPBOX_TOKEN in environment"
MAX_IMAGES = 6

# Failures a single section can recover from; anything else is a bug
SECTION_ERRORS = (UpstreamError, httpx.HTTPError, ValueError)


class ApplyOutcome(str, Enum):
    APPLIED = "applied"
    STALE = "stale"


class ReverseGeocoder(Protocol):
    async def reverse(self, latitude: float, longitude: float) -> str:
        ...


def _error_message(exc: Exception, default: str) -> str:
    if isinstance(exc, UpstreamError):
        return exc.message
    return str(exc) or default


def merge_groups(existing: Sequence[PlaceGroup], incoming: Iterable[PlaceGroup]) -> List[PlaceGroup]:
    """Additive merge by id; groups already present are kept as they are."""
    merged = list(existing)
    seen = {group.id for group in merged}
    for group in incoming:
        if group.id not in seen:
            merged.append(group)
            seen.add(group.id)
    return merged


class SelectionSession:
    """
    Request bookkeeping for one orchestrator.

    `token` identifies the current selection, `places_token` the current
    places search. Each in-flight operation is tracked as an asyncio task
    under its category so a newer request can cancel it.
    """

    CATEGORIES = ("geocode", "weather", "summary", "places")

    def __init__(self) -> None:
        self.token = 0
        self.places_token = 0
        self.handles: Dict[str, asyncio.Task] = {}

    def begin_selection(self) -> int:
        self.token += 1
        self.places_token += 1
        self.cancel_all()
        return self.token

    def begin_places(self) -> int:
        self.places_token += 1
        self.cancel("places")
        return self.places_token

    def is_current(self, token: int) -> bool:
        return token == self.token

    def is_current_places(self, token: int) -> bool:
        return token == self.places_token

    def track(self, category: str, task: asyncio.Task) -> asyncio.Task:
        self.cancel(category)
        self.handles[category] = task
        task.add_done_callback(lambda done: self._release(category, done))
        return task

    def _release(self, category: str, task: asyncio.Task) -> None:
        if self.handles.get(category) is task:
            del self.handles[category]

    def cancel(self, category: str) -> None:
        task = self.handles.pop(category, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all(self) -> None:
        for category in list(self.handles):
            self.cancel(category)

    def pending(self) -> List[asyncio.Task]:
        return [task for task in self.handles.values() if not task.done()]


class SelectionOrchestrator:
    """
    Drives everything that happens after a point on the map is selected.

    A fresh selection either replays a saved place (no network at all) or
    fans out weather, default places and the label -> AI summary chain.
    Every result is applied through an `apply_*` method that first checks
    the token it was issued under, so late answers from a superseded
    selection are dropped instead of overwriting newer state.
    """

    def __init__(
        self,
        api_client: GeoplexerApiClient,
        geocoder: ReverseGeocoder,
        place_store: PlaceStore,
        map_token: Optional[str],
        compact: bool = False,
    ) -> None:
        self.api_client = api_client
        self.geocoder = geocoder
        self.place_store = place_store
        self.compact = compact
        self.session = SelectionSession()
        self.state = ViewState()

        self.disabled = not map_token
        if self.disabled:
            logger.error(f"SelectionOrchestrator disabled: {MISSING_TOKEN_MESSAGE}")
            self.state = ViewState(status="error", error=MISSING_TOKEN_MESSAGE)

    @classmethod
    def from_settings(cls, compact: bool = False) -> "SelectionOrchestrator":
        return cls(
            api_client=GeoplexerApiClient(settings.API_BASE_URL),
            geocoder=MapboxGeocoder(settings.MAPBOX_TOKEN),
            place_store=PlaceStore(JsonFileKeyValueStore(settings.STORAGE_DIR)),
            map_token=settings.MAPBOX_TOKEN,
            compact=compact,
        )

    # ---------------- Derived state ----------------

    @property
    def display_place_name(self) -> str:
        if self.state.coords is None:
            return "No selection"
        if self.state.geo_status == "loading":
            return "Resolving place..."
        return self.state.place_name or FALLBACK_LABEL

    @property
    def weather_kind(self) -> str:
        return weather_kind(self.state.weather)

    @property
    def weather_label(self) -> str:
        return weather_label(self.state.weather, self.state.weather_status)

    @property
    def is_bookmarked(self) -> bool:
        if self.state.coords is None:
            return False
        return self.place_store.is_bookmarked(self.state.coords)

    def build_saved_place(self) -> Optional[SavedPlace]:
        state = self.state
        if state.coords is None:
            return None

        summary = strip_think_content(state.summary) or state.summary or "Summary unavailable."
        return SavedPlace(
            id=build_place_id(state.coords.lat, state.coords.lng),
            title=self.display_place_name or "Unknown location",
            lat=state.coords.lat,
            lng=state.coords.lng,
            summary=summary,
            images=list(state.images),
            sources=list(state.sources),
            places_groups=list(state.places_groups),
            places_status=state.places_status,
            places_error=state.places_error,
            weather=state.weather,
            weather_status=state.weather_status,
            weather_error=state.weather_error,
            image=state.images[0] if state.images else None,
            saved_at=self.place_store.clock(),
        )

    # ---------------- Selection ----------------

    async def select(self, lat: float, lng: float) -> None:
        if self.disabled:
            return

        token = self.session.begin_selection()
        coordinate = Coordinate(lat=lat, lng=lng)

        cached = self.place_store.find_cached(coordinate)
        if cached is not None:
            logger.info(f"Selection {token}: cache hit {cached.id} ({cached.title})")
            self._apply_cached_place(cached, coordinate)
            return

        logger.info(f"Selection {token}: ({lat}, {lng})")
        self.state = ViewState(
            status="loading",
            coords=coordinate,
            geo_status="loading",
            weather_status="loading",
        )

        if not self.compact:
            self._start_places_search(coordinate, [DEFAULT_INTEREST], append=False)

        self.session.track(
            "weather", asyncio.create_task(self._run_weather(token, coordinate))
        )
        self.session.track(
            "summary", asyncio.create_task(self._run_label_and_summary(token, coordinate))
        )

    async def select_saved_place(self, place: SavedPlace) -> None:
        if self.disabled:
            return
        self.session.begin_selection()
        self._apply_cached_place(place)

    def reset(self) -> None:
        self.session.begin_selection()
        if not self.disabled:
            self.state = ViewState()

    async def settle(self) -> None:
        """Wait until nothing is in flight (new tasks may spawn while waiting)."""
        while True:
            pending = self.session.pending()
            if not pending:
                return
            await asyncio.wait(pending)

    def _apply_cached_place(
        self, place: SavedPlace, coords: Optional[Coordinate] = None
    ) -> None:
        places_status = place.places_status
        if places_status == "idle" and place.places_groups:
            places_status = "ready"
        weather_status = place.weather_status
        if weather_status == "idle" and place.weather:
            weather_status = "ready"

        self.state = ViewState(
            status="ready",
            is_cached_view=True,
            coords=coords or Coordinate(lat=place.lat, lng=place.lng),
            geo_status="ready",
            place_name=place.title or "Unknown location",
            summary=place.summary,
            images=list(place.images),
            sources=list(place.sources),
            places_groups=list(place.places_groups),
            places_status=places_status,
            places_error=place.places_error,
            weather=place.weather,
            weather_status=weather_status,
            weather_error=place.weather_error,
        )
        self.place_store.upsert_history(place)

    # ---------------- Operations ----------------

    async def _run_weather(self, token: int, coordinate: Coordinate) -> None:
        try:
            data = await self.api_client.fetch_weather(coordinate.lat, coordinate.lng)
        except SECTION_ERRORS as exc:
            self.apply_weather(token, error=_error_message(exc, "Weather request failed."))
            return
        self.apply_weather(token, payload=data)

    async def _run_label_and_summary(self, token: int, coordinate: Coordinate) -> None:
        geocode = self.session.track(
            "geocode",
            asyncio.create_task(self.geocoder.reverse(coordinate.lat, coordinate.lng)),
        )
        try:
            label = await geocode
            failed = False
        except SECTION_ERRORS as exc:
            logger.warning(f"Selection {token}: reverse geocode failed: {exc!r}")
            label, failed = FALLBACK_LABEL, True

        if self.apply_label(token, label, failed=failed) is ApplyOutcome.STALE:
            return

        try:
            data = await self.api_client.fetch_point_summary(
                coordinate.lat, coordinate.lng, label
            )
        except SECTION_ERRORS as exc:
            self.apply_summary(token, error=_error_message(exc, "AI request failed."))
            return
        self.apply_summary(token, response=data)

    def _start_places_search(
        self, coordinate: Coordinate, interests: Sequence[Interest], append: bool
    ) -> None:
        places_token = self.session.begin_places()
        self.state.places_status = "loading"
        self.state.places_error = ""
        if not append:
            self.state.places_groups = []

        self.session.track(
            "places",
            asyncio.create_task(
                self._run_places(places_token, coordinate, list(interests), append)
            ),
        )

    async def _run_places(
        self,
        places_token: int,
        coordinate: Coordinate,
        interests: List[Interest],
        append: bool,
    ) -> None:
        try:
            response = await self.api_client.fetch_places(
                coordinate.lat, coordinate.lng, interests
            )
        except SECTION_ERRORS as exc:
            self.apply_places(
                places_token,
                error=_error_message(exc, "Places request failed."),
                append=append,
            )
            return
        self.apply_places(places_token, response=response, append=append)

    # ---------------- Token-gated appliers ----------------

    def apply_weather(
        self, token: int, payload: Optional[dict] = None, error: Optional[str] = None
    ) -> ApplyOutcome:
        if not self.session.is_current(token):
            logger.debug(f"Dropping stale weather for selection {token}")
            return ApplyOutcome.STALE

        if error is not None:
            self.state.weather_error = error
            self.state.weather_status = "error"
        else:
            self.state.weather = payload
            self.state.weather_error = ""
            self.state.weather_status = "ready"
        self._sync_saved_place()
        return ApplyOutcome.APPLIED

    def apply_label(self, token: int, label: str, failed: bool = False) -> ApplyOutcome:
        if not self.session.is_current(token):
            return ApplyOutcome.STALE
        self.state.place_name = label
        self.state.geo_status = "error" if failed else "ready"
        return ApplyOutcome.APPLIED

    def apply_summary(
        self,
        token: int,
        response: Optional[AiResponse] = None,
        error: Optional[str] = None,
    ) -> ApplyOutcome:
        if not self.session.is_current(token):
            logger.debug(f"Dropping stale summary for selection {token}")
            return ApplyOutcome.STALE

        if error is not None:
            self.state.ai_error = error
        elif response is not None:
            self.state.summary = response.summary or "No summary found."
            self.state.images = list(response.images[:MAX_IMAGES])
            self.state.sources = list(response.sources)
        self.state.status = "ready"
        self._sync_saved_place()
        return ApplyOutcome.APPLIED

    def apply_places(
        self,
        places_token: int,
        response: Optional[PlacesResponse] = None,
        error: Optional[str] = None,
        append: bool = False,
    ) -> ApplyOutcome:
        if not self.session.is_current_places(places_token):
            logger.debug(f"Dropping stale places search {places_token}")
            return ApplyOutcome.STALE

        if error is not None:
            self.state.places_error = error
            self.state.places_status = "error"
            self._sync_saved_place()
            return ApplyOutcome.APPLIED

        incoming = response.groups if response is not None else []
        if append:
            self.state.places_groups = merge_groups(self.state.places_groups, incoming)
        else:
            self.state.places_groups = merge_groups([], incoming)

        has_results = any(group.places for group in incoming)
        if response is not None and response.error and not append and not has_results:
            self.state.places_error = response.error
            self.state.places_status = "error"
        else:
            self.state.places_error = ""
            self.state.places_status = "ready"
        self._sync_saved_place()
        return ApplyOutcome.APPLIED

    def _sync_saved_place(self) -> None:
        """Keep the history (and a matching bookmark) in step with a live view."""
        if self.state.is_cached_view or self.state.status != "ready":
            return
        entry = self.build_saved_place()
        if entry is None:
            return
        self.place_store.upsert_history(entry)
        if self.is_bookmarked:
            self.place_store.merge_into_bookmark(entry)

    # ---------------- User actions ----------------

    async def refine_interests(self, interest_ids: Iterable[str]) -> None:
        """Add optional interest groups for the current coordinate."""
        coords = self.state.coords
        wanted = set(interest_ids)
        if self.disabled or coords is None or not wanted:
            return

        known = {group.id for group in self.state.places_groups}
        interests = [
            interest
            for interest in OPTIONAL_INTERESTS
            if interest.id in wanted and interest.id not in known
        ]
        if not interests:
            return

        self.state.is_cached_view = False
        self._start_places_search(coords, interests, append=True)

    async def refresh_weather(self) -> None:
        coords = self.state.coords
        if self.disabled or coords is None:
            return

        token = self.session.token
        self.state.weather_status = "loading"
        self.state.weather_error = ""
        task = self.session.track(
            "weather", asyncio.create_task(self._run_weather_refresh(token, coords))
        )
        await asyncio.wait([task])

    async def _run_weather_refresh(self, token: int, coordinate: Coordinate) -> None:
        try:
            data = await self.api_client.fetch_weather(coordinate.lat, coordinate.lng)
        except SECTION_ERRORS as exc:
            if not self.session.is_current(token):
                return
            self.state.weather_error = _error_message(exc, "Weather request failed.")
            self.state.weather_status = "error"
        else:
            if not self.session.is_current(token):
                return
            self.state.weather = data
            self.state.weather_status = "ready"
            self.state.weather_error = ""

        if self.state.status != "ready":
            return
        entry = self.build_saved_place()
        if entry is None:
            return
        self.place_store.upsert_history(entry)
        if self.is_bookmarked:
            self.place_store.merge_into_bookmark(entry)

    def toggle_bookmark(self) -> bool:
        entry = self.build_saved_place()
        if entry is None:
            return False
        return self.place_store.toggle_bookmark(entry)

    def clear_saved(self) -> None:
        self.place_store.clear_all()
