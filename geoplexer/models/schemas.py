# geoplexer/models/schemas.py

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


SectionStatus = Literal["idle", "loading", "ready", "error"]


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Interest(CamelModel):
    id: str
    label: str
    query: str


class PlaceItem(CamelModel):
    title: str = Field(min_length=1)
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    category: Optional[str] = None
    address: Optional[str] = None
    thumbnail_url: Optional[str] = None
    link: Optional[str] = None


class PlaceGroup(CamelModel):
    id: str
    label: str
    query: str
    places: List[PlaceItem] = Field(default_factory=list)
    error: Optional[str] = None


class PlacesResponse(CamelModel):
    groups: List[PlaceGroup] = Field(default_factory=list)
    error: Optional[str] = None


class AiResponse(CamelModel):
    summary: str
    facts: List[str] = Field(default_factory=list)
    nearby: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)


class SavedPlace(CamelModel):
    """Snapshot of an enriched selection, as kept in bookmarks and history."""

    id: str
    title: str = ""
    lat: float
    lng: float
    summary: str = ""
    images: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    places_groups: List[PlaceGroup] = Field(default_factory=list)
    places_status: SectionStatus = "idle"
    places_error: str = ""
    weather: Optional[Dict[str, Any]] = None
    weather_status: SectionStatus = "idle"
    weather_error: str = ""
    image: Optional[str] = None
    saved_at: int = 0


class ViewState(CamelModel):
    """Everything the selection orchestrator publishes for display."""

    status: SectionStatus = "idle"
    error: str = ""
    coords: Optional[Coordinate] = None
    geo_status: SectionStatus = "idle"
    place_name: str = ""
    summary: str = ""
    ai_error: str = ""
    images: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    places_groups: List[PlaceGroup] = Field(default_factory=list)
    places_status: SectionStatus = "idle"
    places_error: str = ""
    weather: Optional[Dict[str, Any]] = None
    weather_status: SectionStatus = "idle"
    weather_error: str = ""
    is_cached_view: bool = False
