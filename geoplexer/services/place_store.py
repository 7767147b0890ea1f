# geoplexer/services/place_store.py

import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from geoplexer.core.logging_config import logger
from geoplexer.models.schemas import SavedPlace
from geoplexer.services.geo_identity import same_for_cache, same_for_lists

BOOKMARKS_STORAGE_KEY = "geoplexer.bookmarks"
HISTORY_STORAGE_KEY = "geoplexer.history"
HISTORY_LIMIT = 40


def now_ms() -> int:
    return int(time.time() * 1000)


def build_place_id(lat: float, lng: float) -> str:
    """Display/storage key (~11 m precision). Not used for equivalence."""
    return f"{lat:.4f},{lng:.4f}"


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileKeyValueStore:
    """One ``<key>.json`` file per key inside ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")


def dedupe_places(places: Iterable[SavedPlace]) -> List[SavedPlace]:
    """Keep the first of every group of equivalent places, in order."""
    kept: List[SavedPlace] = []
    for place in places:
        if any(same_for_lists(existing, place) for existing in kept):
            continue
        kept.append(place)
    return kept


def _merge(base: SavedPlace, entry: SavedPlace, **overrides: Any) -> SavedPlace:
    update = {name: getattr(entry, name) for name in entry.model_fields_set}
    update.update(overrides)
    return base.model_copy(update=update)


class PlaceStore:
    """
    Bookmarks and history of saved places.

    Both lists are loaded once from the key-value store and written back
    after every mutation. Storage failures are logged and otherwise ignored:
    the in-memory lists stay authoritative for the session.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.kv_store = kv_store
        self.clock = clock
        self._bookmarks: List[SavedPlace] = dedupe_places(
            self._load(BOOKMARKS_STORAGE_KEY)
        )
        self._history: List[SavedPlace] = dedupe_places(
            self._load(HISTORY_STORAGE_KEY)
        )[:HISTORY_LIMIT]

    @property
    def bookmarks(self) -> Tuple[SavedPlace, ...]:
        return tuple(self._bookmarks)

    @property
    def history(self) -> Tuple[SavedPlace, ...]:
        return tuple(self._history)

    # ---------------- Persistence ----------------

    def _load(self, key: str) -> List[SavedPlace]:
        try:
            raw = self.kv_store.load(key)
        except Exception as exc:
            # Any read failure degrades to an empty list
            logger.warning(f"PlaceStore: could not read {key!r}: {exc}")
            return []
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(f"PlaceStore: ignoring corrupt data under {key!r}")
            return []
        if not isinstance(parsed, list):
            return []

        places: List[SavedPlace] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            try:
                places.append(SavedPlace.model_validate(item))
            except ValidationError:
                logger.warning(f"PlaceStore: skipping malformed entry in {key!r}")
        return places

    def _save(self, key: str, places: List[SavedPlace]) -> None:
        payload = json.dumps(
            [place.model_dump(mode="json", by_alias=True) for place in places]
        )
        try:
            self.kv_store.save(key, payload)
        except Exception as exc:
            logger.warning(f"PlaceStore: could not write {key!r}: {exc}")

    def _set_bookmarks(self, places: List[SavedPlace]) -> None:
        self._bookmarks = places
        self._save(BOOKMARKS_STORAGE_KEY, places)

    def _set_history(self, places: List[SavedPlace]) -> None:
        self._history = places
        self._save(HISTORY_STORAGE_KEY, places)

    # ---------------- Lookups ----------------

    def find_cached(self, coordinate: Any) -> Optional[SavedPlace]:
        for place in self._bookmarks:
            if same_for_cache(place, coordinate):
                return place
        for place in self._history:
            if same_for_cache(place, coordinate):
                return place
        return None

    def is_bookmarked(self, record: Any) -> bool:
        return any(same_for_lists(place, record) for place in self._bookmarks)

    # ---------------- Mutations ----------------

    def upsert_history(self, entry: SavedPlace) -> SavedPlace:
        existing = next(
            (place for place in self._history if same_for_lists(place, entry)),
            None,
        )
        base = existing if existing is not None else entry
        merged = _merge(base, entry, saved_at=self.clock())

        rest = [place for place in self._history if not same_for_lists(place, merged)]
        self._set_history(([merged] + rest)[:HISTORY_LIMIT])
        return merged

    def toggle_bookmark(self, entry: SavedPlace) -> bool:
        """Returns True when the entry ends up bookmarked."""
        rest = [place for place in self._bookmarks if not same_for_lists(place, entry)]
        if len(rest) != len(self._bookmarks):
            self._set_bookmarks(rest)
            logger.info(f"PlaceStore: removed bookmark {entry.id} ({entry.title})")
            return False

        self._set_bookmarks([entry] + rest)
        logger.info(f"PlaceStore: bookmarked {entry.id} ({entry.title})")
        return True

    def merge_into_bookmark(self, entry: SavedPlace) -> bool:
        updated = False
        next_bookmarks: List[SavedPlace] = []
        for place in self._bookmarks:
            if same_for_lists(place, entry):
                place = _merge(place, entry, saved_at=place.saved_at)
                updated = True
            next_bookmarks.append(place)

        if updated:
            self._set_bookmarks(next_bookmarks)
        return updated

    def clear_all(self) -> None:
        self._set_history([])
        self._set_bookmarks([])
