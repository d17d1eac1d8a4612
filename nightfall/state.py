"""Explicit application state and its persistence in the key/value store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from .models import CatalogEntry
from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "section": "nightfall.currentSection",
    "selected": "nightfall.selectedMovieTitle",
    "detail": "nightfall.isDetailView",
    "last_section": "nightfall.lastSection",
    "user_added": "nightfall.userAddedMovies",
}

SECTIONS: tuple[str, ...] = ("home", "movies", "tvshows", "new", "mylist", "addmovie")
DEFAULT_SECTION = "home"


@dataclass
class AppState:
    """UI state owned by the catalog service for the lifetime of the process."""

    current_section: str = DEFAULT_SECTION
    selected: CatalogEntry | None = None
    is_detail_view: bool = False
    last_section: str = DEFAULT_SECTION
    user_added: list[CatalogEntry] = field(default_factory=list)
    # Title restored from storage, resolved once the catalog is available.
    pending_selected_title: str | None = None


class StateRepository:
    """Reads and writes :class:`AppState` fields under their storage keys."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def load(self) -> AppState:
        section = await self._get(STORAGE_KEYS["section"])
        last_section = await self._get(STORAGE_KEYS["last_section"])
        selected_title = await self._get(STORAGE_KEYS["selected"])
        detail_flag = await self._get(STORAGE_KEYS["detail"])
        return AppState(
            current_section=section if section in SECTIONS else DEFAULT_SECTION,
            last_section=last_section if last_section in SECTIONS else DEFAULT_SECTION,
            is_detail_view=detail_flag == "true" and bool(selected_title),
            user_added=await self._load_user_added(),
            pending_selected_title=selected_title or None,
        )

    async def save_section(self, section: str) -> None:
        await self._set(STORAGE_KEYS["section"], section)

    async def save_last_section(self, section: str) -> None:
        await self._set(STORAGE_KEYS["last_section"], section)

    async def save_selected(self, entry: CatalogEntry | None) -> None:
        if entry is None:
            await self._remove(STORAGE_KEYS["selected"])
        else:
            await self._set(STORAGE_KEYS["selected"], entry.title)

    async def save_detail_view(self, is_detail_view: bool) -> None:
        await self._set(STORAGE_KEYS["detail"], "true" if is_detail_view else "false")

    async def save_user_added(self, entries: list[CatalogEntry]) -> None:
        await self._set(
            STORAGE_KEYS["user_added"],
            json.dumps([entry.to_payload() for entry in entries]),
        )

    async def _load_user_added(self) -> list[CatalogEntry]:
        raw = await self._get(STORAGE_KEYS["user_added"])
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed user-added list in storage")
            return []
        if not isinstance(data, list):
            return []
        entries: list[CatalogEntry] = []
        for item in data:
            try:
                entries.append(CatalogEntry.model_validate(item))
            except ValidationError:
                logger.debug("Skipping invalid user-added entry: %r", item)
        return entries

    async def _get(self, key: str) -> str | None:
        try:
            return await self._store.get(key)
        except StorageError as exc:
            logger.debug("State read for %s failed: %s", key, exc)
            return None

    async def _set(self, key: str, value: str) -> None:
        try:
            await self._store.set(key, value)
        except StorageError as exc:
            logger.debug("State write for %s ignored: %s", key, exc)

    async def _remove(self, key: str) -> None:
        try:
            await self._store.remove(key)
        except StorageError as exc:
            logger.debug("State removal for %s ignored: %s", key, exc)
