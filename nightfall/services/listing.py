"""Client for the third-party listing endpoints that seed remote catalogs."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..concurrency import CancellationToken, OperationCancelled
from ..models import CatalogEntry, ListKind
from ..utils import ensure_http_url, placeholder_art
from .playback import default_servers

logger = logging.getLogger(__name__)

MAX_ITEMS: dict[ListKind, int] = {
    "movie": 240,
    "tv": 1500,
    "anime": 1500,
}

_POSTER_KEYS = ("poster", "poster_path", "posterUrl", "poster_url", "image", "img")
_BACKDROP_KEYS = (
    "backdrop",
    "backdrop_path",
    "backdropUrl",
    "backdrop_url",
    "cover",
    "coverUrl",
)


class ListingClient:
    """Fetches the movie, tv and anime lists and maps them to stub entries."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def fetch_list(
        self, kind: ListKind, cancel: CancellationToken | None = None
    ) -> list[CatalogEntry]:
        """Return stub entries for ``kind``; any failure yields an empty list."""

        try:
            request = self._client.get(f"/{kind}")
            if cancel is not None:
                response = await cancel.guard(request)
            else:
                response = await request
        except OperationCancelled:
            logger.debug("Listing fetch for %s cancelled", kind)
            return []
        except httpx.HTTPError as exc:
            logger.warning("Listing fetch for %s failed: %s", kind, exc)
            return []

        if not response.is_success:
            logger.warning(
                "Listing fetch for %s returned HTTP %s", kind, response.status_code
            )
            return []

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Listing payload for %s is not valid JSON", kind)
            return []

        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []

        stubs: list[CatalogEntry] = []
        for item in items:
            if len(stubs) >= MAX_ITEMS[kind]:
                break
            stub = self._build_stub(kind, item)
            if stub is not None:
                stubs.append(stub)
        logger.info("Loaded %s %s stubs", len(stubs), kind)
        return stubs

    @staticmethod
    def _build_stub(kind: ListKind, item: Any) -> CatalogEntry | None:
        if not isinstance(item, dict):
            return None
        external_id = str(item.get("tmdb") or "").strip()
        title = item.get("title")
        if not external_id or not title:
            return None

        poster = placeholder_art(kind)
        backdrop = placeholder_art(kind, variant="backdrop")
        genre = ""
        if kind == "anime":
            poster = _first_url(item, _POSTER_KEYS) or poster
            backdrop = _first_url(item, _BACKDROP_KEYS) or backdrop
            genre = "Anime"

        fields: dict[str, Any] = {
            "title": str(title),
            "external_id": external_id,
            "media_type": "movie" if kind == "movie" else "tv",
            "poster_ref": poster,
            "backdrop_ref": backdrop,
            "genre_label": genre,
            "director": "Various",
            "servers": default_servers(kind, external_id),
        }
        if kind != "movie":
            fields.update(seasons=1, episode_count=10, episodes_per_season=[10])

        try:
            return CatalogEntry(**fields)
        except ValidationError:
            return None


def _first_url(item: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        url = ensure_http_url(item.get(key))
        if url:
            return url
    return None
