"""Timestamped, TTL-checked catalog snapshots on top of a key/value store."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from pydantic import ValidationError

from ..models import CacheRecord, CatalogEntry
from ..storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

CACHE_NAMESPACES = {
    "movie": "nightfall.cache.vidsrcMovies",
    "tv": "nightfall.cache.vidsrcTvShows",
    "anime": "nightfall.cache.vidsrcAnime",
}


def epoch_ms() -> int:
    return int(time.time() * 1000)


class PersistentCache:
    """Best-effort cache: reads miss softly and writes fail silently."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self._store = store
        self._clock = clock

    async def read(self, namespace: str, ttl_ms: int) -> list[CatalogEntry] | None:
        """Return the cached payload, or ``None`` if absent, malformed or expired."""

        try:
            raw = await self._store.get(namespace)
        except StorageError as exc:
            logger.debug("Cache read for %s failed: %s", namespace, exc)
            return None
        if not raw:
            return None

        try:
            record = CacheRecord.model_validate_json(raw)
        except ValidationError:
            logger.debug("Discarding malformed cache record under %s", namespace)
            return None

        if not record.ts or self._clock() - record.ts > ttl_ms:
            return None
        return record.data

    async def write(self, namespace: str, payload: Sequence[CatalogEntry]) -> None:
        """Replace the namespace's value with a fresh timestamped record."""

        raw = CacheRecord(ts=self._clock(), data=list(payload)).model_dump_json(by_alias=True)
        try:
            await self._store.set(namespace, raw)
        except StorageError as exc:
            logger.debug("Cache write for %s ignored: %s", namespace, exc)
