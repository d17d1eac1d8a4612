"""High level orchestration of curated and remote catalogs."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import random
from contextlib import suppress
from typing import Any, Sequence

from ..concurrency import CancellationToken
from ..config import Settings
from ..local_catalog import LocalCatalog, default_local_catalog
from ..merge import merge, pinned_picks
from ..models import LIST_KINDS, CatalogEntry, CatalogRow, EntryRef, ListKind, MediaType
from ..state import SECTIONS, AppState, StateRepository
from ..storage import KeyValueStore
from ..utils import normalize
from .cache import PersistentCache
from .enrichment import EnrichmentScheduler, KindPolicy, default_policies
from .listing import ListingClient
from .playback import resolve_playback
from .tmdb import TMDBClient, TMDBSearchResult

logger = logging.getLogger(__name__)

ROW_SIZE = 6
TV_PAGE_SIZE = 60
RECOMMENDED_COUNT = 5


class CatalogService:
    """Owns the application state and the per-kind enrichment pipelines."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        listing: ListingClient,
        scheduler: EnrichmentScheduler,
        cache: PersistentCache,
        *,
        metadata_client: TMDBClient | None = None,
        local_catalog: LocalCatalog | None = None,
        policies: dict[ListKind, KindPolicy] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._state_repository = StateRepository(store)
        self._listing = listing
        self._scheduler = scheduler
        self._cache = cache
        self._metadata_client = metadata_client
        self._local = local_catalog or default_local_catalog()
        self._policies = policies or default_policies(settings)
        self._random = rng or random.Random()

        self._state = AppState()
        self._remote: dict[ListKind, list[CatalogEntry]] = {kind: [] for kind in LIST_KINDS}
        self._cancel = CancellationToken()
        self._tasks: dict[ListKind, asyncio.Task[None]] = {}
        self._idle_task: asyncio.Task[None] | None = None

        # Shuffled once per process, like the curated lanes themselves.
        self._shuffled_trending = self._shuffled(self._local.trending)
        self._shuffled_newpopular = self._shuffled(self._local.newpopular)

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def local_catalog(self) -> LocalCatalog:
        return self._local

    async def start(self) -> None:
        """Restore persisted state and cached lists, then launch the pipelines."""

        self._state = await self._state_repository.load()
        await self._restore_cached_lists()
        self._resolve_restored_selection()

        if self._tasks:
            return
        self._cancel = CancellationToken()
        for kind in LIST_KINDS:
            self._tasks[kind] = asyncio.create_task(self._run_pipeline(kind))
        self._idle_task = asyncio.create_task(self._signal_idle_when_settled())

    async def stop(self) -> None:
        """Cancel the pipelines; already committed batches are kept."""

        self._cancel.cancel()
        tasks = list(self._tasks.values())
        if self._idle_task is not None:
            tasks.append(self._idle_task)
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self._idle_task = None

    async def wait_until_settled(self) -> None:
        """Wait for every pipeline to finish or be cancelled."""

        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def remote(self, kind: ListKind) -> list[CatalogEntry]:
        return list(self._remote[kind])

    def pipeline_status(self) -> dict[str, Any]:
        return {
            "enrichment": self._scheduler.enabled,
            "pipelines": {
                kind: {
                    **self._scheduler.status(kind).to_payload(),
                    "entries": len(self._remote[kind]),
                }
                for kind in LIST_KINDS
            },
        }

    async def _restore_cached_lists(self) -> None:
        for kind in LIST_KINDS:
            cached = await self._cache.read(
                self._policies[kind].namespace, self._settings.cache_ttl_ms
            )
            if cached:
                self._remote[kind] = cached
                logger.info("Restored %s cached %s entries", len(cached), kind)

    def _resolve_restored_selection(self) -> None:
        title = self._state.pending_selected_title
        self._state.pending_selected_title = None
        if not title:
            return
        selected = next((entry for entry in self.catalog() if entry.title == title), None)
        self._state.selected = selected
        self._state.is_detail_view = self._state.is_detail_view and selected is not None

    async def _run_pipeline(self, kind: ListKind) -> None:
        policy = self._policies[kind]
        try:
            stubs = await self._listing.fetch_list(kind, self._cancel)
            if not stubs:
                # Keep whatever the cache restored.
                return
            self._remote[kind] = stubs
            await self._cache.write(policy.namespace, stubs)
            await self._scheduler.run(
                policy, stubs, self._cancel, on_commit=self._apply_commit
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception("Catalog pipeline for %s failed: %s", kind, exc)

    def _apply_commit(self, kind: ListKind, entries: list[CatalogEntry]) -> None:
        self._remote[kind] = entries

    async def _signal_idle_when_settled(self) -> None:
        # Low-priority anime batches wait until movies and tv have finished.
        foreground = [self._tasks[kind] for kind in ("movie", "tv") if kind in self._tasks]
        if foreground:
            await asyncio.wait(foreground)
        self._scheduler.idle.notify()

    # Collections -----------------------------------------------------

    def pinned_anime(self) -> list[CatalogEntry]:
        return pinned_picks(self._remote["anime"], self._settings.priority_keywords)

    def my_list(self) -> list[CatalogEntry]:
        return merge(
            self.pinned_anime(),
            self._local.mylist,
            self._state.user_added,
            self._remote["anime"],
        )

    def catalog(self) -> list[CatalogEntry]:
        """Every searchable title, curated entries first."""

        return merge(
            self._local.all,
            self._state.user_added,
            self._remote["movie"],
            self._remote["tv"],
            self._remote["anime"],
        )

    def combined_movies(self) -> list[CatalogEntry]:
        return merge(self._local.movies, self._remote["movie"])

    def combined_tvshows(self) -> list[CatalogEntry]:
        return merge(self._local.tvshows, self._remote["tv"])

    def search(self, term: str) -> list[CatalogEntry]:
        needle = normalize(term)
        if not needle:
            return []
        return [entry for entry in self.catalog() if needle in entry.title.lower()]

    def recommended(self, limit: int = RECOMMENDED_COUNT) -> list[CatalogEntry]:
        selected = self._state.selected
        if selected is None:
            return []
        candidates = [entry for entry in self._local.all if entry.title != selected.title]
        return self._shuffled(candidates)[:limit]

    # Views -------------------------------------------------------------

    def home(self, *, network_type: str | None = None) -> dict[str, Any]:
        banner = self._shuffled_trending[0] if self._shuffled_trending else None
        if banner is None and self._local.trending:
            banner = self._local.trending[0]
        rows = [
            CatalogRow(id="trending", title="Trending Now", entries=list(self._shuffled_trending)),
            CatalogRow(
                id="movies",
                title="Movies",
                entries=self._shuffled(self.combined_movies())[:ROW_SIZE],
            ),
            CatalogRow(
                id="new",
                title="New & Popular",
                entries=list(self._shuffled_newpopular[:ROW_SIZE]),
            ),
            CatalogRow(id="mylist-home", title="My List", entries=self.my_list()[:ROW_SIZE]),
            CatalogRow(
                id="tvshows",
                title="Tv Shows",
                entries=self._shuffled(self.combined_tvshows())[:ROW_SIZE],
            ),
        ]
        return {
            "section": "home",
            "banner": banner.to_payload(network_type) if banner else None,
            "rows": [row.to_payload(network_type) for row in rows],
        }

    def section(
        self,
        section: str,
        *,
        visible: int = TV_PAGE_SIZE,
        network_type: str | None = None,
    ) -> dict[str, Any]:
        """Return the rows rendered for a navigation section."""

        if section not in SECTIONS:
            raise ValueError(f"Unknown section {section}")
        if section == "home":
            return self.home(network_type=network_type)
        if section == "addmovie":
            return {"section": section, "rows": []}

        has_more = False
        if section == "movies":
            rows = _chunk_rows("Movies", "Movies", self.combined_movies())
        elif section == "tvshows":
            shows = self.combined_tvshows()
            visible = max(visible, 0)
            rows = _chunk_rows("TvShows", "Tv Shows", shows[:visible])
            has_more = visible < len(shows)
        elif section == "new":
            rows = _chunk_rows("New", "New & Popular", self._local.newpopular)
        else:
            rows = _chunk_rows("MyList", "My List", self.my_list())
        return {
            "section": section,
            "rows": [row.to_payload(network_type) for row in rows],
            "hasMore": has_more,
        }

    def detail(
        self,
        *,
        server: str | None = None,
        season: int = 1,
        episode: int = 1,
    ) -> dict[str, Any] | None:
        selected = self._state.selected
        if not (self._state.is_detail_view and selected is not None):
            return None
        return {
            "entry": selected.to_payload(),
            "playback": resolve_playback(
                selected, server_label=server, season=season, episode=episode
            ),
            "recommended": [entry.to_payload() for entry in self.recommended()],
        }

    # Actions -----------------------------------------------------------

    def find(self, ref: EntryRef) -> CatalogEntry | None:
        return next((entry for entry in self.catalog() if ref.matches(entry)), None)

    async def select(self, ref: EntryRef) -> CatalogEntry:
        """Open the detail view for the referenced title."""

        entry = self.find(ref)
        if entry is None:
            raise KeyError(f"Title {ref.title or ref.external_id} not found")
        self._state.last_section = self._state.current_section
        await self._state_repository.save_last_section(self._state.last_section)
        self._state.selected = entry
        self._state.is_detail_view = True
        await self._state_repository.save_selected(entry)
        await self._state_repository.save_detail_view(True)
        return entry

    async def back(self) -> str:
        """Leave the detail view and return to the section it was opened from."""

        self._state.selected = None
        self._state.is_detail_view = False
        self._state.current_section = self._state.last_section or "home"
        await self._state_repository.save_selected(None)
        await self._state_repository.save_detail_view(False)
        await self._state_repository.save_section(self._state.current_section)
        return self._state.current_section

    async def navigate(self, section: str) -> str:
        if section not in SECTIONS:
            raise ValueError(f"Unknown section {section}")
        self._state.selected = None
        self._state.is_detail_view = False
        self._state.current_section = section
        await self._state_repository.save_selected(None)
        await self._state_repository.save_detail_view(False)
        await self._state_repository.save_section(section)
        return section

    async def add(self, entry: CatalogEntry, *, password: str | None = None) -> CatalogEntry:
        """Append a title to the user's list after the admin password check."""

        expected = self._settings.admin_password_hash
        if expected:
            provided = hashlib.sha256((password or "").strip().encode("utf-8")).hexdigest()
            if not hmac.compare_digest(provided, expected.lower()):
                raise PermissionError("Incorrect password. Access denied.")
        self._state.user_added = [*self._state.user_added, entry]
        await self._state_repository.save_user_added(self._state.user_added)
        return entry

    async def remove(self, ref: EntryRef) -> bool:
        remaining = [entry for entry in self._state.user_added if not ref.matches(entry)]
        removed = len(remaining) != len(self._state.user_added)
        if removed:
            self._state.user_added = remaining
            await self._state_repository.save_user_added(remaining)
        return removed

    async def search_titles(
        self, query: str, *, media_type: MediaType
    ) -> list[TMDBSearchResult]:
        return await self._require_metadata_client().search(query, media_type=media_type)

    async def preview_title(self, media_type: MediaType, tmdb_id: int) -> CatalogEntry:
        return await self._require_metadata_client().build_user_entry(media_type, tmdb_id)

    def _require_metadata_client(self) -> TMDBClient:
        if self._metadata_client is None:
            raise ValueError("TMDB API key is not configured")
        return self._metadata_client

    def _shuffled(self, entries: Sequence[CatalogEntry]) -> list[CatalogEntry]:
        shuffled = list(entries)
        self._random.shuffle(shuffled)
        return shuffled


def _chunk_rows(
    prefix: str, title: str, entries: Sequence[CatalogEntry], size: int = ROW_SIZE
) -> list[CatalogRow]:
    return [
        CatalogRow(id=f"{prefix}{offset}", title=title, entries=list(entries[offset : offset + size]))
        for offset in range(0, len(entries), size)
    ]
