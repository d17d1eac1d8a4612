"""Tests for the catalog service orchestration and state handling."""

from __future__ import annotations

import hashlib
import json
import random
from typing import Any

import httpx
import pytest

from nightfall.config import Settings
from nightfall.models import CatalogEntry, EntryRef
from nightfall.services.cache import CACHE_NAMESPACES, PersistentCache
from nightfall.services.catalog_service import CatalogService
from nightfall.services.enrichment import EnrichmentScheduler
from nightfall.services.listing import ListingClient
from nightfall.state import STORAGE_KEYS
from nightfall.storage import MemoryKeyValueStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class MarkingClient:
    async def enrich(self, entry, *, kind, cancel=None):
        return entry.model_copy(update={"description": f"{kind} details"})


def build_service(
    lists: dict[str, list[dict[str, Any]]] | None = None,
    *,
    store: MemoryKeyValueStore | None = None,
    client: Any = None,
    **overrides: Any,
) -> tuple[CatalogService, MemoryKeyValueStore]:
    """Return a service whose listing endpoints serve ``lists``."""

    def handler(request: httpx.Request) -> httpx.Response:
        kind = request.url.path.rsplit("/", 1)[-1]
        if lists is None or kind not in lists:
            return httpx.Response(503)
        return httpx.Response(200, json={"data": lists[kind]})

    base = {"HIGH_PRIORITY_DELAY_MS": 0, "LOW_PRIORITY_DELAY_MS": 0}
    base.update(overrides)
    settings = Settings(_env_file=None, **base)  # type: ignore[arg-type]
    store = store or MemoryKeyValueStore()
    cache = PersistentCache(store)
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://vidsrc.example/api/list"
    )
    scheduler = EnrichmentScheduler(client, cache, idle_timeout=0)
    service = CatalogService(
        settings,
        store,
        ListingClient(http_client),
        scheduler,
        cache,
        rng=random.Random(7),
    )
    return service, store


@pytest.mark.anyio("asyncio")
async def test_pipelines_load_and_enrich_remote_lists() -> None:
    lists = {
        "movie": [{"tmdb": 42, "title": "Foo"}],
        "tv": [{"tmdb": 43, "title": "Bar"}],
        "anime": [{"tmdb": 44, "title": "Monster"}, {"tmdb": 45, "title": "Naruto"}],
    }
    service, store = build_service(lists, client=MarkingClient())

    await service.start()
    await service.wait_until_settled()
    await service.stop()

    assert [entry.description for entry in service.remote("movie")] == ["movie details"]
    assert [entry.description for entry in service.remote("anime")] == [
        "anime details",
        "anime details",
    ]
    cached = json.loads(await store.get(CACHE_NAMESPACES["tv"]))
    assert cached["data"][0]["description"] == "tv details"
    titles = [entry.title for entry in service.catalog()]
    assert {"Foo", "Bar", "Monster", "Naruto", "Inception"} <= set(titles)
    assert titles.index("Inception") < titles.index("Foo")


@pytest.mark.anyio("asyncio")
async def test_failed_listing_keeps_cached_entries() -> None:
    store = MemoryKeyValueStore()
    cache = PersistentCache(store)
    await cache.write(CACHE_NAMESPACES["movie"], [CatalogEntry(title="Cached Film", external_id="9")])
    service, _ = build_service(None, store=store)

    await service.start()
    await service.wait_until_settled()
    await service.stop()

    assert [entry.title for entry in service.remote("movie")] == ["Cached Film"]
    assert any(entry.title == "Cached Film" for entry in service.combined_movies())


@pytest.mark.anyio("asyncio")
async def test_pinned_anime_lead_my_list() -> None:
    lists = {"anime": [{"tmdb": 1, "title": "Monster"}, {"tmdb": 2, "title": "Naruto"}]}
    service, _ = build_service(lists)

    await service.start()
    await service.wait_until_settled()
    await service.stop()

    titles = [entry.title for entry in service.my_list()]
    assert titles[0] == "Naruto"
    assert titles[1:4] == ["Interstellar", "Breaking Bad", "Spirited Away"]
    assert titles[-1] == "Monster"
    assert titles.count("Naruto") == 1


@pytest.mark.anyio("asyncio")
async def test_select_and_back_persist_state() -> None:
    service, store = build_service()

    assert await service.navigate("movies") == "movies"
    selected = await service.select(EntryRef(title="Inception"))

    assert selected.external_id == "27205"
    assert await store.get(STORAGE_KEYS["selected"]) == "Inception"
    assert await store.get(STORAGE_KEYS["detail"]) == "true"
    assert await store.get(STORAGE_KEYS["last_section"]) == "movies"
    detail = service.detail()
    assert detail is not None
    assert detail["entry"]["title"] == "Inception"
    assert len(detail["recommended"]) == 5
    assert all(item["title"] != "Inception" for item in detail["recommended"])

    assert await service.back() == "movies"
    assert service.detail() is None
    assert await store.get(STORAGE_KEYS["selected"]) is None
    assert await store.get(STORAGE_KEYS["detail"]) == "false"


@pytest.mark.anyio("asyncio")
async def test_select_unknown_title_raises() -> None:
    service, _ = build_service()

    with pytest.raises(KeyError):
        await service.select(EntryRef(title="Nope"))


@pytest.mark.anyio("asyncio")
async def test_start_restores_selection_from_storage() -> None:
    store = MemoryKeyValueStore()
    await store.set(STORAGE_KEYS["section"], "tvshows")
    await store.set(STORAGE_KEYS["selected"], "Breaking Bad")
    await store.set(STORAGE_KEYS["detail"], "true")
    service, _ = build_service(None, store=store)

    await service.start()
    await service.stop()

    assert service.state.current_section == "tvshows"
    assert service.state.selected is not None
    assert service.state.selected.title == "Breaking Bad"
    detail = service.detail(season=2, episode=4)
    assert detail is not None
    assert detail["playback"]["season"] == 2
    assert detail["playback"]["episode"] == 4


@pytest.mark.anyio("asyncio")
async def test_add_requires_matching_password() -> None:
    password_hash = hashlib.sha256(b"letmein").hexdigest()
    service, store = build_service(ADMIN_PASSWORD_HASH=password_hash)
    entry = CatalogEntry(title="Heat", external_id="949", media_type="movie")

    with pytest.raises(PermissionError):
        await service.add(entry, password="wrong")

    await service.add(entry, password="letmein")

    assert any(item.title == "Heat" for item in service.my_list())
    stored = json.loads(await store.get(STORAGE_KEYS["user_added"]))
    assert stored[0]["externalId"] == "949"

    assert await service.remove(EntryRef(external_id="949")) is True
    assert await service.remove(EntryRef(external_id="949")) is False
    assert json.loads(await store.get(STORAGE_KEYS["user_added"])) == []


@pytest.mark.anyio("asyncio")
async def test_user_added_entries_are_restored() -> None:
    store = MemoryKeyValueStore()
    await store.set(
        STORAGE_KEYS["user_added"],
        json.dumps([{"title": "Heat", "externalId": "949"}, {"title": ""}]),
    )
    service, _ = build_service(None, store=store)

    await service.start()
    await service.stop()

    assert [entry.title for entry in service.state.user_added] == ["Heat"]


def test_search_matches_substrings_case_insensitively() -> None:
    service, _ = build_service()

    assert [entry.title for entry in service.search("DARK")] == ["The Dark Knight"]
    assert service.search("   ") == []


def test_sections_and_home_layout() -> None:
    service, _ = build_service()

    home = service.home()
    assert [row["id"] for row in home["rows"]] == [
        "trending",
        "movies",
        "new",
        "mylist-home",
        "tvshows",
    ]
    assert home["banner"]["title"] in {entry.title for entry in service.local_catalog.trending}

    shows = service.section("tvshows", visible=2)
    assert shows["hasMore"] is True
    assert [row["id"] for row in shows["rows"]] == ["TvShows0"]
    assert len(shows["rows"][0]["entries"]) == 2

    movies = service.section("movies")
    assert movies["rows"][0]["id"] == "Movies0"
    assert movies["hasMore"] is False

    with pytest.raises(ValueError):
        service.section("nowhere")


@pytest.mark.anyio("asyncio")
async def test_metadata_lookups_require_credential() -> None:
    service, _ = build_service()

    with pytest.raises(ValueError):
        await service.search_titles("Heat", media_type="movie")
