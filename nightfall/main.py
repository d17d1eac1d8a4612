"""Entry point for the FastAPI-powered NIGHTFALL catalog service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .concurrency import IdleSignal
from .config import settings
from .database import Database
from .local_catalog import load_local_catalog
from .models import CatalogEntry, EntryRef, MediaType
from .services.cache import PersistentCache
from .services.catalog_service import TV_PAGE_SIZE, CatalogService
from .services.enrichment import EnrichmentScheduler
from .services.listing import ListingClient
from .services.tmdb import TMDBClient
from .storage import DatabaseKeyValueStore, KeyValueStore, MemoryKeyValueStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    listing_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.list_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )

    database: Database | None = None
    store: KeyValueStore
    if settings.database_url:
        database = Database(settings.database_url)
        await database.create_all()
        store = DatabaseKeyValueStore(database.session_factory)
    else:
        logger.info("DATABASE_URL not set; keeping state in memory")
        store = MemoryKeyValueStore()

    metadata_client = (
        TMDBClient(settings, tmdb_http_client) if settings.has_tmdb_credential else None
    )
    cache = PersistentCache(store)
    scheduler = EnrichmentScheduler(
        metadata_client,
        cache,
        idle=IdleSignal(),
        idle_timeout=settings.idle_timeout_seconds,
    )
    catalog_service = CatalogService(
        settings,
        store,
        ListingClient(listing_http_client),
        scheduler,
        cache,
        metadata_client=metadata_client,
        local_catalog=load_local_catalog(settings.local_catalog_path),
    )

    fastapi_app.state.catalog_service = catalog_service
    await catalog_service.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await catalog_service.stop()
        if database is not None:
            await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Curated and remote movie, TV and anime catalogs with progressive metadata enrichment",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        payload = {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return payload


def _entry_ref(payload: dict[str, Any]) -> EntryRef:
    try:
        ref = EntryRef.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()) from exc
    if not (ref.title or ref.external_id):
        raise HTTPException(status_code=400, detail="A title or externalId is required")
    return ref


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/status")
    async def status_endpoint() -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        return JSONResponse(service.pipeline_status())

    @fastapi_app.get("/api/home")
    async def home_endpoint(network: str | None = None) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        return JSONResponse(service.home(network_type=network))

    @fastapi_app.get("/api/sections/{section}")
    async def section_endpoint(
        section: str, visible: int = TV_PAGE_SIZE, network: str | None = None
    ) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        try:
            payload = service.section(section, visible=visible, network_type=network)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return JSONResponse(payload)

    @fastapi_app.get("/api/search")
    async def search_endpoint(q: str = "") -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        results = service.search(q)
        return JSONResponse(
            {
                "query": q,
                "results": [entry.to_payload() for entry in results],
            }
        )

    @fastapi_app.get("/api/my-list")
    async def my_list_endpoint() -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        return JSONResponse({"entries": [entry.to_payload() for entry in service.my_list()]})

    @fastapi_app.post("/api/my-list")
    async def add_to_my_list_endpoint(request: Request) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        payload = await _json_body(request)
        password = payload.pop("password", None)
        raw_entry = payload.get("entry", payload)
        try:
            entry = CatalogEntry.model_validate(raw_entry)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        try:
            added = await service.add(entry, password=password)
        except PermissionError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        return JSONResponse(added.to_payload(), status_code=201)

    @fastapi_app.delete("/api/my-list")
    async def remove_from_my_list_endpoint(request: Request) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        ref = _entry_ref(await _json_body(request))
        removed = await service.remove(ref)
        if not removed:
            raise HTTPException(status_code=404, detail="Title is not in the user list")
        return JSONResponse({"removed": True})

    @fastapi_app.post("/api/select")
    async def select_endpoint(request: Request) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        ref = _entry_ref(await _json_body(request))
        try:
            await service.select(ref)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return JSONResponse(service.detail())

    @fastapi_app.get("/api/detail")
    async def detail_endpoint(
        server: str | None = None, season: int = 1, episode: int = 1
    ) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        payload = service.detail(server=server, season=season, episode=episode)
        if payload is None:
            raise HTTPException(status_code=404, detail="No title selected")
        return JSONResponse(payload)

    @fastapi_app.post("/api/back")
    async def back_endpoint() -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        section = await service.back()
        return JSONResponse({"section": section})

    @fastapi_app.post("/api/navigate/{section}")
    async def navigate_endpoint(section: str) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        try:
            current = await service.navigate(section)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return JSONResponse({"section": current})

    @fastapi_app.get("/api/tmdb/search")
    async def tmdb_search_endpoint(
        query: str, media_type: MediaType = Query("movie", alias="type")
    ) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        try:
            results = await service.search_titles(query, media_type=media_type)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse({"results": [result.to_payload() for result in results]})

    @fastapi_app.get("/api/tmdb/{media_type}/{tmdb_id}")
    async def tmdb_preview_endpoint(media_type: str, tmdb_id: int) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        if media_type not in {"movie", "tv"}:
            raise HTTPException(status_code=400, detail="Unsupported media type")
        try:
            entry = await service.preview_title(media_type, tmdb_id)  # type: ignore[arg-type]
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse(entry.to_payload())


app = create_app()
