"""Utilities for resolving metadata from The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..concurrency import CancellationToken, OperationCancelled
from ..config import Settings
from ..models import CatalogEntry, ListKind, MediaType, PlaybackServer
from ..utils import (
    BACKDROP_BASE_URL,
    POSTER_BASE_URL,
    build_image_url,
    extract_imdb_id,
    poster_url,
)
from .playback import build_servers, two_embed_url, vidsrc_embed_url

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TMDBSearchResult:
    """Normalized view of a TMDB search result."""

    tmdb_id: int
    title: str
    media_type: MediaType
    overview: str | None
    poster_path: str | None
    release_date: str | None
    year: int | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "tmdbId": self.tmdb_id,
            "title": self.title,
            "mediaType": self.media_type,
            "overview": self.overview,
            "posterUrl": poster_url(self.poster_path),
            "releaseDate": self.release_date,
            "year": self.year,
        }


class TMDBClient:
    """Client responsible for looking up and enriching titles on TMDB."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.has_tmdb_credential:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client

    async def enrich(
        self,
        entry: CatalogEntry,
        *,
        kind: ListKind,
        cancel: CancellationToken | None = None,
    ) -> CatalogEntry:
        """Return ``entry`` upgraded with TMDB details, or unchanged on failure."""

        if not entry.external_id:
            return entry

        try:
            if kind == "anime":
                # Anime listings mix series and films under one numeric id space.
                media_type: MediaType = "tv"
                details = await self.fetch_details("tv", entry.external_id, cancel=cancel)
                if details is None:
                    media_type = "movie"
                    details = await self.fetch_details(
                        "movie", entry.external_id, cancel=cancel
                    )
            else:
                media_type = kind
                details = await self.fetch_details(kind, entry.external_id, cancel=cancel)
        except OperationCancelled:
            return entry

        if details is None:
            return entry
        return self.apply_details(entry, details, media_type=media_type, kind=kind)

    async def fetch_details(
        self,
        media_type: MediaType,
        tmdb_id: str | int,
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[str, Any] | None:
        """Fetch details (with external ids) for a TMDB entity."""

        params = {
            "api_key": self._settings.tmdb_api_key,
            "append_to_response": "external_ids",
        }
        return await self._get_json(f"/{media_type}/{tmdb_id}", params, cancel=cancel)

    async def fetch_credits(
        self, media_type: MediaType, tmdb_id: str | int
    ) -> dict[str, Any] | None:
        params = {"api_key": self._settings.tmdb_api_key}
        return await self._get_json(f"/{media_type}/{tmdb_id}/credits", params)

    async def search(self, query: str, *, media_type: MediaType) -> list[TMDBSearchResult]:
        """Return TMDB search matches for ``query``."""

        normalized_query = (query or "").strip()
        if not normalized_query:
            return []
        params = {
            "api_key": self._settings.tmdb_api_key,
            "query": normalized_query,
            "include_adult": "false",
            "page": 1,
        }
        data = await self._get_json(f"/search/{media_type}", params)
        if data is None:
            return []
        results = data.get("results")
        if not isinstance(results, list):
            return []

        matches: list[TMDBSearchResult] = []
        for candidate in results:
            if not isinstance(candidate, dict) or candidate.get("id") is None:
                continue
            title = candidate.get("title") or candidate.get("name")
            if not title:
                continue
            release_date = candidate.get("release_date") or candidate.get("first_air_date")
            matches.append(
                TMDBSearchResult(
                    tmdb_id=int(candidate["id"]),
                    title=str(title),
                    media_type=media_type,
                    overview=candidate.get("overview"),
                    poster_path=candidate.get("poster_path"),
                    release_date=release_date or None,
                    year=self._extract_year(candidate, media_type),
                )
            )
        return matches

    async def build_user_entry(
        self, media_type: MediaType, tmdb_id: str | int
    ) -> CatalogEntry:
        """Assemble a complete entry for the add-title form."""

        details = await self.fetch_details(media_type, tmdb_id)
        if details is None:
            raise ValueError("Failed to fetch details")
        credits = await self.fetch_credits(media_type, tmdb_id) or {}

        external = details.get("external_ids") or {}
        if media_type == "tv":
            imdb_id = external.get("imdb_id") or None
            if not imdb_id:
                raise ValueError(
                    "TMDb did not return an IMDb ID for this TV show. "
                    "Please try a different result."
                )
        else:
            imdb_id = details.get("imdb_id") or external.get("imdb_id") or None

        crew = [person for person in credits.get("crew") or [] if isinstance(person, dict)]
        if media_type == "tv":
            director = next(
                (
                    person.get("name")
                    for person in crew
                    if person.get("job") == "Creator"
                    or person.get("known_for_department") == "Directing"
                ),
                None,
            )
        else:
            director = next(
                (person.get("name") for person in crew if person.get("job") == "Director"),
                None,
            )
        cast_names = [
            str(actor.get("name"))
            for actor in (credits.get("cast") or [])[:5]
            if isinstance(actor, dict) and actor.get("name")
        ]

        if media_type == "tv":
            run_times = details.get("episode_run_time") or []
            duration = f"{run_times[0] if run_times else 'N/A'}m"
            countries = ", ".join(str(code) for code in details.get("origin_country") or [])
            release_date = details.get("first_air_date") or ""
            title = details.get("name")
        else:
            runtime = details.get("runtime")
            duration = (
                f"{runtime // 60}h {runtime % 60}m" if isinstance(runtime, int) else "N/A"
            )
            countries = ", ".join(
                str(country.get("name"))
                for country in details.get("production_countries") or []
                if isinstance(country, dict) and country.get("name")
            )
            release_date = details.get("release_date") or ""
            title = details.get("title")

        video_url: str | None = None
        if media_type == "tv":
            servers = [
                PlaybackServer(label="Server 1", playback_url=two_embed_url("tv", imdb_id)),
                PlaybackServer(label="Server 2", playback_url=vidsrc_embed_url("tv", imdb_id)),
            ]
        else:
            video_url = two_embed_url("movie", imdb_id or str(details.get("id") or tmdb_id))
            servers = [PlaybackServer(label="Default", playback_url=video_url)]
            if imdb_id:
                servers.append(
                    PlaybackServer(
                        label="Server 2", playback_url=vidsrc_embed_url("movie", imdb_id)
                    )
                )

        poster = poster_url(details.get("poster_path"))
        entry_fields: dict[str, Any] = {
            "title": title or "",
            "external_id": str(details.get("id") or tmdb_id),
            "media_type": media_type,
            "poster_ref": poster,
            "backdrop_ref": poster,
            "description": details.get("overview") or "",
            "release_date": release_date,
            "duration_label": duration,
            "rating_label": self._format_rating(details.get("vote_average")) or "N/A",
            "genre_label": self._join_genres(details.get("genres")),
            "director": director or "Unknown",
            "country_label": countries,
            "cast_label": ", ".join(cast_names) or "Unknown",
            "servers": servers,
            "video_url": video_url,
        }
        if media_type == "tv":
            entry_fields.update(
                seasons=details.get("number_of_seasons") or 0,
                episode_count=details.get("number_of_episodes") or 0,
                episodes_per_season=[
                    season.get("episode_count") or 0
                    for season in details.get("seasons") or []
                    if isinstance(season, dict)
                ],
            )
        return CatalogEntry(**entry_fields)

    def apply_details(
        self,
        entry: CatalogEntry,
        details: dict[str, Any],
        *,
        media_type: MediaType,
        kind: ListKind,
    ) -> CatalogEntry:
        """Merge TMDB details into ``entry`` without clearing populated fields."""

        is_movie = media_type == "movie"
        external = details.get("external_ids")
        imdb_id = external.get("imdb_id") if isinstance(external, dict) else None
        imdb_id = imdb_id or None
        poster_path = details.get("poster_path") or None
        backdrop_path = details.get("backdrop_path") or None

        update: dict[str, Any] = {"media_type": media_type}

        title = details.get("title") if is_movie else details.get("name")
        if title:
            update["title"] = str(title).strip() or entry.title
        if details.get("overview"):
            update["description"] = details["overview"]

        release_date = details.get("release_date") if is_movie else details.get("first_air_date")
        if release_date:
            update["release_date"] = release_date

        if is_movie:
            runtime = details.get("runtime")
            if isinstance(runtime, int) and not isinstance(runtime, bool):
                update["duration_label"] = f"{runtime}m"
        else:
            run_times = details.get("episode_run_time")
            if isinstance(run_times, list) and run_times:
                update["duration_label"] = f"{run_times[0]}m per episode"

        rating = self._format_rating(details.get("vote_average"))
        if rating:
            update["rating_label"] = rating
        genre = self._join_genres(details.get("genres"))
        if genre:
            update["genre_label"] = genre

        if poster_path:
            update["poster_ref"] = build_image_url(poster_path, POSTER_BASE_URL)
        elif backdrop_path:
            update["poster_ref"] = build_image_url(backdrop_path, POSTER_BASE_URL)
        if backdrop_path:
            update["backdrop_ref"] = build_image_url(backdrop_path, BACKDROP_BASE_URL)

        if not is_movie:
            if details.get("number_of_seasons"):
                update["seasons"] = details["number_of_seasons"]
            if details.get("number_of_episodes"):
                update["episode_count"] = details["number_of_episodes"]
            season_counts = self._season_episode_counts(details.get("seasons"))
            if season_counts:
                update["episodes_per_season"] = season_counts

        known_imdb = extract_imdb_id(entry.servers[0].playback_url) if entry.servers else None
        if imdb_id or not known_imdb or media_type != entry.media_type:
            update["servers"] = build_servers(
                media_type, entry.external_id or "", imdb_id, kind=kind
            )

        return entry.model_copy(update=update)

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any],
        *,
        cancel: CancellationToken | None = None,
    ) -> dict[str, Any] | None:
        try:
            request = self._client.get(path, params=params)
            if cancel is not None:
                response = await cancel.guard(request)
            else:
                response = await request
        except httpx.HTTPError as exc:
            logger.debug("TMDB request %s failed: %s", path, exc)
            return None
        if response.status_code >= 400:
            logger.debug("TMDB request %s returned HTTP %s", path, response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.debug("TMDB response for %s is not valid JSON", path)
            return None
        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _format_rating(value: Any) -> str | None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value:.1f}"
        return None

    @staticmethod
    def _join_genres(genres: Any) -> str:
        if not isinstance(genres, list):
            return ""
        return ", ".join(
            str(genre.get("name"))
            for genre in genres
            if isinstance(genre, dict) and genre.get("name")
        )

    @staticmethod
    def _season_episode_counts(seasons: Any) -> list[int]:
        if not isinstance(seasons, list):
            return []
        numbered = [
            season
            for season in seasons
            if isinstance(season, dict)
            and isinstance(season.get("season_number"), int)
            and season["season_number"] > 0
        ]
        numbered.sort(key=lambda season: season["season_number"])
        return [season.get("episode_count") or 0 for season in numbered]

    @staticmethod
    def _extract_year(result: dict[str, Any], media_type: str) -> int | None:
        date_key = "release_date" if media_type == "movie" else "first_air_date"
        date_value = result.get(date_key)
        if not isinstance(date_value, str) or len(date_value) < 4:
            return None
        try:
            return int(date_value[:4])
        except ValueError:
            return None
