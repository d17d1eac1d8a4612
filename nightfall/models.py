"""Pydantic models describing catalog entries and cached payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils import optimize_image_url

MediaType = Literal["movie", "tv"]
ListKind = Literal["movie", "tv", "anime"]

LIST_KINDS: tuple[ListKind, ...] = ("movie", "tv", "anime")

NOT_AVAILABLE = "N/A"


class PlaybackServer(BaseModel):
    """A candidate embed URL offered on the detail page."""

    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(validation_alias=AliasChoices("label", "name"))
    playback_url: str = Field(
        validation_alias=AliasChoices("playbackUrl", "playback_url", "url"),
        serialization_alias="playbackUrl",
    )


class CatalogEntry(BaseModel):
    """A single title shown in catalog rows, search results and detail views."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    external_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("externalId", "external_id", "tmdbId", "tmdb_id"),
        serialization_alias="externalId",
    )
    media_type: MediaType = Field(
        default="movie",
        validation_alias=AliasChoices("mediaType", "media_type", "type"),
        serialization_alias="mediaType",
    )
    poster_ref: str = Field(
        default="",
        validation_alias=AliasChoices("posterRef", "poster_ref", "poster_path", "poster"),
        serialization_alias="posterRef",
    )
    backdrop_ref: str = Field(
        default="",
        validation_alias=AliasChoices(
            "backdropRef", "backdrop_ref", "trailerImage", "backdrop"
        ),
        serialization_alias="backdropRef",
    )
    description: str = ""
    release_date: str = Field(
        default="",
        validation_alias=AliasChoices("releaseDate", "release_date"),
        serialization_alias="releaseDate",
    )
    duration_label: str = Field(
        default=NOT_AVAILABLE,
        validation_alias=AliasChoices("durationLabel", "duration_label", "duration"),
        serialization_alias="durationLabel",
    )
    rating_label: str = Field(
        default=NOT_AVAILABLE,
        validation_alias=AliasChoices("ratingLabel", "rating_label", "rating"),
        serialization_alias="ratingLabel",
    )
    genre_label: str = Field(
        default="",
        validation_alias=AliasChoices("genreLabel", "genre_label", "genre"),
        serialization_alias="genreLabel",
    )
    country_label: str = Field(
        default="",
        validation_alias=AliasChoices("countryLabel", "country_label", "country"),
        serialization_alias="countryLabel",
    )
    cast_label: str = Field(
        default="",
        validation_alias=AliasChoices("castLabel", "cast_label", "cast"),
        serialization_alias="castLabel",
    )
    director: str = ""
    quality: str = "HD"
    seasons: int = 0
    episode_count: int = Field(
        default=0,
        validation_alias=AliasChoices("episodeCount", "episode_count", "episodes"),
        serialization_alias="episodeCount",
    )
    episodes_per_season: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "episodesPerSeason", "episodes_per_season", "seasonsEpisodes"
        ),
        serialization_alias="episodesPerSeason",
    )
    servers: list[PlaybackServer] = Field(default_factory=list)
    video_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("videoUrl", "video_url"),
        serialization_alias="videoUrl",
    )

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("external_id", mode="before")
    @classmethod
    def _stringify_external_id(cls, value: object) -> object:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalise_media_type(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"series", "show"}:
                return "tv"
            return lowered
        return value

    @field_validator(
        "poster_ref",
        "backdrop_ref",
        "description",
        "release_date",
        "genre_label",
        "country_label",
        "cast_label",
        "director",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("duration_label", "rating_label", mode="before")
    @classmethod
    def _none_to_not_available(cls, value: object) -> object:
        return NOT_AVAILABLE if value is None else value

    @field_validator("seasons", "episode_count", mode="before")
    @classmethod
    def _none_to_zero(cls, value: object) -> object:
        return 0 if value is None else value

    @field_validator("episodes_per_season", "servers", mode="before")
    @classmethod
    def _none_to_list(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def enriched(self) -> bool:
        """Return whether metadata fields carry populated values."""

        return bool(
            self.description
            or self.release_date
            or (self.rating_label and self.rating_label != NOT_AVAILABLE)
        )

    def to_payload(self, network_type: str | None = None) -> dict[str, Any]:
        """Return the JSON representation used for storage and HTTP responses.

        When ``network_type`` is given, TMDB artwork is resized for that
        connection class.
        """

        payload = self.model_dump(mode="json", by_alias=True)
        if network_type:
            payload["posterRef"] = optimize_image_url(payload["posterRef"], network_type)
            payload["backdropRef"] = optimize_image_url(payload["backdropRef"], network_type)
        return payload


class EntryRef(BaseModel):
    """Reference to an entry by external id and/or title."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    external_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("externalId", "external_id", "tmdbId"),
    )

    @field_validator("external_id", mode="before")
    @classmethod
    def _stringify_external_id(cls, value: object) -> object:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def matches(self, entry: CatalogEntry) -> bool:
        """Match on external ids when both sides have one, otherwise on title."""

        if self.external_id and entry.external_id:
            return self.external_id == entry.external_id
        return self.title is not None and self.title == entry.title


class CacheRecord(BaseModel):
    """Timestamped payload persisted under a cache namespace."""

    ts: int = 0
    data: list[CatalogEntry] = Field(default_factory=list)


class CatalogRow(BaseModel):
    """A titled row of entries rendered by the front end."""

    id: str
    title: str
    entries: list[CatalogEntry] = Field(default_factory=list)

    def to_payload(self, network_type: str | None = None) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "entries": [entry.to_payload(network_type) for entry in self.entries],
        }
