"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"

DEFAULT_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "bleach",
    "naruto",
    "naruto shippuden",
    "one piece",
    "dragon ball",
    "dragonball",
    "dragon ball z",
    "dragonball z",
    "dragon ball super",
    "dragon ball gt",
)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="NIGHTFALL", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    list_api_url: HttpUrl = Field(
        default="https://vidsrc.cc/api/list", alias="LIST_API_URL"
    )

    database_url: str | None = Field(
        default="sqlite+aiosqlite:///./nightfall.db", alias="DATABASE_URL"
    )
    local_catalog_path: str | None = Field(default=None, alias="LOCAL_CATALOG_PATH")

    cache_ttl_seconds: int = Field(default=21_600, alias="CACHE_TTL", ge=60)
    high_priority_delay_ms: int = Field(
        default=250, alias="HIGH_PRIORITY_DELAY_MS", ge=0, le=60_000
    )
    low_priority_delay_ms: int = Field(
        default=450, alias="LOW_PRIORITY_DELAY_MS", ge=0, le=60_000
    )
    idle_timeout_seconds: float = Field(
        default=3.0, alias="IDLE_TIMEOUT_SECONDS", ge=0, le=600
    )
    anime_priority_count: int = Field(
        default=250, alias="ANIME_PRIORITY_COUNT", ge=0, le=1_500
    )
    priority_keywords: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_PRIORITY_KEYWORDS, alias="PRIORITY_KEYWORDS"
    )

    admin_password_hash: str | None = Field(default=None, alias="ADMIN_PASSWORD_HASH")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("priority_keywords", mode="before")
    @classmethod
    def _parse_priority_keywords(cls, value: object) -> tuple[str, ...]:
        """Normalise franchise keywords from environment values."""

        if value is None:
            return DEFAULT_PRIORITY_KEYWORDS
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("PRIORITY_KEYWORDS must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            keyword = " ".join(entry.lower().split())
            if keyword and keyword not in cleaned:
                cleaned.append(keyword)
        if not cleaned:
            return DEFAULT_PRIORITY_KEYWORDS
        return tuple(cleaned)

    @field_validator(
        "tmdb_api_key",
        "database_url",
        "local_catalog_path",
        "admin_password_hash",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def has_tmdb_credential(self) -> bool:
        """Return whether a usable TMDB API key is configured."""

        return bool(self.tmdb_api_key) and self.tmdb_api_key != PLACEHOLDER_API_KEY

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_seconds * 1000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
