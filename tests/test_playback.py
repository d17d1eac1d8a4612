"""Tests for provider URL templates and detail playback resolution."""

from __future__ import annotations

from nightfall.models import CatalogEntry, PlaybackServer
from nightfall.services.playback import (
    available_servers,
    build_servers,
    default_servers,
    episode_limit,
    episode_url,
    resolve_playback,
)


def test_default_servers_for_stubs() -> None:
    movie = default_servers("movie", "42")
    anime = default_servers("anime", "99")

    assert [server.playback_url for server in movie] == ["https://vidsrc.cc/v2/embed/movie/42"]
    assert [server.playback_url for server in anime] == [
        "https://www.2embed.cc/embedtv/99",
        "https://vidsrc-embed.ru/embed/tv/99",
        "https://vidsrc.cc/v2/embed/tv/99",
    ]


def test_build_servers_prefers_imdb_id() -> None:
    servers = build_servers("movie", "42", "tt999", kind="movie")

    assert [server.label for server in servers] == ["Server 1", "Server 2", "Server 3"]
    assert all("tt999" in server.playback_url for server in servers)
    assert build_servers("tv", "5", None, kind="tv")[0].playback_url == (
        "https://vidsrc.cc/v2/embed/tv/5"
    )


def test_episode_url_per_provider() -> None:
    assert episode_url("https://vidsrc-embed.ru/embed/tv/tt1", 2, 3) == (
        "https://vidsrc-embed.ru/embed/tv/tt1/2-3"
    )
    assert episode_url("https://vidsrc.cc/v2/embed/tv/tt1", 2, 3) == (
        "https://vidsrc.cc/v2/embed/tv/tt1/2/3"
    )
    assert episode_url("https://www.2embed.cc/embedtv/tt1", 2, 3) == (
        "https://www.2embed.cc/embedtv/tt1?s=2&e=3"
    )
    assert episode_url(None, 1, 1) is None


def test_available_servers_adds_default_and_imdb_providers() -> None:
    entry = CatalogEntry(
        title="Foo",
        media_type="movie",
        video_url="https://www.2embed.cc/embed/tt1234567",
        servers=[PlaybackServer(label="Server 2", playback_url="https://vidsrc-embed.ru/embed/movie/tt1234567")],
    )

    servers = available_servers(entry)

    assert [server.label for server in servers] == ["Default", "Server 2", "Server 3"]
    assert servers[2].playback_url == "https://vidsrc.cc/v2/embed/movie/tt1234567"


def test_resolve_playback_clamps_episode_selection() -> None:
    entry = CatalogEntry(
        title="Show",
        media_type="tv",
        seasons=2,
        episodes_per_season=[9, 7],
        servers=[PlaybackServer(label="Server 1", playback_url="https://vidsrc.cc/v2/embed/tv/tt7654321")],
    )

    playback = resolve_playback(entry, season=2, episode=12)

    assert playback["season"] == 2
    assert playback["episode"] == 1
    assert playback["episodeLimit"] == 7
    assert playback["activeServer"] == "Server 1"
    assert playback["url"] == "https://vidsrc.cc/v2/embed/tv/tt7654321/2/1"
    assert episode_limit(entry, 5) == 10


def test_resolve_playback_selects_requested_server() -> None:
    entry = CatalogEntry(
        title="Film",
        media_type="movie",
        video_url="https://www.2embed.cc/embed/tt1375666",
    )

    playback = resolve_playback(entry, server_label="Server 3")

    assert playback["activeServer"] == "Server 3"
    assert playback["url"] == "https://vidsrc.cc/v2/embed/movie/tt1375666"
