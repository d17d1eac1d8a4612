"""Embed URL templates for the third-party playback providers."""

from __future__ import annotations

from ..models import CatalogEntry, ListKind, MediaType, PlaybackServer
from ..utils import extract_imdb_id

TWO_EMBED_BASE = "https://www.2embed.cc"
VIDSRC_EMBED_BASE = "https://vidsrc-embed.ru/embed"
VIDSRC_CC_BASE = "https://vidsrc.cc/v2/embed"

DEFAULT_EPISODE_COUNT = 10


def two_embed_url(media_type: MediaType, embed_id: str) -> str:
    path = "embedtv" if media_type == "tv" else "embed"
    return f"{TWO_EMBED_BASE}/{path}/{embed_id}"


def vidsrc_embed_url(media_type: MediaType, embed_id: str) -> str:
    return f"{VIDSRC_EMBED_BASE}/{media_type}/{embed_id}"


def vidsrc_cc_url(media_type: MediaType, embed_id: str) -> str:
    return f"{VIDSRC_CC_BASE}/{media_type}/{embed_id}"


def full_server_list(media_type: MediaType, embed_id: str) -> list[PlaybackServer]:
    """Return the three provider servers for ``embed_id`` in display order."""

    return [
        PlaybackServer(label="Server 1", playback_url=two_embed_url(media_type, embed_id)),
        PlaybackServer(label="Server 2", playback_url=vidsrc_embed_url(media_type, embed_id)),
        PlaybackServer(label="Server 3", playback_url=vidsrc_cc_url(media_type, embed_id)),
    ]


def default_servers(kind: ListKind, tmdb_id: str) -> list[PlaybackServer]:
    """Servers given to freshly listed stubs, keyed on the numeric TMDB id."""

    if kind == "anime":
        return full_server_list("tv", tmdb_id)
    return [PlaybackServer(label="Server 3", playback_url=vidsrc_cc_url(kind, tmdb_id))]


def build_servers(
    media_type: MediaType,
    tmdb_id: str,
    imdb_id: str | None,
    *,
    kind: ListKind,
) -> list[PlaybackServer]:
    """Servers for an enriched entry; the IMDb id is preferred when known."""

    if imdb_id:
        return full_server_list(media_type, imdb_id)
    if kind == "anime":
        return full_server_list(media_type, tmdb_id)
    # vidsrc.cc is the only provider that resolves bare TMDB ids.
    return [PlaybackServer(label="Server 3", playback_url=vidsrc_cc_url(media_type, tmdb_id))]


def available_servers(entry: CatalogEntry) -> list[PlaybackServer]:
    """Expand an entry's servers with a default and IMDb-derived providers."""

    servers = list(entry.servers)
    base_url = entry.video_url or (servers[0].playback_url if servers else None)
    imdb_id = extract_imdb_id(base_url) or (
        extract_imdb_id(servers[0].playback_url) if servers else None
    )

    if base_url and not any(server.playback_url == base_url for server in servers):
        servers.insert(0, PlaybackServer(label="Default", playback_url=base_url))

    if imdb_id:
        for label, url in (
            ("Server 2", vidsrc_embed_url(entry.media_type, imdb_id)),
            ("Server 3", vidsrc_cc_url(entry.media_type, imdb_id)),
        ):
            if not any(server.playback_url == url for server in servers):
                servers.append(PlaybackServer(label=label, playback_url=url))
    return servers


def episode_url(base_url: str | None, season: int, episode: int) -> str | None:
    """Return the provider-specific URL for one tv episode."""

    if not base_url:
        return None
    trimmed = base_url.split("?")[0].rstrip("/")
    if "vidsrc-embed.ru/embed/tv/" in trimmed:
        return f"{trimmed}/{season}-{episode}"
    if "vidsrc.cc/v2/embed/tv/" in trimmed:
        return f"{trimmed}/{season}/{episode}"
    return f"{trimmed}?s={season}&e={episode}"


def episode_limit(entry: CatalogEntry, season: int) -> int:
    """Return the number of selectable episodes in ``season`` (1-based)."""

    counts = entry.episodes_per_season
    if not counts:
        return DEFAULT_EPISODE_COUNT
    if 1 <= season <= len(counts):
        return counts[season - 1]
    return DEFAULT_EPISODE_COUNT


def resolve_playback(
    entry: CatalogEntry,
    *,
    server_label: str | None = None,
    season: int = 1,
    episode: int = 1,
) -> dict[str, object]:
    """Pick the active server and the URL to load for a detail view."""

    servers = available_servers(entry)
    active = next(
        (server for server in servers if server.label == server_label),
        servers[0] if servers else None,
    )

    if entry.media_type != "tv":
        url = active.playback_url if active else entry.video_url
        return {
            "servers": [server.model_dump(by_alias=True) for server in servers],
            "activeServer": active.label if active else None,
            "url": url,
        }

    seasons = max(entry.seasons, 1)
    season = min(max(season, 1), seasons)
    limit = episode_limit(entry, season)
    if episode < 1 or episode > limit:
        episode = 1
    return {
        "servers": [server.model_dump(by_alias=True) for server in servers],
        "activeServer": active.label if active else None,
        "season": season,
        "episode": episode,
        "episodeLimit": limit,
        "url": episode_url(active.playback_url if active else None, season, episode),
    }
