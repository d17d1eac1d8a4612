"""Utility helpers for the NIGHTFALL service."""

from __future__ import annotations

import re
from typing import Any, Literal
from urllib.parse import quote


POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w780"
NO_IMAGE_URL = "https://via.placeholder.com/200x300?text=No+Image"

IMAGE_SIZE_RE = re.compile(r"/w\d+/")
IMDB_ID_RE = re.compile(r"tt\d{5,10}", re.IGNORECASE)

_POSTER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="220" height="330" viewBox="0 0 220 330">'
    '<defs><linearGradient id="g" x1="0" y1="0" x2="1" y2="1">'
    '<stop offset="0" stop-color="#111827"/><stop offset="1" stop-color="#1f2937"/>'
    '</linearGradient></defs><rect width="220" height="330" rx="18" fill="url(#g)"/>'
    '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" fill="#94a3b8" '
    'font-family="Arial, sans-serif" font-size="14">{label}</text></svg>'
)
_BACKDROP_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="780" height="439" viewBox="0 0 780 439">'
    '<defs><linearGradient id="g" x1="0" y1="0" x2="1" y2="1">'
    '<stop offset="0" stop-color="#0b1220"/><stop offset="1" stop-color="#111827"/>'
    '</linearGradient></defs><rect width="780" height="439" rx="20" fill="url(#g)"/>'
    '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" fill="#94a3b8" '
    'font-family="Arial, sans-serif" font-size="18">{label}</text></svg>'
)

# Poster widths keyed by the browser's effective connection type.
_NETWORK_IMAGE_WIDTHS = {
    "slow-2g": 200,
    "2g": 200,
    "3g": 300,
}


def normalize(value: Any) -> str:
    """Return the trimmed, lower-cased string form used for identity keys."""

    if value is None:
        return ""
    return str(value).strip().lower()


def placeholder_art(label: str, *, variant: Literal["poster", "backdrop"] = "poster") -> str:
    """Return an inline SVG image reference labelled with the content kind."""

    template = _POSTER_SVG if variant == "poster" else _BACKDROP_SVG
    svg = template.format(label=label.upper())
    return "data:image/svg+xml;charset=utf-8," + quote(svg, safe="~()*!.'")


def build_image_url(path: str | None, base_url: str = POSTER_BASE_URL) -> str:
    """Resolve a TMDB image path against the CDN base URL."""

    if not path:
        return ""
    if path.startswith("http") or path.startswith("data:"):
        return path
    return f"{base_url}{path}"


def ensure_http_url(value: Any) -> str | None:
    if isinstance(value, str) and value.strip().startswith("http"):
        return value.strip()
    return None


def poster_url(path: str | None) -> str:
    """Return a displayable poster URL, falling back to a stock placeholder."""

    return build_image_url(path) or NO_IMAGE_URL


def optimize_image_url(url: str, network_type: str | None = None) -> str:
    """Rewrite a sized TMDB image URL to suit the client's connection."""

    if not url or "image.tmdb.org" not in url:
        return url
    width = _NETWORK_IMAGE_WIDTHS.get(normalize(network_type), 500)
    return IMAGE_SIZE_RE.sub(f"/w{width}/", url, count=1)


def extract_imdb_id(value: str | None) -> str | None:
    """Return the first IMDb identifier embedded in ``value``."""

    if not value:
        return None
    match = IMDB_ID_RE.search(str(value))
    return match.group(0) if match else None
