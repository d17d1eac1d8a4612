"""Identity keys and order-preserving deduplication of catalog entries."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from .models import CatalogEntry
from .utils import normalize


def identity_key(entry: Any) -> str | None:
    """Return ``type:id`` (or ``type:title``) for an entry, or ``None``.

    Accepts anything exposing ``title``, ``external_id`` and ``media_type``
    attributes, so partially constructed entries can be keyed too.
    """

    if entry is None:
        return None
    external_id = getattr(entry, "external_id", None)
    external = str(external_id).strip() if external_id is not None else ""
    title = normalize(getattr(entry, "title", None))
    if not external and not title:
        return None
    media_type = normalize(getattr(entry, "media_type", None))
    return f"{media_type}:{external or title}"


def dedupe(entries: Iterable[CatalogEntry | None]) -> list[CatalogEntry]:
    """Drop duplicate entries, keeping the first occurrence of each key."""

    seen: set[str] = set()
    unique: list[CatalogEntry] = []
    for entry in entries:
        key = identity_key(entry)
        if key is None or key in seen:
            continue
        seen.add(key)
        unique.append(entry)  # type: ignore[arg-type]
    return unique


def merge(*sources: Sequence[CatalogEntry | None]) -> list[CatalogEntry]:
    """Concatenate ``sources`` and dedupe; earlier sources win ties."""

    return dedupe(entry for source in sources for entry in source)


def matches_keywords(entry: CatalogEntry, keywords: Iterable[str]) -> bool:
    title = normalize(entry.title)
    if not title:
        return False
    return any(title == keyword or keyword in title for keyword in keywords)


def pinned_picks(
    entries: Iterable[CatalogEntry], keywords: Sequence[str]
) -> list[CatalogEntry]:
    """Return the deduplicated entries whose titles mention a franchise keyword."""

    return dedupe(entry for entry in entries if matches_keywords(entry, keywords))
