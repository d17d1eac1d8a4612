"""Key/value storage backends standing in for browser local storage."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import KeyValueEntry

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a backend cannot read or persist a value."""


class KeyValueStore(Protocol):
    """String-keyed, string-valued storage capability."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store with an optional byte quota."""

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._values: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used = sum(
                len(k) + len(v) for k, v in self._values.items() if k != key
            )
            if used + len(key) + len(value) > self._quota_bytes:
                raise StorageError(f"Quota exceeded while writing {key}")
        self._values[key] = value

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class DatabaseKeyValueStore:
    """Store values in the ``kv_entries`` table through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                record = await session.get(KeyValueEntry, key)
                return record.value if record is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as session:
                record = await session.get(KeyValueEntry, key)
                if record is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    record.value = value
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to write {key}") from exc

    async def remove(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(KeyValueEntry).where(KeyValueEntry.key == key)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to remove {key}") from exc
