"""Progressive, rate-limited background enrichment of remote stub entries.

Each list kind runs its own pipeline: the stubs are split into a high- and a
low-priority set, each set is enriched in fixed-size batches whose requests
run concurrently, and every finished batch is committed into the kind's
collection by identity key and persisted to the cache before the next batch
starts. Batches of one kind therefore commit strictly in order, while the
pipelines of different kinds interleave freely.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from ..concurrency import CancellationToken, IdleSignal, OperationCancelled
from ..config import Settings
from ..merge import dedupe, identity_key, matches_keywords
from ..models import CatalogEntry, ListKind
from .cache import CACHE_NAMESPACES, PersistentCache

logger = logging.getLogger(__name__)

CommitCallback = Callable[[ListKind, list[CatalogEntry]], None]


class EnrichmentClient(Protocol):
    async def enrich(
        self,
        entry: CatalogEntry,
        *,
        kind: ListKind,
        cancel: CancellationToken | None = None,
    ) -> CatalogEntry: ...


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    LIST_LOADED = "list_loaded"
    ENRICHING = "enriching"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class KindPolicy:
    """Batching parameters for one list kind."""

    kind: ListKind
    namespace: str
    batch_size: int
    high_priority_delay: float
    low_priority_delay: float
    # ``None`` enriches every stub in the high-priority pass.
    priority_count: int | None = None
    keywords: tuple[str, ...] = ()


@dataclass
class PipelineStatus:
    state: PipelineState = PipelineState.IDLE
    cursor: int = 0
    committed_batches: int = 0
    total_batches: int = 0
    priority: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "cursor": self.cursor,
            "committedBatches": self.committed_batches,
            "totalBatches": self.total_batches,
            "priority": self.priority,
        }


def default_policies(settings: Settings) -> dict[ListKind, KindPolicy]:
    """Return the per-kind batching policies derived from settings."""

    high = settings.high_priority_delay_ms / 1000
    low = settings.low_priority_delay_ms / 1000
    return {
        "movie": KindPolicy(
            kind="movie",
            namespace=CACHE_NAMESPACES["movie"],
            batch_size=30,
            high_priority_delay=high,
            low_priority_delay=low,
        ),
        "tv": KindPolicy(
            kind="tv",
            namespace=CACHE_NAMESPACES["tv"],
            batch_size=30,
            high_priority_delay=high,
            low_priority_delay=low,
        ),
        "anime": KindPolicy(
            kind="anime",
            namespace=CACHE_NAMESPACES["anime"],
            batch_size=25,
            high_priority_delay=high,
            low_priority_delay=low,
            priority_count=settings.anime_priority_count,
            keywords=settings.priority_keywords,
        ),
    }


@dataclass
class _Run:
    policy: KindPolicy
    cancel: CancellationToken
    current: list[CatalogEntry] = field(default_factory=list)
    on_commit: CommitCallback | None = None


class EnrichmentScheduler:
    """Drives batch enrichment for each list kind."""

    def __init__(
        self,
        client: EnrichmentClient | None,
        cache: PersistentCache,
        *,
        idle: IdleSignal | None = None,
        idle_timeout: float = 3.0,
    ) -> None:
        self._client = client
        self._cache = cache
        self._idle = idle or IdleSignal()
        self._idle_timeout = idle_timeout
        self._status: dict[ListKind, PipelineStatus] = {}

    @property
    def idle(self) -> IdleSignal:
        return self._idle

    @property
    def enabled(self) -> bool:
        """Enrichment is skipped entirely without a metadata client."""

        return self._client is not None

    def status(self, kind: ListKind) -> PipelineStatus:
        return self._status.setdefault(kind, PipelineStatus())

    @staticmethod
    def partition(
        stubs: Sequence[CatalogEntry], policy: KindPolicy
    ) -> tuple[list[CatalogEntry], list[CatalogEntry]]:
        """Split stubs into high- and low-priority sets, high first."""

        if policy.priority_count is None:
            return dedupe(stubs), []

        keyword_matches = [
            stub for stub in stubs if matches_keywords(stub, policy.keywords)
        ]
        high = dedupe([*keyword_matches, *stubs[: policy.priority_count]])
        high_keys = {identity_key(entry) for entry in high}
        low = dedupe(
            stub
            for stub in stubs[policy.priority_count :]
            if identity_key(stub) not in high_keys
        )
        return high, low

    async def run(
        self,
        policy: KindPolicy,
        stubs: Sequence[CatalogEntry],
        cancel: CancellationToken,
        *,
        on_commit: CommitCallback | None = None,
    ) -> list[CatalogEntry]:
        """Enrich ``stubs`` in priority order and return the final collection."""

        status = self.status(policy.kind)
        status.state = PipelineState.LIST_LOADED
        status.cursor = 0
        status.committed_batches = 0
        run = _Run(policy=policy, cancel=cancel, current=list(stubs), on_commit=on_commit)

        if self._client is None:
            logger.info(
                "No TMDB credential configured; serving %s stubs without enrichment",
                policy.kind,
            )
            status.state = PipelineState.IDLE
            return run.current

        high, low = self.partition(stubs, policy)
        status.total_batches = _batch_count(high, policy) + _batch_count(low, policy)
        status.state = PipelineState.ENRICHING

        status.priority = "high"
        completed = await self._run_batches(run, high, policy.high_priority_delay)
        if completed and low:
            try:
                await cancel.guard(self._idle.wait(self._idle_timeout))
            except OperationCancelled:
                completed = False
            else:
                status.priority = "low"
                completed = await self._run_batches(run, low, policy.low_priority_delay)

        status.priority = None
        status.state = PipelineState.IDLE if completed else PipelineState.CANCELLED
        if not completed:
            logger.info(
                "Enrichment for %s cancelled after %s batches",
                policy.kind,
                status.committed_batches,
            )
        return run.current

    async def _run_batches(
        self, run: _Run, candidates: Sequence[CatalogEntry], delay: float
    ) -> bool:
        policy = run.policy
        status = self.status(policy.kind)
        size = max(policy.batch_size, 1)
        for offset in range(0, len(candidates), size):
            if run.cancel.cancelled:
                return False

            batch = list(candidates[offset : offset + size])
            results = await asyncio.gather(
                *(self._enrich_one(entry, run) for entry in batch),
                return_exceptions=True,
            )
            enriched: list[CatalogEntry] = []
            for entry, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "Enrichment failed for %s (%s): %s",
                        entry.title,
                        policy.kind,
                        result,
                    )
                    enriched.append(entry)
                else:
                    enriched.append(result)

            await self._commit(run, batch, enriched)
            status.cursor += 1

            if offset + size < len(candidates):
                if await run.cancel.sleep(delay):
                    return False
        return True

    async def _enrich_one(self, entry: CatalogEntry, run: _Run) -> CatalogEntry:
        client = self._client
        if client is None or run.cancel.cancelled:
            return entry
        return await client.enrich(entry, kind=run.policy.kind, cancel=run.cancel)

    async def _commit(
        self,
        run: _Run,
        batch: Sequence[CatalogEntry],
        enriched: Sequence[CatalogEntry],
    ) -> None:
        replacements = {
            identity_key(original): updated
            for original, updated in zip(batch, enriched)
            if updated is not original
        }
        status = self.status(run.policy.kind)
        status.committed_batches += 1
        run.current = [
            replacements.get(identity_key(item), item) for item in run.current
        ]
        await self._cache.write(run.policy.namespace, run.current)
        if run.on_commit is not None:
            run.on_commit(run.policy.kind, list(run.current))


def _batch_count(entries: Sequence[CatalogEntry], policy: KindPolicy) -> int:
    size = max(policy.batch_size, 1)
    return (len(entries) + size - 1) // size
