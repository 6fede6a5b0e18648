"""
Ranking service: chunked fetch followed by profile enrichment.

Also the composition root: `build_ranking_service(settings)` wires the pool,
store, delay shaper, fetcher and enricher from `Settings`, for either the
PostgreSQL or the in-memory backend.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional

from rankpool.config import Settings, get_settings
from rankpool.domain.models import EnrichedRecord
from rankpool.errors import RankingError
from rankpool.infrastructure.resource_pool import AbstractResourcePool, ResourcePool
from rankpool.infrastructure.score_store import InMemoryScoreStore, PostgresScoreStore
from rankpool.pipeline.delay import DelayShaper
from rankpool.pipeline.enricher import ProfileEnricher
from rankpool.pipeline.fetcher import ChunkedFetcher
from rankpool.pipeline.hooks import LoggingHooks, PipelineHooks
from rankpool.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class RankingResult:
    records: List[EnrichedRecord]
    duration_seconds: float


class RankingService:
    """
    `top_rankings(limit) == enricher.enrich(fetcher.fetch(limit))`.

    Errors from either stage keep their type; the stage name is attached if the
    raising component did not set it.
    """

    def __init__(
        self,
        fetcher: ChunkedFetcher,
        enricher: ProfileEnricher,
        hooks: Optional[PipelineHooks] = None,
    ) -> None:
        self.fetcher = fetcher
        self.enricher = enricher
        self.hooks = hooks or PipelineHooks()

    @property
    def pool(self) -> AbstractResourcePool:
        return self.fetcher.pool

    def top_rankings(self, limit: int) -> List[EnrichedRecord]:
        return self.top_rankings_timed(limit).records

    def top_rankings_timed(self, limit: int) -> RankingResult:
        start = time.perf_counter()
        try:
            try:
                fetched = self.fetcher.fetch(limit)
            except RankingError as exc:
                raise exc.annotate(stage="fetch")
            try:
                enriched = self.enricher.enrich(fetched)
            except RankingError as exc:
                raise exc.annotate(stage="enrich")
        except Exception as exc:
            self.hooks.request_failed(limit, exc, time.perf_counter() - start)
            raise

        duration = time.perf_counter() - start
        self.hooks.request_completed(limit, len(enriched), duration)
        return RankingResult(records=enriched, duration_seconds=duration)

    def close(self) -> None:
        self.pool.close()


def build_ranking_service(
    settings: Optional[Settings] = None,
    pool: Optional[AbstractResourcePool] = None,
    hooks: Optional[PipelineHooks] = None,
) -> RankingService:
    """
    Assemble a RankingService from settings.

    Parameters
    ----------
    settings : Settings | None
        Defaults to the cached process settings.
    pool : AbstractResourcePool | None
        Pre-built pool; if omitted one is created for the configured backend.
    hooks : PipelineHooks | None
        Defaults to LoggingHooks.
    """
    settings = settings or get_settings()
    hooks = hooks or LoggingHooks()

    if settings.store_backend == "memory":
        store = InMemoryScoreStore.seeded(
            users=settings.memory_store_users,
            seed=settings.memory_store_seed,
            typo_marker=settings.user_id_typo,
        )
        pool = pool or ResourcePool(
            capacity=settings.pool_capacity,
            acquire_timeout=settings.pool_acquire_timeout_seconds,
            factory=store.open_connection,
        )
    else:
        from rankpool.infrastructure.db_factory import PostgresPool

        store = PostgresScoreStore()
        pool = pool or PostgresPool(
            capacity=settings.pool_capacity,
            acquire_timeout=settings.pool_acquire_timeout_seconds,
            dsn=settings.dsn,
        )

    delay_shaper = DelayShaper(
        nominal_seconds=settings.delay_nominal_seconds,
        elevated_seconds=settings.delay_elevated_seconds,
        escalation_seconds=settings.delay_escalation_seconds,
        elevated_chunks=settings.delay_elevated_chunks,
        runaway_chunks=settings.delay_runaway_chunks,
    )
    fetcher = ChunkedFetcher(
        pool=pool,
        store=store,
        delay_shaper=delay_shaper,
        chunk_size=settings.chunk_size,
        acquire_timeout=settings.pool_acquire_timeout_seconds,
        high_chunk_warning_threshold=settings.high_chunk_warning_threshold,
        hooks=hooks,
    )
    enricher = ProfileEnricher(
        typo=settings.user_id_typo,
        correction=settings.user_id_correction,
        hooks=hooks,
    )
    log.info(
        "[SERVICE READY]",
        extra={
            "backend": settings.store_backend,
            "pool_capacity": pool.capacity,
            "chunk_size": settings.chunk_size,
        },
    )
    return RankingService(fetcher=fetcher, enricher=enricher, hooks=hooks)


__all__ = ["RankingResult", "RankingService", "build_ranking_service"]
