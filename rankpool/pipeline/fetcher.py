"""
Chunked, rate-shaped ranking fetch.

`ChunkedFetcher.fetch(limit)` reads the top-`limit` ranking as a sequence of
offset/limit windows, one pooled connection per window:

    for each window, in index order:
        acquire a handle          (blocks up to the acquire timeout)
        read the window           (store embeds the hold, fetcher tops it up)
        release the handle        (always, before moving on or raising)

Windows are never read concurrently within one fetch, so a request keeps one
pool slot busy for the cumulative hold of all its chunks. Under concurrent
requests this is what drains the pool.

The fetch is all-or-nothing: the first failing window aborts it and rows read
so far are dropped. Nothing is retried.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from rankpool.domain.models import Record
from rankpool.errors import ChunkFetchError, PoolExhausted, RankingError
from rankpool.infrastructure.resource_pool import AbstractResourcePool
from rankpool.infrastructure.score_store import ScoreStore
from rankpool.pipeline.chunking import ChunkPlan, ChunkWindow
from rankpool.pipeline.delay import DelayShaper
from rankpool.pipeline.hooks import PipelineHooks
from rankpool.utils.logging import get_logger

log = get_logger(__name__)

STAGE = "fetch"


class ChunkedFetcher:
    """
    Sequential windowed reader over a bounded pool.

    Parameters
    ----------
    pool : AbstractResourcePool
        Pool every chunk acquires its connection from.
    store : ScoreStore
        Windowed ranking read performed with the acquired connection.
    delay_shaper : DelayShaper
        Maps (chunk index, total chunks) to the minimum hold per chunk.
    chunk_size : int
        Default window size.
    acquire_timeout : float | None
        Per-chunk acquisition timeout; defaults to the pool's own timeout.
    high_chunk_warning_threshold : int
        Requests split into more chunks than this are logged as risky.
    hooks : PipelineHooks | None
        Observation scopes opened around each chunk.
    sleep, clock : callables
        Injected for tests; default to `time.sleep` / `time.perf_counter`.
    """

    def __init__(
        self,
        pool: AbstractResourcePool,
        store: ScoreStore,
        delay_shaper: Optional[DelayShaper] = None,
        chunk_size: int = 10,
        acquire_timeout: Optional[float] = None,
        high_chunk_warning_threshold: int = 20,
        hooks: Optional[PipelineHooks] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.pool = pool
        self.store = store
        self.delay_shaper = delay_shaper or DelayShaper()
        self.chunk_size = chunk_size
        self.acquire_timeout = acquire_timeout
        self.high_chunk_warning_threshold = high_chunk_warning_threshold
        self.hooks = hooks or PipelineHooks()
        self._sleep = sleep
        self._clock = clock

    def plan(self, requested_limit: int, chunk_size: Optional[int] = None) -> ChunkPlan:
        if chunk_size is None:
            chunk_size = self.chunk_size
        return ChunkPlan.build(requested_limit, chunk_size)

    def fetch(self, requested_limit: int, chunk_size: Optional[int] = None) -> List[Record]:
        """
        Read the top `requested_limit` records, one window at a time.

        Raises
        ------
        InvalidInput
            If the limit is negative or the chunk size is not positive.
        PoolExhausted
            If a chunk could not acquire a connection in time.
        ChunkFetchError
            If a chunk's read failed.
        """
        plan = self.plan(requested_limit, chunk_size)
        regime = self.delay_shaper.regime(plan.total_chunks)
        log.info(
            f"[FETCH START] {plan.total_chunks} chunks of {plan.chunk_size}",
            extra={
                "limit": requested_limit,
                "total_chunks": plan.total_chunks,
                "chunk_size": plan.chunk_size,
                "regime": regime,
            },
        )
        if plan.total_chunks > self.high_chunk_warning_threshold:
            log.warning(
                f"[HIGH CHUNK COUNT] {plan.total_chunks} chunks; "
                "concurrent callers at this size will exhaust the pool",
                extra={"total_chunks": plan.total_chunks, "pool_capacity": self.pool.capacity},
            )

        results: List[Record] = []
        for window in plan.windows():
            results.extend(self._fetch_chunk(window, plan.total_chunks))

        log.info(
            "[FETCH DONE]",
            extra={"records": len(results), "total_chunks": plan.total_chunks},
        )
        return results

    def _fetch_chunk(self, window: ChunkWindow, total_chunks: int) -> List[Record]:
        hold = self.delay_shaper.delay(window.index, total_chunks)
        with self.hooks.chunk(window, total_chunks, hold) as tags:
            try:
                handle = self.pool.acquire(self.acquire_timeout)
            except PoolExhausted as exc:
                raise exc.annotate(stage=STAGE, chunk_index=window.index)
            except Exception as exc:
                raise ChunkFetchError(window.index, exc, action="acquire") from exc

            try:
                started = self._clock()
                try:
                    rows = self.store.read_window(
                        handle.connection, window.limit, window.offset, hold
                    )
                except RankingError as exc:
                    raise exc.annotate(stage=STAGE, chunk_index=window.index)
                except Exception as exc:
                    raise ChunkFetchError(window.index, exc) from exc

                remaining = hold - (self._clock() - started)
                if remaining > 0:
                    self._sleep(remaining)
            finally:
                self.pool.release(handle)

            tags["rows"] = len(rows)
            return rows


__all__ = ["ChunkedFetcher"]
