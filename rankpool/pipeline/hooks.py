"""
Observation points around the ranking pipeline.

The pipeline calls into a `PipelineHooks` object around every chunk read and
around enrichment. Scopes are context managers so whatever a hook opens (a
span, a timer) is closed on every exit path, including errors. The yielded
dict collects tags the pipeline fills in while the scope is open.

`PipelineHooks` is a no-op; `LoggingHooks` emits structured log lines and is
the default wiring of the service. A tracing backend plugs in by subclassing.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Generator

from rankpool.pipeline.chunking import ChunkWindow
from rankpool.utils.logging import get_logger

log = get_logger(__name__)

Tags = Dict[str, Any]


class PipelineHooks:
    """No-op hooks."""

    @contextmanager
    def chunk(
        self, window: ChunkWindow, total_chunks: int, delay_seconds: float
    ) -> Generator[Tags, None, None]:
        yield {}

    @contextmanager
    def enrichment(self, record_count: int) -> Generator[Tags, None, None]:
        yield {}

    def request_completed(self, limit: int, record_count: int, duration_seconds: float) -> None:
        return None

    def request_failed(self, limit: int, error: BaseException, duration_seconds: float) -> None:
        return None


class LoggingHooks(PipelineHooks):
    """Log chunk, enrichment and request events with structured `extra` fields."""

    @contextmanager
    def chunk(
        self, window: ChunkWindow, total_chunks: int, delay_seconds: float
    ) -> Generator[Tags, None, None]:
        tags: Tags = {
            "chunk": window.index,
            "total_chunks": total_chunks,
            "offset": window.offset,
            "limit": window.limit,
            "hold_seconds": delay_seconds,
        }
        log.debug(f"[CHUNK START] {window.index + 1}/{total_chunks}", extra=dict(tags))
        start = time.perf_counter()
        try:
            yield tags
        except Exception as exc:
            tags["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            tags["error"] = str(exc)
            log.error(f"[CHUNK FAILED] {window.index + 1}/{total_chunks}", extra=tags)
            raise
        tags["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
        log.debug(f"[CHUNK DONE] {window.index + 1}/{total_chunks}", extra=tags)

    @contextmanager
    def enrichment(self, record_count: int) -> Generator[Tags, None, None]:
        tags: Tags = {"records": record_count}
        start = time.perf_counter()
        try:
            yield tags
        finally:
            tags["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            log.debug("[ENRICH DONE]", extra=tags)

    def request_completed(self, limit: int, record_count: int, duration_seconds: float) -> None:
        log.info(
            "[RANKING DONE]",
            extra={
                "limit": limit,
                "records": record_count,
                "duration_ms": round(duration_seconds * 1000, 2),
            },
        )

    def request_failed(self, limit: int, error: BaseException, duration_seconds: float) -> None:
        log.error(
            "[RANKING FAILED]",
            extra={
                "limit": limit,
                "error": str(error),
                "error_type": type(error).__name__,
                "duration_ms": round(duration_seconds * 1000, 2),
            },
        )


__all__ = ["LoggingHooks", "PipelineHooks", "Tags"]
