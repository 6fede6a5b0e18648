"""
Error taxonomy for the ranking pipeline.

Every error carries the pipeline stage and, where one applies, the chunk index
at which it happened. Context is attached once, by the component that knows it,
and the error then travels to the caller unchanged in kind. Nothing in the
request path retries.
"""

from __future__ import annotations

from typing import Optional


class RankingError(Exception):
    """Base class for failures surfaced by the ranking pipeline."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        chunk_index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.chunk_index = chunk_index

    def annotate(
        self, *, stage: Optional[str] = None, chunk_index: Optional[int] = None
    ) -> "RankingError":
        """Fill in missing context and return self so callers can `raise err.annotate(...)`."""
        if self.stage is None and stage is not None:
            self.stage = stage
        if self.chunk_index is None and chunk_index is not None:
            self.chunk_index = chunk_index
        return self

    def __str__(self) -> str:
        where = []
        if self.stage is not None:
            where.append(f"stage={self.stage}")
        if self.chunk_index is not None:
            where.append(f"chunk={self.chunk_index}")
        if not where:
            return self.message
        return f"[{' '.join(where)}] {self.message}"


class PoolExhausted(RankingError):
    """No pooled connection became available before the acquisition timeout."""

    def __init__(
        self,
        pool_name: str,
        capacity: int,
        timeout: float,
        *,
        stage: Optional[str] = None,
        chunk_index: Optional[int] = None,
    ) -> None:
        super().__init__(
            f"pool '{pool_name}' exhausted: all {capacity} connections busy "
            f"for {timeout:.3f}s",
            stage=stage,
            chunk_index=chunk_index,
        )
        self.pool_name = pool_name
        self.capacity = capacity
        self.timeout = timeout


class ChunkFetchError(RankingError):
    """Acquiring or reading one chunk failed; the whole fetch is abandoned."""

    def __init__(
        self,
        chunk_index: int,
        cause: BaseException,
        *,
        stage: str = "fetch",
        action: str = "read",
    ) -> None:
        super().__init__(
            f"chunk {chunk_index} {action} failed: {cause}",
            stage=stage,
            chunk_index=chunk_index,
        )
        self.cause = cause


class InvalidInput(RankingError):
    """Input rejected before any work was done."""


__all__ = ["RankingError", "PoolExhausted", "ChunkFetchError", "InvalidInput"]
