"""
Chunk planning for paginated ranking reads.

A `ChunkPlan` splits a requested item count into fixed-size, non-overlapping
offset/limit windows. Chunk sizes always add up to the requested limit; only
the last window may be smaller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from rankpool.errors import InvalidInput


@dataclass(frozen=True)
class ChunkWindow:
    index: int
    offset: int
    limit: int


@dataclass(frozen=True)
class ChunkPlan:
    """
    Deterministic split of `requested_limit` into `total_chunks` windows.
    """

    requested_limit: int
    chunk_size: int
    total_chunks: int
    last_chunk_size: int

    @classmethod
    def build(cls, requested_limit: int, chunk_size: int) -> "ChunkPlan":
        if chunk_size <= 0:
            raise InvalidInput(f"chunk_size must be positive, got {chunk_size}", stage="plan")
        if requested_limit < 0:
            raise InvalidInput(
                f"limit must be zero or positive, got {requested_limit}", stage="plan"
            )

        total_chunks = -(-requested_limit // chunk_size)
        if total_chunks == 0:
            last_chunk_size = 0
        else:
            last_chunk_size = requested_limit - (total_chunks - 1) * chunk_size
        return cls(
            requested_limit=requested_limit,
            chunk_size=chunk_size,
            total_chunks=total_chunks,
            last_chunk_size=last_chunk_size,
        )

    def windows(self) -> Iterator[ChunkWindow]:
        """Yield windows in strictly increasing index order."""
        for index in range(self.total_chunks):
            offset = index * self.chunk_size
            yield ChunkWindow(
                index=index,
                offset=offset,
                limit=min(self.chunk_size, self.requested_limit - offset),
            )


__all__ = ["ChunkPlan", "ChunkWindow"]
