"""
Per-chunk hold durations.

The delay depends only on the chunk's index and on how many chunks the request
was split into. Three tiers let a caller pick the pool pressure by request size:

- nominal:  total_chunks < elevated_chunks            -> nominal_seconds
- elevated: elevated_chunks <= total < runaway_chunks -> elevated_seconds
- runaway:  total_chunks >= runaway_chunks            -> elevated_seconds + k * index**2

With the defaults a 200-item request (20 chunks of 10) holds its last chunk's
connection for 0.005 + 0.002 * 19**2 = 0.727s.
"""

from __future__ import annotations

from dataclasses import dataclass

NOMINAL = "nominal"
ELEVATED = "elevated"
RUNAWAY = "runaway"


@dataclass(frozen=True)
class DelayShaper:
    nominal_seconds: float = 0.002
    elevated_seconds: float = 0.005
    escalation_seconds: float = 0.002
    elevated_chunks: int = 10
    runaway_chunks: int = 19

    def __post_init__(self) -> None:
        if self.elevated_seconds < self.nominal_seconds:
            raise ValueError("elevated_seconds must not be below nominal_seconds")
        if self.escalation_seconds < 0:
            raise ValueError("escalation_seconds must be >= 0")
        if not 0 < self.elevated_chunks <= self.runaway_chunks:
            raise ValueError("expected 0 < elevated_chunks <= runaway_chunks")

    def regime(self, total_chunks: int) -> str:
        if total_chunks >= self.runaway_chunks:
            return RUNAWAY
        if total_chunks >= self.elevated_chunks:
            return ELEVATED
        return NOMINAL

    def delay(self, chunk_index: int, total_chunks: int) -> float:
        """Seconds to hold the connection for chunk `chunk_index` of `total_chunks`."""
        regime = self.regime(total_chunks)
        if regime == RUNAWAY:
            return self.elevated_seconds + self.escalation_seconds * chunk_index * chunk_index
        if regime == ELEVATED:
            return self.elevated_seconds
        return self.nominal_seconds

    __call__ = delay

    def total_hold(self, total_chunks: int) -> float:
        """Cumulative hold of a request split into `total_chunks` chunks."""
        return sum(self.delay(index, total_chunks) for index in range(total_chunks))


__all__ = ["DelayShaper", "NOMINAL", "ELEVATED", "RUNAWAY"]
