"""
rankpool - ranking service that stages connection pool exhaustion.

The service answers "top N users by best score" by reading the ranking in small
offset/limit chunks, one pooled database connection per chunk, holding each
connection for a size-dependent delay. Concurrent large requests therefore
saturate a bounded pool in a reproducible way, which is what an APM demo needs:

- Bounded resource pools (in-process and psycopg_pool backed)
- Chunk planning and tiered per-chunk delays
- Sequential chunked fetch with guaranteed connection release
- Profile enrichment of the fetched records
- FastAPI surface, pressure runs and a typer CLI
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rankpool.config import Settings, get_settings
from rankpool.errors import ChunkFetchError, InvalidInput, PoolExhausted, RankingError
from rankpool.infrastructure.resource_pool import PoolHandle, ResourcePool
from rankpool.pipeline import (
    ChunkedFetcher,
    ChunkPlan,
    DelayShaper,
    ProfileEnricher,
    RankingService,
    build_ranking_service,
)
from rankpool.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "RankingError",
    "PoolExhausted",
    "ChunkFetchError",
    "InvalidInput",
    # Pool
    "PoolHandle",
    "ResourcePool",
    # Pipeline
    "ChunkPlan",
    "ChunkedFetcher",
    "DelayShaper",
    "ProfileEnricher",
    "RankingService",
    "build_ranking_service",
    # Logging
    "configure_logging",
    "get_logger",
]
