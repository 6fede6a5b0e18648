"""
Infrastructure package for the ranking service.

Centralizes resource pooling and score-store access. Keep this layer focused on
I/O and resource management, decoupled from pipeline logic. The PostgreSQL
pool lives in `rankpool.infrastructure.db_factory` and is imported on demand.
"""

from rankpool.infrastructure.resource_pool import (
    AbstractResourcePool,
    PoolHandle,
    PoolStats,
    ResourcePool,
)
from rankpool.infrastructure.score_store import (
    InMemoryScoreStore,
    PostgresScoreStore,
    ScoreStore,
)

__all__ = [
    "AbstractResourcePool",
    "InMemoryScoreStore",
    "PoolHandle",
    "PoolStats",
    "PostgresScoreStore",
    "ResourcePool",
    "ScoreStore",
]
