"""
Pipeline package for the ranking service.

Re-exports the chunk planner, delay shaper, fetcher, enricher, hooks and the
service so downstream code can import from `rankpool.pipeline` directly.
"""

from rankpool.pipeline.chunking import ChunkPlan, ChunkWindow
from rankpool.pipeline.delay import DelayShaper
from rankpool.pipeline.enricher import ProfileEnricher
from rankpool.pipeline.fetcher import ChunkedFetcher
from rankpool.pipeline.hooks import LoggingHooks, PipelineHooks
from rankpool.pipeline.service import RankingResult, RankingService, build_ranking_service

__all__ = [
    # Planning
    "ChunkPlan",
    "ChunkWindow",
    "DelayShaper",
    # Stages
    "ChunkedFetcher",
    "ProfileEnricher",
    # Observation
    "LoggingHooks",
    "PipelineHooks",
    # Service
    "RankingResult",
    "RankingService",
    "build_ranking_service",
]
