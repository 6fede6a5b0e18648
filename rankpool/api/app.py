"""
HTTP surface of the ranking service.

Endpoints:
- GET /               liveness
- GET /rankings/top   chunked ranking fetch + enrichment
- GET /pool/stats     pool counters (in-use, peak, exhaustion count)

Ranking endpoints are plain `def` handlers: FastAPI runs them on its worker
thread pool, one thread per in-flight request, and the pipeline blocks on the
shared pool from there.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rankpool.config import Settings, get_settings
from rankpool.errors import InvalidInput, PoolExhausted, RankingError
from rankpool.pipeline.service import RankingService, build_ranking_service
from rankpool.utils.logging import get_logger

log = get_logger(__name__)

TRACE_HEADERS = [
    "x-datadog-trace-id",
    "x-datadog-parent-id",
    "x-datadog-origin",
    "x-datadog-sampling-priority",
    "traceparent",
    "tracestate",
    "b3",
]
EXPOSED_HEADERS = ["x-datadog-trace-id", "x-datadog-parent-id", "traceparent", "tracestate"]


def _error_body(exc: RankingError) -> Dict[str, Any]:
    return {
        "detail": f"ranking lookup failed: {exc}",
        "error": type(exc).__name__,
        "stage": exc.stage,
        "chunkIndex": exc.chunk_index,
    }


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[RankingService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    When `service` is given it is used as-is and left open on shutdown; otherwise
    one is built from settings during startup and closed on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        if owned:
            if settings.store_backend == "postgres":
                from rankpool.infrastructure.db_factory import wait_for_database

                wait_for_database(settings.dsn)
            app.state.service = build_ranking_service(settings)
        else:
            app.state.service = service
        log.info(
            f"[API START] {settings.service_name}",
            extra={"backend": settings.store_backend, "pool_capacity": settings.pool_capacity},
        )
        try:
            yield
        finally:
            if owned:
                app.state.service.close()
            log.info(f"[API STOP] {settings.service_name}")

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*", *TRACE_HEADERS],
        expose_headers=EXPOSED_HEADERS,
    )

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(exc))

    @app.exception_handler(PoolExhausted)
    async def pool_exhausted_handler(request: Request, exc: PoolExhausted) -> JSONResponse:
        log.error("[POOL EXHAUSTED] request failed", extra={"chunk": exc.chunk_index})
        return JSONResponse(status_code=500, content=_error_body(exc))

    @app.exception_handler(RankingError)
    async def ranking_error_handler(request: Request, exc: RankingError) -> JSONResponse:
        return JSONResponse(status_code=500, content=_error_body(exc))

    @app.get("/")
    def health() -> Dict[str, str]:
        return {"status": "healthy", "service": settings.service_name}

    @app.get("/rankings/top")
    def top_rankings(request: Request, limit: int = Query(10)) -> List[Dict[str, Any]]:
        service_: RankingService = request.app.state.service
        records = service_.top_rankings(limit)
        return [record.to_wire() for record in records]

    @app.get("/pool/stats")
    def pool_stats(request: Request) -> Dict[str, Any]:
        service_: RankingService = request.app.state.service
        return service_.pool.stats().as_dict()

    return app


__all__ = ["create_app", "TRACE_HEADERS"]
