"""
Pressure runs: concurrent ranking calls that reproduce pool exhaustion.

Usage (example from CLI):
    from rankpool.loadgen import PressureConfig, run_pressure

    report = run_pressure(PressureConfig(concurrency=40, requests=40, limit=200))
    print(report["outcomes"])

A run fires `requests` ranking calls from `concurrency` worker threads, either
in-process against a `RankingService` or over HTTP against a running server
(`target_url`). Every call is classified by outcome; latencies are aggregated
and the whole run is profiled.

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/pressure-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import math
import statistics
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from rankpool.config import get_settings
from rankpool.errors import ChunkFetchError, InvalidInput, PoolExhausted
from rankpool.pipeline.service import RankingService, build_ranking_service
from rankpool.utils.logging import get_logger
from rankpool.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

OK = "ok"
POOL_EXHAUSTED = "pool_exhausted"
CHUNK_FETCH_ERROR = "chunk_fetch_error"
INVALID_INPUT = "invalid_input"
ERROR = "error"

Call = Callable[[int], Tuple[str, int]]


@dataclass(frozen=True)
class PressureConfig:
    """
    Parameters of one pressure run. `None` fields fall back to settings.
    """

    concurrency: Optional[int] = None
    requests: Optional[int] = None
    limit: Optional[int] = None
    target_url: Optional[str] = None
    http_timeout_seconds: float = 120.0
    results_dir: Path | str = "results"
    persist: bool = True


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _percentile(sorted_values: List[float], pct: float) -> float:
    """Nearest-rank percentile of an already sorted list."""
    rank = max(1, math.ceil(pct / 100.0 * len(sorted_values)))
    return sorted_values[rank - 1]


def _summarize_latencies(latencies_ms: List[float]) -> Dict[str, float]:
    """Median, mean, stddev, p95, min and max of the latencies, rounded to 2 places."""
    if not latencies_ms:
        return {}
    ordered = sorted(latencies_ms)
    summary = {
        "median": statistics.median(ordered),
        "mean": statistics.mean(ordered),
        "stddev": statistics.stdev(ordered) if len(ordered) > 1 else 0.0,
        "p95": _percentile(ordered, 95),
        "min": ordered[0],
        "max": ordered[-1],
    }
    return {k: _round_float(v) for k, v in summary.items()}


def _service_call(service: RankingService) -> Call:
    def call(limit: int) -> Tuple[str, int]:
        try:
            return OK, len(service.top_rankings(limit))
        except PoolExhausted:
            return POOL_EXHAUSTED, 0
        except ChunkFetchError:
            return CHUNK_FETCH_ERROR, 0
        except InvalidInput:
            return INVALID_INPUT, 0

    return call


def _classify_http_error(response: httpx.Response) -> str:
    if response.status_code == 400:
        return INVALID_INPUT
    try:
        kind = response.json().get("error")
    except ValueError:
        return ERROR
    return {"PoolExhausted": POOL_EXHAUSTED, "ChunkFetchError": CHUNK_FETCH_ERROR}.get(kind, ERROR)


def _http_call(client: httpx.Client) -> Call:
    def call(limit: int) -> Tuple[str, int]:
        response = client.get("/rankings/top", params={"limit": limit})
        if response.status_code == 200:
            return OK, len(response.json())
        return _classify_http_error(response), 0

    return call


def _fire(call: Call, limit: int, requests: int, concurrency: int) -> List[Dict[str, Any]]:
    """Run `requests` calls on `concurrency` threads, all released at once."""
    gate = threading.Event()

    def one(n: int) -> Dict[str, Any]:
        gate.wait()
        start = time.perf_counter()
        try:
            outcome, records = call(limit)
        except Exception as exc:  # noqa: BLE001 - every failure is an outcome of the run
            log.warning(f"[CALL FAILED] #{n}", extra={"error": str(exc)})
            outcome, records = ERROR, 0
        return {
            "call": n,
            "outcome": outcome,
            "records": records,
            "latency_ms": (time.perf_counter() - start) * 1000,
        }

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="pressure") as pool:
        futures = [pool.submit(one, n) for n in range(requests)]
        gate.set()
        return [future.result() for future in futures]


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"pressure-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def _profile_summary(stats: ProfileStats) -> Dict[str, Any]:
    return {
        "label": stats.label,
        "duration_seconds": _round_float(stats.duration_seconds),
        "peak_rss_bytes": stats.peak_rss_bytes,
        "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
    }


def run_pressure(
    config: Optional[PressureConfig] = None,
    service: Optional[RankingService] = None,
) -> Dict[str, Any]:
    """
    Execute one pressure run and return its report.

    Parameters
    ----------
    config : PressureConfig | None
        Run parameters; unset fields come from settings.
    service : RankingService | None
        In-process target. Ignored when `config.target_url` is set. When both are
        missing a service is built from settings and closed afterwards.

    Returns
    -------
    dict
        Outcome counts, latency summary, pool stats (in-process only), profile
        and per-call details.
    """
    config = config or PressureConfig()
    settings = get_settings()
    concurrency = config.concurrency or settings.pressure_concurrency
    requests = config.requests or settings.pressure_requests
    limit = settings.pressure_limit if config.limit is None else config.limit

    log.info(
        "[PRESSURE START]",
        extra={
            "concurrency": concurrency,
            "requests": requests,
            "limit": limit,
            "target": config.target_url or "in-process",
        },
    )

    owned_service: Optional[RankingService] = None
    client: Optional[httpx.Client] = None
    if config.target_url:
        client = httpx.Client(base_url=config.target_url, timeout=config.http_timeout_seconds)
        call = _http_call(client)
    else:
        if service is None:
            service = owned_service = build_ranking_service(settings)
        call = _service_call(service)

    try:
        with profile_block("pressure") as stats:
            calls = _fire(call, limit=limit, requests=requests, concurrency=concurrency)
        pool_stats = None if config.target_url else service.pool.stats().as_dict()
    finally:
        if client is not None:
            client.close()
        if owned_service is not None:
            owned_service.close()

    outcomes = Counter(c["outcome"] for c in calls)
    succeeded = [c["latency_ms"] for c in calls if c["outcome"] == OK]
    report: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "target": config.target_url or "in-process",
        "concurrency": concurrency,
        "requests": requests,
        "limit": limit,
        "outcomes": dict(outcomes),
        "exhausted": outcomes.get(POOL_EXHAUSTED, 0) > 0,
        "latency_ms": _summarize_latencies([c["latency_ms"] for c in calls]),
        "ok_latency_ms": _summarize_latencies(succeeded),
        "throughput_requests_per_sec": (
            _round_float(len(succeeded) / stats.duration_seconds) if stats.duration_seconds else 0.0
        ),
        "pool": pool_stats,
        "profile": _profile_summary(stats),
        "calls": [dict(c, latency_ms=_round_float(c["latency_ms"])) for c in calls],
    }

    if config.persist:
        _persist_results(report, Path(config.results_dir))

    log.info(
        "[PRESSURE COMPLETE]",
        extra={"outcomes": report["outcomes"], "duration": report["profile"]["duration_seconds"]},
    )
    return report


__all__ = [
    "CHUNK_FETCH_ERROR",
    "ERROR",
    "INVALID_INPUT",
    "OK",
    "POOL_EXHAUSTED",
    "PressureConfig",
    "run_pressure",
]
