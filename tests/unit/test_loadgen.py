from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from rich.console import Console

from rankpool import loadgen
from rankpool.infrastructure.resource_pool import ResourcePool
from rankpool.infrastructure.score_store import InMemoryScoreStore
from rankpool.loadgen import PressureConfig, run_pressure
from rankpool.pipeline.delay import DelayShaper
from rankpool.pipeline.enricher import ProfileEnricher
from rankpool.pipeline.fetcher import ChunkedFetcher
from rankpool.pipeline.service import RankingService
from rankpool.reporter import print_pressure_report

HOLD_SECONDS = 0.2
ACQUIRE_TIMEOUT = 0.05
POOL_CAPACITY = 2
CALLS = 6


def _held_service(capacity: int, acquire_timeout: float) -> RankingService:
    store = InMemoryScoreStore.seeded(users=50, seed=3)
    pool = ResourcePool(
        capacity=capacity,
        acquire_timeout=acquire_timeout,
        factory=store.open_connection,
        name="pressure-test",
    )
    shaper = DelayShaper(nominal_seconds=HOLD_SECONDS, elevated_seconds=HOLD_SECONDS)
    return RankingService(
        fetcher=ChunkedFetcher(pool=pool, store=store, delay_shaper=shaper),
        enricher=ProfileEnricher(),
    )


def test_concurrent_holders_exhaust_a_small_pool() -> None:
    service = _held_service(POOL_CAPACITY, ACQUIRE_TIMEOUT)

    report = run_pressure(
        PressureConfig(concurrency=CALLS, requests=CALLS, limit=10, persist=False),
        service=service,
    )

    outcomes = report["outcomes"]
    assert report["exhausted"] is True
    assert outcomes.get(loadgen.OK, 0) >= 1
    assert outcomes.get(loadgen.OK, 0) + outcomes[loadgen.POOL_EXHAUSTED] == CALLS
    assert report["pool"]["exhaustedCount"] == outcomes[loadgen.POOL_EXHAUSTED]
    assert report["pool"]["peakInUse"] == POOL_CAPACITY
    assert report["pool"]["inUse"] == 0
    assert len(report["calls"]) == CALLS
    assert report["target"] == "in-process"


def test_generous_pool_is_not_exhausted(tmp_path: Path) -> None:
    service = _held_service(capacity=CALLS, acquire_timeout=2.0)

    report = run_pressure(
        PressureConfig(concurrency=CALLS, requests=CALLS, limit=10, results_dir=tmp_path),
        service=service,
    )

    assert report["exhausted"] is False
    assert report["outcomes"] == {loadgen.OK: CALLS}
    assert report["ok_latency_ms"]["min"] >= HOLD_SECONDS * 1000 * 0.9
    assert report["throughput_requests_per_sec"] > 0

    latest = json.loads((tmp_path / "latest.json").read_text(encoding="utf-8"))
    assert latest["outcomes"] == {loadgen.OK: CALLS}
    assert len(list(tmp_path.glob("pressure-*.json"))) == 1


def test_summarize_latencies() -> None:
    summary = loadgen._summarize_latencies([10.0, 20.0, 30.0, 40.0])

    assert summary["median"] == 25.0
    assert summary["mean"] == 25.0
    assert summary["p95"] == 40.0
    assert summary["min"] == 10.0
    assert summary["max"] == 40.0
    assert loadgen._summarize_latencies([]) == {}


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (400, {"error": "InvalidInput"}, loadgen.INVALID_INPUT),
        (500, {"error": "PoolExhausted"}, loadgen.POOL_EXHAUSTED),
        (500, {"error": "ChunkFetchError"}, loadgen.CHUNK_FETCH_ERROR),
        (500, {"error": "RankingError"}, loadgen.ERROR),
    ],
)
def test_classify_http_error(status: int, body: dict, expected: str) -> None:
    assert loadgen._classify_http_error(httpx.Response(status, json=body)) == expected


def test_classify_http_error_without_json_body() -> None:
    response = httpx.Response(502, text="Bad Gateway")

    assert loadgen._classify_http_error(response) == loadgen.ERROR


def test_http_call_counts_records() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rankings/top"
        limit = int(request.url.params["limit"])
        if limit > 100:
            return httpx.Response(500, json={"error": "PoolExhausted"})
        return httpx.Response(200, json=[{"userId": str(n)} for n in range(limit)])

    with httpx.Client(base_url="http://ranking.test", transport=httpx.MockTransport(handler)) as client:
        call = loadgen._http_call(client)
        assert call(7) == (loadgen.OK, 7)
        assert call(200) == (loadgen.POOL_EXHAUSTED, 0)


def test_unexpected_failures_become_error_outcomes() -> None:
    def call(limit: int):
        raise RuntimeError("socket closed")

    calls = loadgen._fire(call, limit=1, requests=3, concurrency=2)

    assert [c["outcome"] for c in calls] == [loadgen.ERROR] * 3


def test_reporter_renders_outcomes() -> None:
    report = {
        "target": "in-process",
        "concurrency": 4,
        "requests": 4,
        "limit": 200,
        "outcomes": {loadgen.OK: 1, loadgen.POOL_EXHAUSTED: 3},
        "exhausted": True,
        "latency_ms": {"median": 120.0, "mean": 130.0, "p95": 200.0, "max": 210.0},
        "ok_latency_ms": {"median": 210.0, "mean": 210.0, "p95": 210.0, "max": 210.0},
        "throughput_requests_per_sec": 4.5,
        "pool": {
            "name": "memory-pool",
            "capacity": 2,
            "inUse": 0,
            "peakInUse": 2,
            "exhaustedCount": 3,
        },
        "profile": {"duration_seconds": 0.22, "peak_rss_bytes": 50 * 1024 * 1024},
    }
    console = Console(record=True, width=120)

    print_pressure_report(report, console=console)

    text = console.export_text()
    assert "pool_exhausted" in text
    assert "exhaustion events 3" in text
    assert "Connection pool exhausted during the run." in text
