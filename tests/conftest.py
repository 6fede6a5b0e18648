"""
Pytest configuration for the ranking service.

Provides fixtures for:
- In-memory stores, pools and services for unit tests
- Database connection management and score seeding for integration tests
- Settings override for both
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List

import psycopg
import pytest

from rankpool.config import Settings
from rankpool.infrastructure.resource_pool import ResourcePool
from rankpool.infrastructure.score_store import InMemoryScoreStore, rows_from_tuples
from rankpool.pipeline.chunking import ChunkWindow
from rankpool.pipeline.delay import DelayShaper
from rankpool.pipeline.enricher import ProfileEnricher
from rankpool.pipeline.fetcher import ChunkedFetcher
from rankpool.pipeline.hooks import PipelineHooks
from rankpool.pipeline.service import RankingService

SMALL_STORE_USERS = 250


class FakeClock:
    """perf_counter stand-in advanced only by FakeClock.sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingHooks(PipelineHooks):
    """Remember which scopes were opened and whether they were closed."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    @contextmanager
    def chunk(self, window: ChunkWindow, total_chunks: int, delay_seconds: float):
        self.events.append(("chunk_open", window.index, delay_seconds))
        try:
            yield {}
        finally:
            self.events.append(("chunk_close", window.index))

    @contextmanager
    def enrichment(self, record_count: int):
        self.events.append(("enrich_open", record_count))
        try:
            yield {}
        finally:
            self.events.append(("enrich_close", record_count))

    def request_completed(self, limit: int, record_count: int, duration_seconds: float) -> None:
        self.events.append(("completed", limit, record_count))

    def request_failed(self, limit: int, error: BaseException, duration_seconds: float) -> None:
        self.events.append(("failed", limit, type(error).__name__))


@pytest.fixture
def memory_store() -> InMemoryScoreStore:
    return InMemoryScoreStore.seeded(users=SMALL_STORE_USERS, seed=7, typo_marker="대이터독")


@pytest.fixture
def tiny_store() -> InMemoryScoreStore:
    return InMemoryScoreStore(
        rows_from_tuples(
            [
                ("alice", 1500, 1_000),
                ("alice", 2200, 2_000),
                ("bob", 900, 1_500),
                ("carol", None, 1_200),
                ("dave", 900, 3_000),
                ("erin", 40, 500),
            ]
        )
    )


@pytest.fixture
def memory_pool(memory_store: InMemoryScoreStore) -> Generator[ResourcePool, None, None]:
    pool = ResourcePool(capacity=3, acquire_timeout=0.5, factory=memory_store.open_connection)
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def fetcher(
    memory_pool: ResourcePool,
    memory_store: InMemoryScoreStore,
    fake_clock: FakeClock,
    recording_hooks: RecordingHooks,
) -> ChunkedFetcher:
    return ChunkedFetcher(
        pool=memory_pool,
        store=memory_store,
        delay_shaper=DelayShaper(),
        chunk_size=10,
        hooks=recording_hooks,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture
def service(fetcher: ChunkedFetcher, recording_hooks: RecordingHooks) -> RankingService:
    return RankingService(
        fetcher=fetcher,
        enricher=ProfileEnricher(hooks=recording_hooks),
        hooks=recording_hooks,
    )


@pytest.fixture
def memory_settings() -> Settings:
    return Settings(
        store_backend="memory",
        memory_store_users=SMALL_STORE_USERS,
        pool_capacity=2,
        pool_acquire_timeout_seconds=0.2,
        delay_nominal_seconds=0.0,
        delay_elevated_seconds=0.0,
        delay_escalation_seconds=0.0,
        service_name="ranking-test",
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "rankings"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the scores table exists, creating it from db/init.sql if necessary.
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    db_connection.commit()
    return True


@pytest.fixture
def clean_scores_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the scores table before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.scores RESTART IDENTITY;")
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.scores RESTART IDENTITY;")
    db_connection.commit()


@pytest.fixture
def seeded_scores(
    db_connection: psycopg.Connection,
    clean_scores_table,
    test_dsn: str,
) -> int:
    """
    Seed 120 users x 3 score rows. Returns the number of distinct users.
    """
    from scripts.generate_data import _copy_into_db, _generate_rows_csv

    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "scores.csv"
        _generate_rows_csv(csv_path, users=120, rows_per_user=3, batch_size=50, seed=42)
        _copy_into_db(test_dsn, csv_path)

    with db_connection.cursor() as cur:
        cur.execute("SELECT COUNT(DISTINCT user_id) FROM public.scores;")
        count = cur.fetchone()[0]

    return count
