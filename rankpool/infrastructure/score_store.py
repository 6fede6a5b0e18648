"""
Ranked-score stores read by the chunked fetcher.

A store answers one question: the `limit` users starting at `offset` of the
ranking "best score per user, descending". It reads through the connection the
pool handed out, so every read happens while a pool slot is held.

- `PostgresScoreStore` issues the grouped, windowed query against `public.scores`
  and embeds the hold as `pg_sleep` so the delay shows up on the query span.
- `InMemoryScoreStore` ranks a static list of score rows in-process. It does not
  sleep; the fetcher tops the hold up to the required duration.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from rankpool.domain.models import Record

RANKING_WINDOW_SQL = (
    "SELECT "
    "user_id, "
    "MAX(high_score) AS high_score, "
    "MAX(created_at) AS created_at, "
    "pg_sleep(%s) AS sleep_duration "
    "FROM public.scores "
    "GROUP BY user_id "
    "ORDER BY MAX(high_score) DESC NULLS LAST, user_id "
    "LIMIT %s OFFSET %s"
)


@runtime_checkable
class ScoreStore(Protocol):
    """
    Collaborator boundary for the windowed ranking read.
    """

    source: str

    def read_window(
        self, connection: Any, limit: int, offset: int, hold_seconds: float
    ) -> List[Record]:
        """Return ranking positions [offset, offset + limit) ordered by score descending."""
        ...


def _epoch_ms(value: Any) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(value)


class PostgresScoreStore:
    """
    Windowed ranking read over psycopg connections.
    """

    source: str = "postgresql"

    def __init__(self, sql: str = RANKING_WINDOW_SQL) -> None:
        self.sql = sql

    def read_window(
        self, connection: Any, limit: int, offset: int, hold_seconds: float
    ) -> List[Record]:
        with connection.cursor() as cur:
            cur.execute(self.sql, (hold_seconds, limit, offset))
            rows = cur.fetchall()
        # The pooled connection must go back idle, not inside a transaction.
        connection.rollback()
        return [
            Record(
                user_id=user_id,
                score=high_score,
                timestamp=_epoch_ms(created_at),
                source=self.source,
            )
            for user_id, high_score, created_at, _sleep in rows
        ]


@dataclass(frozen=True)
class ScoreRow:
    user_id: str
    high_score: Optional[int]
    created_at_ms: int


class InMemoryConnection:
    """Stand-in connection; remembers the windows read through it."""

    def __init__(self, connection_id: int) -> None:
        self.connection_id = connection_id
        self.queries: List[Tuple[int, int]] = []


class InMemoryScoreStore:
    """
    Static, in-process score table with the same ranking contract as PostgreSQL.

    Rows are grouped by user (max score, max timestamp) and ordered by score
    descending, then user id, once at construction. A `None` score sorts last,
    matching the `DESC NULLS LAST` of the SQL query.
    """

    source: str = "memory"

    def __init__(self, rows: Iterable[ScoreRow]) -> None:
        best: Dict[str, Tuple[Optional[int], int]] = {}
        for row in rows:
            score, ts = best.get(row.user_id, (None, row.created_at_ms))
            if row.high_score is not None and (score is None or row.high_score > score):
                score = row.high_score
            best[row.user_id] = (score, max(ts, row.created_at_ms))

        self._ranking: List[Record] = sorted(
            (
                Record(user_id=user_id, score=score, timestamp=ts, source=self.source)
                for user_id, (score, ts) in best.items()
            ),
            key=lambda r: (r.score is None, -(r.score or 0), r.user_id),
        )
        self._lock = threading.Lock()
        self._connections = 0

    @classmethod
    def seeded(
        cls,
        users: int,
        seed: int = 42,
        rows_per_user: int = 3,
        typo_marker: Optional[str] = None,
    ) -> "InMemoryScoreStore":
        """
        Build a store with deterministic pseudo-random scores.

        When `typo_marker` is given, every 25th user id carries it so enrichment
        has identifiers to correct.
        """
        rng = random.Random(seed)
        base_ms = 1_700_000_000_000
        rows: List[ScoreRow] = []
        for n in range(users):
            user_id = f"user-{n:05d}"
            if typo_marker and n % 25 == 0:
                user_id = f"{typo_marker}-{n:05d}"
            for _ in range(rows_per_user):
                rows.append(
                    ScoreRow(
                        user_id=user_id,
                        high_score=rng.randint(0, 3000),
                        created_at_ms=base_ms + rng.randint(0, 86_400_000),
                    )
                )
        return cls(rows)

    def __len__(self) -> int:
        return len(self._ranking)

    def ranking(self, limit: int) -> List[Record]:
        """Single-shot top-`limit` ranking."""
        return list(self._ranking[:limit])

    def open_connection(self) -> InMemoryConnection:
        with self._lock:
            self._connections += 1
            return InMemoryConnection(self._connections)

    def read_window(
        self, connection: Any, limit: int, offset: int, hold_seconds: float
    ) -> List[Record]:
        if isinstance(connection, InMemoryConnection):
            connection.queries.append((limit, offset))
        return list(self._ranking[offset : offset + limit])


def rows_from_tuples(rows: Sequence[Tuple[str, Optional[int], int]]) -> List[ScoreRow]:
    return [ScoreRow(user_id=u, high_score=s, created_at_ms=t) for u, s, t in rows]


__all__ = [
    "RANKING_WINDOW_SQL",
    "InMemoryConnection",
    "InMemoryScoreStore",
    "PostgresScoreStore",
    "ScoreRow",
    "ScoreStore",
    "rows_from_tuples",
]
