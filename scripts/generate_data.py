"""
Score data generation and loading script for the ranking service.

Implements deterministic pseudo-random score rows, CSV emission, and Postgres
COPY loading into `public.scores`. Several rows per user are generated so the
ranking query has something to group; a share of user ids carries the known
malformed substring that enrichment corrects.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import typer

from rankpool.config import get_settings
from rankpool.infrastructure.db_factory import build_dsn, get_sync_connection

app = typer.Typer(help="Generate synthetic scores and load into Postgres (CSV + COPY).")

CSV_HEADER = ["user_id", "high_score", "created_at"]


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _user_id(rng: random.Random, n: int, typo: str, typo_share: float) -> str:
    if rng.random() < typo_share:
        return f"{typo}_{n:06d}"
    return f"user_{n:06d}"


def _generate_rows_csv(
    csv_path: Path,
    users: int,
    rows_per_user: int,
    batch_size: int,
    seed: int,
    typo: str = "대이터독",
    typo_share: float = 0.02,
) -> int:
    """Write `users * rows_per_user` score rows; return the number of data rows."""
    rng = random.Random(seed)
    now = datetime.now(UTC)
    written = 0

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)

        buffer: list[list[str]] = []
        for n in range(users):
            user_id = _user_id(rng, n, typo, typo_share)
            for _ in range(rows_per_user):
                created_at = now - timedelta(seconds=rng.randint(0, 30 * 86_400))
                buffer.append([user_id, str(rng.randint(0, 3000)), created_at.isoformat()])
                if len(buffer) >= batch_size:
                    writer.writerows(buffer)
                    written += len(buffer)
                    buffer.clear()
        if buffer:
            writer.writerows(buffer)
            written += len(buffer)
    return written


def _copy_into_db(dsn: str, csv_path: Path) -> int:
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            with cur.copy(
                """
                COPY public.scores (user_id, high_score, created_at)
                FROM STDIN WITH (FORMAT csv, HEADER TRUE)
                """
            ) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for line in f:
                        copy.write(line)
            conn.commit()
    return 0


@app.command()
def main(
    users: int = typer.Option(
        5_000,
        "--users",
        "-u",
        help="Number of distinct users.",
    ),
    rows_per_user: int = typer.Option(
        5,
        "--rows-per-user",
        help="Score rows generated per user.",
    ),
    batch_size: int = typer.Option(
        10_000,
        "--batch-size",
        "-b",
        help="Batch size for CSV buffering during generation.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSV; skip loading into Postgres.",
    ),
) -> None:
    """
    Generate synthetic scores and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="scores_csv_"))
        csv_path = tmpdir / "scores.csv"

    typer.echo(f"Generating {users:,} users x {rows_per_user} rows -> {csv_path} (seed={seed})")
    rows = _generate_rows_csv(
        csv_path,
        users=users,
        rows_per_user=rows_per_user,
        batch_size=batch_size,
        seed=seed,
        typo=get_settings().user_id_typo,
    )
    gen_duration = time.perf_counter() - start
    typer.echo(f"CSV generation completed in {gen_duration:.2f}s ({rows:,} rows)")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Loading CSV into Postgres via COPY...")
    _copy_into_db(_build_dsn(dsn), csv_path)
    load_duration = time.perf_counter() - load_start
    typer.echo(f"Load completed in {load_duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
