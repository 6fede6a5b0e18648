from __future__ import annotations

from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from rankpool.loadgen import CHUNK_FETCH_ERROR, ERROR, INVALID_INPUT, OK, POOL_EXHAUSTED

_OUTCOME_STYLES = {
    OK: "green",
    POOL_EXHAUSTED: "bold red",
    CHUNK_FETCH_ERROR: "red",
    INVALID_INPUT: "yellow",
    ERROR: "magenta",
}


def _fmt_ms(summary: Dict[str, float], key: str) -> str:
    value = summary.get(key)
    return "N/A" if value is None else f"{value:,.1f}"


def print_pressure_report(report: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a pressure run as rich tables: outcomes, latencies and pool counters.
    """
    console = console or Console()

    title = (
        f"Pressure run: {report['requests']} x limit={report['limit']} "
        f"@ concurrency {report['concurrency']}\n[dim]target: {report['target']}[/dim]"
    )
    outcomes = Table(title=title, box=box.ROUNDED)
    outcomes.add_column("Outcome", style="cyan", no_wrap=True)
    outcomes.add_column("Calls", justify="right", style="magenta")
    outcomes.add_column("Share", justify="right")

    total = max(report["requests"], 1)
    for outcome, style in _OUTCOME_STYLES.items():
        count = report["outcomes"].get(outcome, 0)
        if count == 0 and outcome != OK:
            continue
        outcomes.add_row(f"[{style}]{outcome}[/{style}]", f"{count:,}", f"{count / total:.0%}")
    console.print(outcomes)

    latency = Table(box=box.ROUNDED, caption="Latency in milliseconds")
    latency.add_column("Calls", style="cyan")
    for column in ("median", "mean", "p95", "max"):
        latency.add_column(column, justify="right", style="green")
    for label, key in (("all", "latency_ms"), ("ok only", "ok_latency_ms")):
        summary = report.get(key) or {}
        latency.add_row(label, *(_fmt_ms(summary, c) for c in ("median", "mean", "p95", "max")))
    console.print(latency)

    pool = report.get("pool")
    if pool:
        console.print(
            f"Pool [cyan]{pool['name']}[/cyan]: capacity {pool['capacity']}, "
            f"peak in use {pool['peakInUse']}, exhaustion events "
            f"[bold red]{pool['exhaustedCount']}[/bold red]"
        )

    profile = report.get("profile") or {}
    rss = profile.get("peak_rss_bytes") or 0
    console.print(
        f"Wall clock {profile.get('duration_seconds', 0.0):.2f}s, "
        f"{report.get('throughput_requests_per_sec', 0.0):,.2f} ok req/s, "
        f"peak RSS {rss / (1024 * 1024):.1f} MB"
    )
    if report.get("exhausted"):
        console.print("[bold red]Connection pool exhausted during the run.[/bold red]")
