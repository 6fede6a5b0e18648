from __future__ import annotations

import json
import sys
from typing import Optional

import typer

from rankpool.config import get_settings
from rankpool.utils.logging import configure_logging

app = typer.Typer(help="Ranking service that stages connection pool exhaustion.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"service={settings.service_name} backend={settings.store_backend} "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool={settings.pool_capacity} timeout={settings.pool_acquire_timeout_seconds}s "
        f"chunk={settings.chunk_size}"
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)."),
) -> None:
    """
    Run the HTTP service with uvicorn.
    """
    import uvicorn

    from rankpool.api.app import create_app

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


@app.command()
def rank(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of ranking entries to fetch."),
) -> None:
    """
    Run one ranking request in-process and print the JSON result.
    """
    from rankpool.pipeline.service import build_ranking_service

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    service = build_ranking_service(settings)
    try:
        result = service.top_rankings_timed(limit)
    finally:
        service.close()
    typer.echo(json.dumps([r.to_wire() for r in result.records], indent=2, ensure_ascii=False))
    typer.echo(f"{len(result.records)} records in {result.duration_seconds:.3f}s", err=True)


@app.command()
def pressure(
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Concurrent callers (default from settings)."
    ),
    requests: Optional[int] = typer.Option(
        None, "--requests", "-n", help="Total ranking calls (default from settings)."
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Ranking size per call (default from settings)."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", help="Base URL of a running service; omit to call in-process."
    ),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Write results/ JSON."),
) -> None:
    """
    Fire concurrent ranking calls and report whether the pool was exhausted.
    """
    from rankpool.loadgen import PressureConfig, run_pressure
    from rankpool.reporter import print_pressure_report

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    report = run_pressure(
        PressureConfig(
            concurrency=concurrency,
            requests=requests,
            limit=limit,
            target_url=url,
            persist=persist,
        )
    )
    print_pressure_report(report)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
