"""
MTD ranker — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (serve, one-shot refresh, config check).
  5. Report result to stdout.

Install and run::

    pip install -e .
    mtd-ranker --help
    mtd-ranker validate-config
    mtd-ranker refresh --year 2024 --month 2
    mtd-ranker serve --port 8080 --refresh-on-start
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="mtd-ranker",
    help="S&P 500 month-to-date return ranker: scrape, fetch, rank, serve.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from mtd_ranker.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config; ``debug`` forces DEBUG level for fetch tracing."""
    from mtd_ranker.utils.logging import configure_logging

    log_config = config.logging
    if config.debug:
        log_config = log_config.model_copy(update={"level": "DEBUG"})
    configure_logging(log_config)


def _build_controller(config):
    """Wire the production collaborators into a ``RefreshController``."""
    from mtd_ranker.ingestion.market_data import YahooMarketDataProvider
    from mtd_ranker.ingestion.ticker_source import WikipediaTickerSource
    from mtd_ranker.pipeline.refresh import RefreshController

    return RefreshController(
        config=config,
        ticker_source=WikipediaTickerSource(config.source),
        market_data=YahooMarketDataProvider(),
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    deadline = config.executor.deadline_seconds
    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Ticker source:    {config.source.url}")
    typer.echo(f"  Max workers:      {config.executor.max_workers}")
    typer.echo(f"  Deadline:         {f'{deadline:.0f}s' if deadline else 'none'}")
    typer.echo(f"  Item error limit: {config.pipeline.max_item_errors or 'none'}")
    typer.echo(f"  Single flight:    {config.refresh.single_flight}")
    typer.echo(f"  CSV output:       {config.output.csv_path if config.output.write_csv else 'disabled'}")
    typer.echo(f"  Server:           http://{config.server.host}:{config.server.port}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("refresh")
def refresh(
    year: Optional[int] = typer.Option(None, "--year", help="Window year (with --month)."),
    month: Optional[int] = typer.Option(None, "--month", help="Window month 1-12 (with --year)."),
    day: Optional[int] = typer.Option(None, "--day", help="Window start day (default 1)."),
    no_csv: bool = typer.Option(False, "--no-csv", help="Skip writing the CSV file."),
    json_path: Optional[str] = typer.Option(
        None,
        "--json",
        help="Also write the snapshot as JSON to this path.",
    ),
    top: int = typer.Option(20, "--top", help="Instruments to print (0 = all)."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run one refresh and print the ranked tables.

    \b
    Window:
      --year and --month together select a month starting on --day.
      Without them the previous calendar month is used.

    Exits with code 1 if the refresh fails.
    """
    from mtd_ranker.reporting.export import export_to_json, snapshot_to_dict
    from mtd_ranker.reporting.formatters import (
        format_refresh_summary,
        format_results_table,
        format_sector_table,
    )
    from mtd_ranker.utils.time_utils import resolve_window

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        window = resolve_window(year=year, month=month, day=day)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"refresh | window={window.start} .. {window.end}")
    controller = _build_controller(config)
    result = controller.refresh(window, write_csv=False if no_csv else None)

    typer.echo(format_refresh_summary(result))
    if not result.success:
        raise typer.Exit(code=1)

    snapshot = controller.get_snapshot()
    typer.echo(format_sector_table(snapshot))
    typer.echo(format_results_table(snapshot, top_n=top or None))

    if json_path and snapshot is not None:
        written = export_to_json(snapshot_to_dict(snapshot), Path(json_path))
        typer.echo(f"  JSON: {written}")

    typer.echo("")
    typer.echo(f"[OK] Refresh {result.status}.")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default from config)."),
    refresh_on_start: bool = typer.Option(
        False,
        "--refresh-on-start",
        help="Run one refresh in the background as soon as the server starts.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Serve the HTML page and JSON API until interrupted (Ctrl+C / SIGTERM).

    Results start empty; use the Refresh button or GET /api/mtd to load data.
    """
    from mtd_ranker.web.server import QueryServer

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    overrides = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    if refresh_on_start:
        overrides["refresh_on_start"] = True
    try:
        server_config = config.server.model_validate(
            {**config.server.model_dump(), **overrides}
        )
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    QueryServer(_build_controller(config), server_config).run()


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
