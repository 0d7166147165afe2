"""
Demand Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, history import, forecast, feedback, learning).
  5. Report result to stdout.

Install and run::

    pip install -e .
    demand-forecaster --help
    demand-forecaster init-db
    demand-forecaster validate-config
    demand-forecaster import-history --kind transactions --file sales.csv
    demand-forecaster forecast --commodity coal --horizon 6
    demand-forecaster feedback --prediction-id <id> --actual 1250
    demand-forecaster metrics --commodity coal
    demand-forecaster improve --commodity coal
    demand-forecaster history --commodity coal
"""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="demand-forecaster",
    help="Adaptive commodity demand forecaster — local SQLite CLI.",
    add_completion=False,
)

_IMPORT_KINDS = ("transactions", "prices", "sentiment")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from demand_forecaster.config import load_config

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
    """Set up logging from config."""
    from demand_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _build_engine(config, seed: Optional[int] = None):
    """Wire a ``ForecastEngine`` to the SQLite stores, applying the schema first."""
    from demand_forecaster.db.connection import get_connection
    from demand_forecaster.db.schema import apply_schema
    from demand_forecaster.forecasting.engine import ForecastEngine
    from demand_forecaster.stores.sqlite import (
        SqliteHistoricalDataSource,
        SqliteOutcomeStore,
        SqliteParameterStore,
    )

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    return ForecastEngine(
        history=SqliteHistoricalDataSource(config.database),
        outcomes=SqliteOutcomeStore(config.database),
        parameters=SqliteParameterStore(config.database),
        config=config,
        rng=random.Random(seed) if seed is not None else None,
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    """
    from demand_forecaster.db.connection import get_connection
    from demand_forecaster.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


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

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Default horizon:  {config.forecast.default_horizon_months} months")
    typer.echo(f"  Max horizon:      {config.forecast.max_horizon_months} months")
    typer.echo(f"  Lookback:         {config.forecast.lookback_months} months")
    typer.echo(f"  Learning minimum: {config.learning.min_data_points} outcomes")
    typer.echo(f"  Model version:    {config.learning.model_version}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-history")
def import_history(
    kind: str = typer.Option(
        ...,
        "--kind",
        "-k",
        help="What the file holds: transactions, prices or sentiment.",
    ),
    history_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="Path to the CSV file.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate rows but do not write to the database.",
    ),
) -> None:
    """Import historical transactions, market prices or sentiment from CSV.

    \b
      transactions — commodity_id, timestamp, quantity, unit_price
      prices       — commodity_id, timestamp, price
      sentiment    — commodity_id[, sentiment, growth_forecast, timestamp]

    All rows are validated before anything is written, and the import is
    written in a single transaction: a failure stores none of it.
    """
    from demand_forecaster.exceptions import ForecasterError
    from demand_forecaster.ingestion.history_csv import (
        parse_market_price_csv,
        parse_sentiment_csv,
        parse_transaction_csv,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if kind not in _IMPORT_KINDS:
        typer.echo(
            f"[ERROR] Unknown --kind '{kind}'. Use one of: {', '.join(_IMPORT_KINDS)}.",
            err=True,
        )
        raise typer.Exit(code=1)

    path = Path(history_file)
    typer.echo(f"Loading {kind} from: {path}")

    try:
        if kind == "transactions":
            records = parse_transaction_csv(path)
            count = len(records)
        elif kind == "prices":
            grouped_prices = parse_market_price_csv(path)
            count = sum(len(v) for v in grouped_prices.values())
        else:
            grouped_signals = parse_sentiment_csv(path)
            count = sum(len(v) for v in grouped_signals.values())
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] CSV parse failed:\n{exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Validated {count} row(s).")

    if dry_run:
        typer.echo("[DRY RUN] Nothing written to database.")
        return

    engine = _build_engine(config)
    try:
        if kind == "transactions":
            engine.history.import_history(transactions=records)
        elif kind == "prices":
            engine.history.import_history(prices=grouped_prices)
        else:
            engine.history.import_history(signals=grouped_signals)
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Inserted {count} row(s) into database.")
    typer.echo("[OK] History imported.")


@app.command("forecast")
def forecast(
    commodity: str = typer.Option(
        ...,
        "--commodity",
        "-c",
        help="Commodity id to forecast.",
    ),
    horizon: Optional[int] = typer.Option(
        None,
        "--horizon",
        help="Months ahead (default: config.forecast.default_horizon_months).",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Seed the jitter source for a reproducible run.",
    ),
    no_persist: bool = typer.Option(
        False,
        "--no-persist",
        help="Do not store the predictions for later feedback.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the full result as JSON instead of a summary.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Forecast monthly demand for one commodity."""
    from demand_forecaster.exceptions import ForecasterError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    engine = _build_engine(config, seed=seed)
    try:
        result = engine.forecast(
            commodity,
            horizon_months=horizon,
            persist=False if no_persist else None,
        )
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    typer.echo(
        f"Forecast: {result.commodity_id} | {result.prediction_period} | "
        f"quality={result.data_quality} | confidence={result.confidence_level} "
        f"({result.confidence_score:.2f})"
    )
    typer.echo(f"  Historical average: {result.historical_average:.2f}")
    typer.echo("")
    typer.echo(f"  {'Period':<8}  {'Quantity':>12}  {'Conf':>5}  {'Trend':<10}  {'Seasonal':>8}")
    for i, point in enumerate(result.monthly_forecast):
        pid = result.prediction_ids[i] if i < len(result.prediction_ids) else "-"
        typer.echo(
            f"  {point.period_key:<8}  {point.predicted_quantity:>12.2f}  "
            f"{point.confidence:>5.2f}  {point.trend_label:<10}  "
            f"{point.factor_breakdown.seasonal:>8.3f}  {pid}"
        )
    typer.echo("")
    typer.echo(f"  Risks:           {', '.join(result.risk_factors)}")
    typer.echo(f"  Recommendations: {', '.join(result.recommendations)}")
    typer.echo("[OK] Forecast complete.")


@app.command("feedback")
def feedback(
    prediction_id: str = typer.Option(
        ...,
        "--prediction-id",
        "-p",
        help="Id printed by the forecast command.",
    ),
    actual: float = typer.Option(
        ...,
        "--actual",
        "-a",
        help="Observed quantity for the predicted period.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Record the actual outcome of a stored prediction."""
    from demand_forecaster.exceptions import ForecasterError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    engine = _build_engine(config)
    try:
        engine.submit_feedback(prediction_id, actual)
        record = engine.outcomes.get_prediction(prediction_id)
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"  {record.commodity_id} {record.period_label}: predicted "
        f"{record.predicted_value:.2f}, actual {actual:.2f}, "
        f"accuracy {record.accuracy_percentage:.1f}%"
    )
    typer.echo("[OK] Feedback recorded.")


@app.command("metrics")
def metrics(
    commodity: str = typer.Option(
        ...,
        "--commodity",
        "-c",
        help="Commodity id.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Print learning metrics for one commodity as JSON."""
    from demand_forecaster.exceptions import ForecasterError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    engine = _build_engine(config)
    try:
        result = engine.get_metrics(commodity)
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(result.model_dump(mode="json"), indent=2))


@app.command("improve")
def improve(
    commodity: str = typer.Option(
        ...,
        "--commodity",
        "-c",
        help="Commodity id.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run one learning update for a commodity and print the parameters."""
    from demand_forecaster.exceptions import ForecasterError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    engine = _build_engine(config)
    try:
        params = engine.improve(commodity)
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Parameters for {commodity} (version {params.version}):")
    for name, value in params.tuning_values().items():
        typer.echo(f"  {name:<20} {value:.4f}")
    typer.echo(f"  {'outcomes_applied':<20} {params.outcomes_applied}")
    typer.echo("[OK] Learning update complete.")


@app.command("history")
def history(
    commodity: str = typer.Option(
        ...,
        "--commodity",
        "-c",
        help="Commodity id.",
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        help="Most recent updates to show (default: config.learning.history_limit).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Show the committed learning updates for a commodity, newest first."""
    from demand_forecaster.exceptions import ForecasterError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    engine = _build_engine(config)
    try:
        updates = engine.parameter_history(commodity, limit)
    except ForecasterError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if not updates:
        typer.echo(f"No learning updates recorded for {commodity}.")
        return

    typer.echo(f"Learning updates for {commodity} (newest first):")
    for update in updates:
        moved = ", ".join(f"{k} {v:+.2f}" for k, v in update.changes().items()) or "no change"
        typer.echo(
            f"  v{update.version:<3} {update.created_at:%Y-%m-%d %H:%M}  "
            f"accuracy={update.overall_accuracy:.1f}%  outcomes={update.outcomes_applied}  "
            f"{moved}"
        )
        if update.improving_factors:
            typer.echo(f"        improving: {', '.join(update.improving_factors)}")
        if update.declining_factors:
            typer.echo(f"        declining: {', '.join(update.declining_factors)}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
