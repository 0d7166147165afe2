"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``DEMAND_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The engine, the stores and the CLI all receive an ``AppConfig`` (or one of its
sections). Nothing else reads environment variables.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite settings for the history, outcome and parameter stores."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/demand_forecaster.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/forecaster.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class ForecastConfig(BaseModel):
    """Forecast request defaults and collaborator query windows."""

    model_config = ConfigDict(frozen=True)

    default_horizon_months: int = 3
    max_horizon_months: int = 24
    lookback_months: int = 24          # transaction history window
    market_lookback_days: int = 365
    market_price_limit: int = 100
    sentiment_lookback_days: int = 180
    sentiment_limit: int = 10
    persist_predictions: bool = True
    jitter_seed: Optional[int] = None  # None → fresh entropy per engine

    @model_validator(mode="after")
    def validate_horizons(self) -> "ForecastConfig":
        if self.default_horizon_months < 1:
            raise ValueError("default_horizon_months must be >= 1.")
        if self.max_horizon_months < self.default_horizon_months:
            raise ValueError(
                f"max_horizon_months ({self.max_horizon_months}) must be >= "
                f"default_horizon_months ({self.default_horizon_months})."
            )
        if self.lookback_months < 1:
            raise ValueError("lookback_months must be >= 1.")
        return self


class LearningConfig(BaseModel):
    """Feedback-loop settings and the starting parameters for a new commodity.

    ``min_data_points`` resolved outcomes are required before the learning
    engine moves any parameter. ``step`` is the size of one nudge.
    """

    model_config = ConfigDict(frozen=True)

    min_data_points: int = 10
    step: float = 0.05
    metrics_limit: int = 500
    history_limit: int = 50            # parameter updates shown by `history`
    model_version: str = "2.0-adaptive"
    auto_improve_on_feedback: bool = True

    trend_sensitivity: float = 1.0
    seasonal_weight: float = 1.0
    market_factor: float = 1.0
    confidence: float = 0.7
    variance_tolerance: float = 0.15

    @field_validator("step")
    @classmethod
    def validate_step(cls, v: float) -> float:
        if not 0.0 < v <= 0.25:
            raise ValueError(f"step must be in (0.0, 0.25], got {v}.")
        return v

    @field_validator("confidence", "variance_tolerance")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"value must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("trend_sensitivity", "seasonal_weight", "market_factor")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"value must be non-negative, got {v}.")
        return v


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()``, which merges TOML, ``.env`` and
    environment overrides.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    forecast: ForecastConfig = ForecastConfig()
    learning: LearningConfig = LearningConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to the directory holding ``pyproject.toml``."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit TOML file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Validated ``AppConfig``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        pydantic.ValidationError: If merged values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            raw = _deep_merge(raw, tomllib.load(f))

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ``DEMAND_FORECASTER_*`` env vars to the raw config dict.

    Supported overrides:
      DEMAND_FORECASTER_DB_PATH      → raw["database"]["db_path"]
      DEMAND_FORECASTER_LOG_LEVEL    → raw["logging"]["level"]
      DEMAND_FORECASTER_JITTER_SEED  → raw["forecast"]["jitter_seed"]
      DEMAND_FORECASTER_DEBUG        → raw["debug"]
    """
    if db_path := os.environ.get("DEMAND_FORECASTER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("DEMAND_FORECASTER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if seed := os.environ.get("DEMAND_FORECASTER_JITTER_SEED"):
        raw.setdefault("forecast", {})["jitter_seed"] = int(seed)

    if debug := os.environ.get("DEMAND_FORECASTER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map the raw TOML dict onto ``AppConfig``."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        forecast=ForecastConfig(**raw.get("forecast", {})),
        learning=LearningConfig(**raw.get("learning", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
