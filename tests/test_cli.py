"""End-to-end tests for the typer CLI over a temporary SQLite database."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from demand_forecaster.cli import app
from demand_forecaster.utils.time_utils import add_months, utcnow

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    db_path = (tmp_path / "cli.db").as_posix()
    path = tmp_path / "cli.toml"
    path.write_text(
        "[database]\n"
        f'db_path = "{db_path}"\n'
        "wal_mode = false\n"
        "[logging]\n"
        'level = "WARNING"\n'
        'log_file = ""\n'
        "[forecast]\n"
        "default_horizon_months = 3\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def sales_csv(tmp_path: Path) -> Path:
    """Twelve monthly transactions for ``coal`` ending last month."""
    now = utcnow()
    lines = ["commodity_id,timestamp,quantity,unit_price"]
    for back in range(12, 0, -1):
        year, month = add_months(now.year, now.month, -back)
        lines.append(f"coal,{year:04d}-{month:02d}-10,{100 + 10 * (12 - back)},25")
    path = tmp_path / "sales.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _invoke(*args: str):
    return runner.invoke(app, list(args))


class TestSetupCommands:
    def test_validate_config(self, config_file):
        result = _invoke("validate-config", "--config", str(config_file))
        assert result.exit_code == 0
        assert "[OK] Config valid." in result.output
        assert "Default horizon:  3 months" in result.output

    def test_validate_config_missing_file(self, tmp_path):
        result = _invoke("validate-config", "--config", str(tmp_path / "absent.toml"))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_init_db(self, config_file, tmp_path):
        result = _invoke("init-db", "--config", str(config_file))
        assert result.exit_code == 0
        assert "Tables: 6 created/verified." in result.output
        assert (tmp_path / "cli.db").exists()


class TestImportHistory:
    def test_dry_run_writes_nothing(self, config_file, sales_csv, tmp_path):
        result = _invoke(
            "import-history", "--kind", "transactions",
            "--file", str(sales_csv), "--config", str(config_file), "--dry-run",
        )
        assert result.exit_code == 0
        assert "Validated 12 row(s)." in result.output
        assert "[DRY RUN]" in result.output
        assert not (tmp_path / "cli.db").exists()

    def test_unknown_kind(self, config_file, sales_csv):
        result = _invoke(
            "import-history", "-k", "orders", "-f", str(sales_csv),
            "--config", str(config_file),
        )
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_bad_csv(self, config_file, tmp_path):
        bad = tmp_path / "bad.csv"
        bad.write_text("commodity_id,price\ncoal,1\n", encoding="utf-8")
        result = _invoke(
            "import-history", "-k", "prices", "-f", str(bad), "--config", str(config_file),
        )
        assert result.exit_code == 1
        assert "[ERROR] CSV parse failed" in result.output


class TestForecastFlow:
    def test_import_forecast_feedback_metrics(self, config_file, sales_csv):
        imported = _invoke(
            "import-history", "-k", "transactions", "-f", str(sales_csv),
            "--config", str(config_file),
        )
        assert imported.exit_code == 0
        assert "Inserted 12 row(s)" in imported.output

        forecasted = _invoke(
            "forecast", "-c", "coal", "--horizon", "2", "--seed", "7",
            "--json", "--config", str(config_file),
        )
        assert forecasted.exit_code == 0
        payload = json.loads(forecasted.output)
        assert payload["commodity_id"] == "coal"
        assert payload["prediction_period"] == "2 months"
        assert payload["data_quality"] == "high"
        assert len(payload["monthly_forecast"]) == 2
        assert len(payload["prediction_ids"]) == 2

        predicted = payload["monthly_forecast"][0]["predicted_quantity"]
        fed_back = _invoke(
            "feedback", "-p", payload["prediction_ids"][0], "-a", str(predicted),
            "--config", str(config_file),
        )
        assert fed_back.exit_code == 0
        assert "[OK] Feedback recorded." in fed_back.output

        again = _invoke(
            "feedback", "-p", payload["prediction_ids"][0], "-a", "1",
            "--config", str(config_file),
        )
        assert again.exit_code == 1
        assert "[ERROR]" in again.output

        shown = _invoke("metrics", "-c", "coal", "--config", str(config_file))
        assert shown.exit_code == 0
        metrics = json.loads(shown.output)
        assert metrics["sample_size"] == 1
        assert metrics["overall_accuracy"] > 99.0

    def test_summary_output(self, config_file):
        result = _invoke("forecast", "-c", "tin", "--no-persist", "--config", str(config_file))
        assert result.exit_code == 0
        assert "Forecast: tin | 3 months | quality=low" in result.output
        assert "[OK] Forecast complete." in result.output

    def test_zero_horizon_rejected(self, config_file):
        result = _invoke("forecast", "-c", "coal", "--horizon", "0", "--config", str(config_file))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_unknown_prediction(self, config_file):
        result = _invoke("feedback", "-p", "missing", "-a", "10", "--config", str(config_file))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_improve_without_outcomes(self, config_file):
        result = _invoke("improve", "-c", "coal", "--config", str(config_file))
        assert result.exit_code == 0
        assert "Parameters for coal" in result.output
        assert "[OK] Learning update complete." in result.output


class TestHistory:
    def test_empty_history(self, config_file):
        result = _invoke("history", "-c", "coal", "--config", str(config_file))
        assert result.exit_code == 0
        assert "No learning updates recorded for coal." in result.output

    def test_feedback_update_listed(self, config_file, sales_csv):
        with config_file.open("a", encoding="utf-8") as fh:
            fh.write("[learning]\nmin_data_points = 1\n")
        _invoke(
            "import-history", "-k", "transactions", "-f", str(sales_csv),
            "--config", str(config_file),
        )
        forecasted = _invoke(
            "forecast", "-c", "coal", "--horizon", "1", "--seed", "7",
            "--json", "--config", str(config_file),
        )
        payload = json.loads(forecasted.output)
        predicted = payload["monthly_forecast"][0]["predicted_quantity"]
        fed_back = _invoke(
            "feedback", "-p", payload["prediction_ids"][0], "-a", str(predicted),
            "--config", str(config_file),
        )
        assert fed_back.exit_code == 0

        result = _invoke("history", "-c", "coal", "--config", str(config_file))
        assert result.exit_code == 0
        assert "Learning updates for coal (newest first):" in result.output
        assert "v1" in result.output
        assert "outcomes=1" in result.output
        assert "confidence +0.05" in result.output
