"""
Logging setup for the demand forecaster.

``configure_logging(config)`` is called once by the CLI before any engine work.
Library modules only ever do ``logger = logging.getLogger(__name__)``; they
never touch handlers or call ``basicConfig`` themselves, so embedding the
engine in another service leaves that service's logging alone.

With ``json_format = true`` under ``[logging]`` each record is emitted as one
JSON object per line::

    {"ts": "2026-03-01T09:00:00Z", "level": "INFO", "logger": "...", "msg": "...",
     "commodity_id": "coal"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from demand_forecaster.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Attributes every LogRecord carries; anything else came in through extra=.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    Keys: ``ts``, ``level``, ``logger``, ``msg`` and, when present, ``exc``.
    Values passed through ``extra=`` are merged in at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for key, val in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = val
        return json.dumps(payload, default=str)


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger from a ``LoggingConfig``.

    Installs a stdout handler, plus a file handler when ``config.log_file``
    is non-empty (parent directories are created). Both share one formatter.

    Args:
        config: ``[logging]`` section of ``AppConfig``.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.json_format:
        formatter = JsonLineFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers.append(console)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, force=True)
