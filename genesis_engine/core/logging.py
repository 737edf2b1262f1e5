"""Logging configuration.

Provides:
  - JSON-formatted log output for staging/production runs
  - Human-readable colored output for development
  - Optional mirroring of every record into a log file

Records may carry run context through ``extra=``: ``tx_index``,
``gas_used``, ``contract``, ``address`` and ``artifact``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTEXT_FIELDS = ("tx_index", "gas_used", "contract", "address", "artifact")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, run context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    @staticmethod
    def _context(record: logging.LogRecord) -> str:
        contract = getattr(record, "contract", None)
        if contract:
            address = getattr(record, "address", "")
            return f"[{contract}@{address}] " if address else f"[{contract}] "
        tx_index = getattr(record, "tx_index", None)
        if tx_index is not None:
            return f"[tx {tx_index + 1}] "
        artifact = getattr(record, "artifact", None)
        return f"[{artifact}] " if artifact else ""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        level = f"{ts} [{record.levelname:>8s}]"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        base = f"{level} {record.name}: {self._context(record)}{record.getMessage()}"
        if record.exc_info and record.exc_info[1]:
            base += "\n" + self.formatException(record.exc_info)
        return base


def _formatter(structured: bool, use_color: bool) -> logging.Formatter:
    return JSONFormatter() if structured else DevFormatter(use_color=use_color)


def setup_logging(
    env: str = "development",
    log_level: str = "INFO",
    log_file: str | None = None,
) -> None:
    """Configure the root logger for one CLI run.

    Args:
        env: Application environment (development/staging/production)
        log_level: Minimum log level
        log_file: Optional file that receives every record as well
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    structured = env in ("staging", "production")

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(_formatter(structured, use_color=True))
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(_formatter(structured, use_color=False))
        root.addHandler(file_handler)
        logging.getLogger(__name__).info("Logging to file: %s", path)
