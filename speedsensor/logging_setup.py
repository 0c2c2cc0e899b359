"""Centralized logging configuration."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import AppConfig, InvocationParams

LOG_PREFIX = "speedsensor"


class MonthlyFileHandler(logging.FileHandler):
    """Append-only file handler that never lets a write error escape."""

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        pass


def monthly_log_path(logs_dir: Path, now: Optional[datetime] = None) -> Path:
    now = now or datetime.now()
    return logs_dir / f"{LOG_PREFIX}-{now:%Y-%m}.log"


def configure_logging(config: AppConfig, params: InvocationParams) -> Optional[Path]:
    """Configure the root logger once per process.

    Stdout carries the sensor XML, so console output goes to stderr and by
    default only carries fatal errors. Per-attempt warnings land in the
    monthly diagnostic file, which is only attached when debugging was
    requested.
    Returns the diagnostic log path, or None when no file is written.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_level = getattr(logging, config.logging.level.upper(), logging.ERROR)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    root_logger.setLevel(console_level)

    if not params.debug:
        return None

    log_path = monthly_log_path(config.paths.logs_dir)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = MonthlyFileHandler(log_path, mode="a", encoding="utf-8")
    except OSError:
        logging.getLogger(__name__).warning("Diagnostic log %s unavailable, continuing without it", log_path)
        return None

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG)
    return log_path
