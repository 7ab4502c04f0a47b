"""Application logging utilities.

Goals:
- Single, shared app logger used by every ETL stage and the reporting API
- Logs written to per-module files under ./logs/ (or FINDINGS_ETL_LOG_DIR)
- UTC timestamp at start of each log line
- Daily log rotation

Implementation notes:
- Uses `TimedRotatingFileHandler` with `when='midnight'` and `utc=True`.
- Also attaches a console handler (stderr) for interactive pipeline runs.
- Call `get_logger(__name__)` from any module to get a child logger.
"""

from __future__ import annotations

import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler


class _UTCFormatter(logging.Formatter):
    """Formatter that forces UTC timestamps."""

    converter = staticmethod(time.gmtime)


_APP_LOGGER_NAME = "findings_etl"

_LOG_FORMAT = "%(asctime)sZ %(levelname)s pid=%(process)d %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _logs_dir() -> str:
    override = (os.getenv("FINDINGS_ETL_LOG_DIR") or "").strip()
    if override:
        return override
    # project_root/logs
    here = os.path.dirname(__file__)
    return os.path.join(here, "logs")


def _sanitize_filename(name: str) -> str:
    # Convert e.g. "jobs.staging" -> "jobs_staging"
    name = (name or "app").strip() or "app"
    return "".join(ch if (ch.isalnum() or ch in {"-", "_"}) else "_" for ch in name)


def _file_handler(path: str, level: int) -> TimedRotatingFileHandler:
    fh = TimedRotatingFileHandler(
        path,
        when="midnight",
        interval=1,
        backupCount=14,
        utc=True,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(_UTCFormatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return fh


def configure_app_logging(level_name: str = "INFO") -> logging.Logger:
    """Configure and return the root application logger.

    Safe to call multiple times; later calls only adjust the level.
    """

    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    app_logger = logging.getLogger(_APP_LOGGER_NAME)
    app_logger.setLevel(level)

    os.makedirs(_logs_dir(), exist_ok=True)

    if getattr(app_logger, "_configured", False):
        for handler in app_logger.handlers:
            handler.setLevel(level)
        return app_logger

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(_UTCFormatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))

    app_logger.addHandler(sh)
    app_logger.addHandler(_file_handler(os.path.join(_logs_dir(), "app.log"), level))

    # Do not propagate to the global root logger (prevents double logging).
    app_logger.propagate = False

    app_logger._configured = True  # type: ignore[attr-defined]
    return app_logger


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Get a module-specific logger that writes to its own log file.

    Records also propagate to the shared app logger, so they show up on the
    console and in app.log.

    Example:
        logger = get_logger(__name__)
    """

    if not getattr(logging.getLogger(_APP_LOGGER_NAME), "_configured", False):
        configure_app_logging(os.getenv("LOG_LEVEL", "INFO"))

    child_name = module_name or "app"
    logger = logging.getLogger(f"{_APP_LOGGER_NAME}.{child_name}")

    # Level is inherited from the app logger so --log-level applies everywhere.
    if not getattr(logger, "_file_configured", False):
        file_name = _sanitize_filename(child_name) + ".log"
        logger.addHandler(
            _file_handler(os.path.join(_logs_dir(), file_name), logging.NOTSET)
        )
        logger._file_configured = True  # type: ignore[attr-defined]

    return logger
