"""Logging configuration.

Configures the root logger from ``settings.log_level`` and
``settings.log_format``. Modules keep using ``logging.getLogger(__name__)``.
"""

import logging
import sys

from pythonjsonlogger import jsonlogger

from app.core.config import LogFormatEnum, settings

SIMPLE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(module)s %(lineno)d %(message)s"


def build_formatter(log_format: str) -> logging.Formatter:
    """Formatter for ``log_format``; JSON output carries ``extra=`` fields as keys."""
    if log_format == LogFormatEnum.json.value:
        return jsonlogger.JsonFormatter(
            fmt=JSON_FORMAT,
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
                "lineno": "line",
            },
        )
    return logging.Formatter(SIMPLE_FORMAT)


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    level = level or settings.log_level.value
    log_format = log_format or settings.log_format.value

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(log_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo is controlled by settings.debug on the engine itself
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
