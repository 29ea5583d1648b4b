from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import Processor

from bookmark_digest.app.config import AppSettings
from bookmark_digest.app.telemetry import route_telemetry_to_file

ROOT_LOGGER_NAME = "bookmark_digest"
LOG_FILE_NAME = "bookmark-digest.log"


def configure_application_logging(settings: AppSettings) -> Path:
    """
    Route `bookmark_digest.*` loggers to the console and a JSON log file.

    The console honours `log_level`; the file always records DEBUG. Telemetry
    events go to their own file. Safe to call repeatedly: handlers installed
    by an earlier call are replaced.
    """

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            *_common_processors(),
            structlog.processors.CallsiteParameterAdder(
                {
                    CallsiteParameter.PATHNAME,
                    CallsiteParameter.LINENO,
                    CallsiteParameter.FUNC_NAME,
                }
            ),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )
    console_formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_common_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=_wants_color(sys.stdout)),
        ],
    )

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.DEBUG)
    app_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(
        logging.getLevelNamesMapping().get(settings.log_level.strip().upper(), logging.INFO)
    )
    console_handler.setFormatter(console_formatter)
    app_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(json_formatter)
    app_logger.addHandler(file_handler)

    telemetry_file = route_telemetry_to_file(settings.log_dir, json_formatter)
    app_logger.info(
        "logging configured console_level=%s log_file=%s telemetry_file=%s",
        logging.getLevelName(console_handler.level),
        log_file,
        telemetry_file,
    )
    return log_file


def _common_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _wants_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        # Closed or detached streams.
        return False
