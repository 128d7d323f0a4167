from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from blogsmith.config import AppSettings

LOG_FILE_NAME = "blogsmith.log"
TELEMETRY_LOG_FILE_NAME = "blogsmith-telemetry.log"
# Library loggers routed through our handlers, capped at WARNING.
THIRD_PARTY_LOGGERS: tuple[str, ...] = ("openai", "httpx", "uvicorn.error")


@dataclass(frozen=True)
class LoggingPaths:
    log_file: Path
    telemetry_log_file: Path


def configure_application_logging(
    settings: AppSettings,
    *,
    console_level: str | None = None,
) -> LoggingPaths:
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    paths = LoggingPaths(
        log_file=log_dir / LOG_FILE_NAME,
        telemetry_log_file=log_dir / TELEMETRY_LOG_FILE_NAME,
    )

    _configure_structlog()

    logger = logging.getLogger("blogsmith")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    _reset_handlers(logger)

    file_handler = _file_handler(paths.log_file, level=logging.DEBUG)
    console_stream = sys.stdout
    console_handler = logging.StreamHandler(stream=console_stream)
    console_handler.setLevel(_resolve_log_level(console_level or settings.log_level))
    console_handler.setFormatter(
        _build_console_formatter(enable_colors=_stream_supports_color(console_stream))
    )

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    _route_third_party_loggers(console_handler, file_handler)
    _configure_telemetry_logger(paths.telemetry_log_file)

    logger.info(
        "logging configured console_level=%s file_level=%s path=%s telemetry_path=%s",
        (console_level or settings.log_level).upper(),
        "DEBUG",
        paths.log_file,
        paths.telemetry_log_file,
    )
    return paths


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _file_handler(path: Path, *, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_build_file_formatter())
    return handler


def _route_third_party_loggers(*handlers: logging.Handler) -> None:
    for name in THIRD_PARTY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.WARNING)
        library_logger.propagate = False
        _reset_handlers(library_logger)
        for handler in handlers:
            library_logger.addHandler(handler)


def _configure_telemetry_logger(log_file: Path) -> None:
    telemetry_logger = logging.getLogger("blogsmith.telemetry")
    telemetry_logger.setLevel(logging.INFO)
    telemetry_logger.propagate = False
    _reset_handlers(telemetry_logger)
    telemetry_logger.addHandler(_file_handler(log_file, level=logging.INFO))


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            _add_record_metadata,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_record_metadata(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["pathname"] = record.pathname
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except ValueError:
        # Closed streams raise on isatty().
        return False
