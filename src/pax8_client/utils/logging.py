"""structlog front-end with loguru sinks.

Library modules log through ``get_logger(__name__)``. Those loggers carry their own
processor chain and hand events to loguru, so importing the package neither
touches the global structlog configuration nor any loguru sink the host
application installed. Until ``configure_logging`` is called, events below
WARNING are dropped and the rest go to whatever loguru sinks already exist.
"""

from __future__ import annotations

import logging
import sys
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, cast

import structlog
from loguru import logger as loguru_logger
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger
from structlog.typing import EventDict, WrappedLogger

from pax8_client.config.settings import log_dir


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message} | {extra}"
DEFAULT_LOG_FILENAME = "pax8-client.log"
DEFAULT_LEVEL = logging.WARNING

# Event keys whose values are credentials and must never reach a sink.
SECRET_KEYS = frozenset(
    {"access_token", "authorization", "client_secret", "password", "token"}
)
REDACTED = "***"

_LEVEL_NUMBERS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


@dataclass(slots=True)
class LoggingOptions:
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    debug: bool = False
    to_file: bool = False
    rotation: str = "10 MB"
    retention: str = "14 days"
    log_path: Optional[Path] = None
    # Remove every loguru sink first; only for processes the caller owns, like the CLI.
    exclusive: bool = False


_threshold = DEFAULT_LEVEL
_handler_ids: list[int] = []
_configured_log_path: Optional[Path] = None


def configure_logging(options: LoggingOptions | None = None) -> Path | None:
    """Install this package's loguru sinks and set the level its loggers emit at.

    Sinks added by an earlier call are replaced; sinks owned by anyone else are
    left alone unless ``exclusive`` is set. Returns the log file path when a file
    sink was added.
    """
    global _threshold, _configured_log_path

    opts = options or LoggingOptions()
    console_level = "DEBUG" if opts.debug else opts.level

    if opts.exclusive:
        loguru_logger.remove()
        _handler_ids.clear()
    else:
        _remove_own_sinks()

    _handler_ids.append(_add_console_sink(console_level, verbose=opts.debug))
    log_path: Path | None = None
    if opts.to_file or opts.log_path is not None:
        log_path = opts.log_path or (log_dir() / DEFAULT_LOG_FILENAME)
        _handler_ids.append(_add_file_sink(log_path, opts))

    # The file sink captures debug events even when the console is quieter.
    _threshold = logging.DEBUG if log_path is not None else _LEVEL_NUMBERS[console_level.lower()]
    _configured_log_path = log_path
    return log_path


def reset_logging() -> None:
    """Remove this package's sinks and restore the quiet import-time default."""

    global _threshold, _configured_log_path
    _remove_own_sinks()
    _threshold = DEFAULT_LEVEL
    _configured_log_path = None


def _remove_own_sinks() -> None:
    for handler_id in _handler_ids:
        with suppress(ValueError):
            loguru_logger.remove(handler_id)
    _handler_ids.clear()


def _add_console_sink(level: str, *, verbose: bool) -> int:
    return loguru_logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
        format=LOG_FORMAT,
    )


def _add_file_sink(path: Path, opts: LoggingOptions) -> int:
    return loguru_logger.add(
        path,
        level="DEBUG",
        rotation=opts.rotation,
        retention=opts.retention,
        enqueue=True,
        encoding="utf-8",
        format=LOG_FORMAT,
    )


def _drop_below_threshold(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    if _LEVEL_NUMBERS.get(str(event_dict.get("level")), logging.INFO) < _threshold:
        raise DropEvent
    return event_dict


def _redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def _forward_to_loguru(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    level = str(event_dict.pop("level", "INFO")).upper()
    message = str(event_dict.pop("event", ""))
    exception = event_dict.pop("exception", None)
    if exception:
        message = f"{message}\n{exception}"
    loguru_logger.bind(**event_dict).opt(depth=6).log(level, message)
    raise DropEvent


_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    _drop_below_threshold,
    _redact_secrets,
    structlog.processors.format_exc_info,
    _forward_to_loguru,
]


def get_logger(*initial_values: object, **initial_kw: object) -> BoundLogger:
    # Own processors and level filter; global structlog processors never apply.
    log = structlog.wrap_logger(
        None,
        processors=_PROCESSORS,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        cache_logger_on_first_use=True,
        logger_factory_args=initial_values,
        **initial_kw,
    )
    return cast(BoundLogger, log)


def log_file_path() -> Path | None:
    return _configured_log_path


__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "log_file_path",
    "reset_logging",
]
