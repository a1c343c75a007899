"""Shared utility helpers for the Pax8 client."""

from .logging import (
    LoggingOptions,
    configure_logging,
    get_logger,
    log_file_path,
    reset_logging,
)
from .cancellation import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    await_with_cancellation,
)
from .sanitize import redact_headers, sanitize_log_message
from .errors import ErrorDescriptor, ErrorSeverity, describe_exception

__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "log_file_path",
    "reset_logging",
    "CancellationToken",
    "CancellationTokenSource",
    "CancellationError",
    "await_with_cancellation",
    "redact_headers",
    "sanitize_log_message",
    "ErrorDescriptor",
    "ErrorSeverity",
    "describe_exception",
]
