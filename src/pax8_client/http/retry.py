"""Retry with jittered exponential backoff.

Durations in this module are seconds.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import random
import time
from dataclasses import dataclass
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, TypeVar

from pax8_client.errors import ConfigurationError
from pax8_client.utils import get_logger


_logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
MAX_JITTER = 1.0

RetryPredicate = Callable[[BaseException, int], "bool | Awaitable[bool]"]
RetryAfterHint = Callable[[BaseException], "float | None"]
Sleeper = Callable[[float], Awaitable[None]]


def calculate_backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Return ``min(base_delay * 2**attempt + jitter, max_delay)``.

    Jitter is drawn uniformly from ``[0, 1)`` second on every call so that
    independent clients do not retry in lockstep.
    """
    exponential = base_delay * (2**attempt)
    jitter = random.random() * MAX_JITTER
    return min(exponential + jitter, max_delay)


def parse_retry_after(header: str | None, *, now: float | None = None) -> float | None:
    """Convert a ``Retry-After`` header (seconds or HTTP date) to seconds, clamped at 0."""

    if not header:
        return None
    value = header.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if math.isfinite(seconds) and seconds >= 0:
            return seconds
        return None

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    reference = time.time() if now is None else now
    return max(target.timestamp() - reference, 0.0)


def _always_retry(_error: BaseException, _attempt: int) -> bool:
    return True


@dataclass(slots=True)
class RetryOptions:
    attempts: int = DEFAULT_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    should_retry: RetryPredicate = _always_retry
    # Server-provided wait; when positive it replaces the computed backoff.
    retry_after: RetryAfterHint | None = None
    sleep: Sleeper = asyncio.sleep


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    options: RetryOptions | None = None,
) -> T:
    """Invoke ``operation(attempt)`` until it succeeds or retries run out.

    Attempts are indexed from 0. After a failure the executor asks
    ``should_retry`` (awaiting it when it returns an awaitable) whether to go
    again; if attempts remain and the answer is yes it sleeps and retries.
    Otherwise the failing exception propagates unchanged.

    When ``retry_after`` yields a positive hint for the error, the executor
    sleeps for that hint instead of the exponential backoff, so a server's
    ``Retry-After`` is the only delay before the next attempt.
    """
    opts = options or RetryOptions()
    if opts.attempts < 1:
        raise ConfigurationError("attempts must be at least 1")

    for attempt in range(opts.attempts):
        try:
            result = await operation(attempt)
        except Exception as exc:
            has_attempts_remaining = attempt < opts.attempts - 1
            if not has_attempts_remaining:
                _logger.debug(
                    "Retry attempts exhausted",
                    attempt=attempt,
                    attempts=opts.attempts,
                    error=str(exc),
                )
                raise

            decision = opts.should_retry(exc, attempt)
            if inspect.isawaitable(decision):
                decision = await decision
            if not decision:
                _logger.debug("Error classified as not retryable", attempt=attempt, error=str(exc))
                raise

            hint = opts.retry_after(exc) if opts.retry_after is not None else None
            if hint is not None and hint > 0:
                delay = hint
                _logger.info("Honouring Retry-After hint", attempt=attempt, delay=delay)
            else:
                delay = calculate_backoff_delay(attempt, opts.base_delay, opts.max_delay)
                _logger.info("Retry scheduled", attempt=attempt, delay=round(delay, 3), error=str(exc))
            await opts.sleep(delay)
            continue

        if attempt > 0:
            _logger.info("Retry succeeded", attempt=attempt)
        return result

    raise AssertionError("unreachable")  # pragma: no cover


__all__ = [
    "DEFAULT_ATTEMPTS",
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_DELAY",
    "RetryOptions",
    "calculate_backoff_delay",
    "parse_retry_after",
    "with_retry",
]
