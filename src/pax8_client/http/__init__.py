"""HTTP helpers: retry policy, response mapping and pagination options."""

from .retry import (
    RetryOptions,
    calculate_backoff_delay,
    parse_retry_after,
    with_retry,
)
from .api_utils import (
    raise_for_error_response,
    validate_non_empty_string,
    validate_page,
    validate_size,
)
from .pagination import (
    CursorParams,
    append_cursor_params,
    has_more_pages,
    normalize_cursor_params,
    normalize_limit,
    page_query,
)

__all__ = [
    "RetryOptions",
    "calculate_backoff_delay",
    "parse_retry_after",
    "with_retry",
    "raise_for_error_response",
    "validate_non_empty_string",
    "validate_page",
    "validate_size",
    "CursorParams",
    "append_cursor_params",
    "has_more_pages",
    "normalize_cursor_params",
    "normalize_limit",
    "page_query",
]
