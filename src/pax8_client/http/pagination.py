"""Page and cursor option helpers for list endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pax8_client.errors import ConfigurationError
from pax8_client.http.api_utils import validate_page, validate_size

MIN_PAGE_SIZE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 200


@dataclass(frozen=True, slots=True)
class CursorParams:
    limit: int = DEFAULT_PAGE_SIZE
    page_token: str | None = None

    def to_query(self) -> dict[str, str]:
        query = {"limit": str(self.limit)}
        if self.page_token:
            query["pageToken"] = self.page_token
        return query


def normalize_limit(limit: int | None = None) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise ConfigurationError("limit must be an integer")
    if limit < MIN_PAGE_SIZE or limit > MAX_PAGE_SIZE:
        raise ConfigurationError(
            f"limit must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}"
        )
    return limit


def normalize_cursor_params(
    limit: int | None = None, page_token: str | None = None
) -> CursorParams:
    token = page_token.strip() if isinstance(page_token, str) else None
    return CursorParams(limit=normalize_limit(limit), page_token=token or None)


def append_cursor_params(
    query: dict[str, str],
    *,
    limit: int | None = None,
    page_token: str | None = None,
) -> dict[str, str]:
    query.update(normalize_cursor_params(limit, page_token).to_query())
    return query


def page_query(page: int | None = None, size: int | None = None) -> dict[str, str]:
    """Build ``page``/``size`` query parameters for page-numbered endpoints."""

    return {
        "page": str(validate_page(page)),
        "size": str(validate_size(size, DEFAULT_PAGE_SIZE, MIN_PAGE_SIZE, MAX_PAGE_SIZE)),
    }


def has_more_pages(page: Mapping[str, Any] | None) -> bool:
    if not page:
        return False
    return bool(page.get("nextPageToken") or page.get("hasMore"))


__all__ = [
    "CursorParams",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "MIN_PAGE_SIZE",
    "append_cursor_params",
    "has_more_pages",
    "normalize_cursor_params",
    "normalize_limit",
    "page_query",
]
