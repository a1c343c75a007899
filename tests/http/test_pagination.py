from __future__ import annotations

import pytest

from pax8_client.errors import ConfigurationError
from pax8_client.http.pagination import (
    DEFAULT_PAGE_SIZE,
    CursorParams,
    append_cursor_params,
    has_more_pages,
    normalize_cursor_params,
    normalize_limit,
    page_query,
)


def test_normalize_limit_defaults_and_bounds() -> None:
    assert normalize_limit() == DEFAULT_PAGE_SIZE
    assert normalize_limit(1) == 1
    assert normalize_limit(200) == 200
    for bad in (0, 201, False):
        with pytest.raises(ConfigurationError):
            normalize_limit(bad)


def test_cursor_params_drop_blank_page_token() -> None:
    assert normalize_cursor_params(25, "  ") == CursorParams(limit=25, page_token=None)
    assert normalize_cursor_params(page_token=" abc ").to_query() == {
        "limit": "10",
        "pageToken": "abc",
    }


def test_append_cursor_params_updates_existing_query() -> None:
    query = {"status": "Active"}

    result = append_cursor_params(query, limit=50, page_token="next")

    assert result is query
    assert query == {"status": "Active", "limit": "50", "pageToken": "next"}


def test_page_query() -> None:
    assert page_query() == {"page": "0", "size": "10"}
    assert page_query(2, 100) == {"page": "2", "size": "100"}
    with pytest.raises(ConfigurationError):
        page_query(size=500)


@pytest.mark.parametrize(
    "page, expected",
    [
        (None, False),
        ({}, False),
        ({"nextPageToken": None}, False),
        ({"nextPageToken": "abc"}, True),
        ({"hasMore": True}, True),
    ],
)
def test_has_more_pages(page, expected: bool) -> None:
    assert has_more_pages(page) is expected
