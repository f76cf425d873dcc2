"""Paged reads for PostgREST queries."""

from collections.abc import Callable
from typing import Any

# Supabase caps a response at the project's max-rows setting, 1000 by default.
PAGE_SIZE = 1000


def select_all(
    build_query: Callable[[], Any], page_size: int = PAGE_SIZE
) -> list[dict[str, Any]]:
    """Run a filtered, ordered select page by page and return every row.

    ``build_query`` must return a fresh query with a total ordering, so that
    consecutive ranges neither skip nor repeat rows.
    """
    rows: list[dict[str, Any]] = []
    start = 0
    while True:
        response = build_query().range(start, start + page_size - 1).execute()
        page = response.data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size
