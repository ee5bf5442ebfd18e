"""Page-based listing with a hard cap on page size."""

from __future__ import annotations

import os
from typing import Any, Callable, Iterable, Optional

from fastapi import Response
from sqlalchemy.orm import Query


DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_PAGE_SIZE = 100


def get_max_page_size() -> int:
    try:
        val = int(os.getenv("API_MAX_PAGE_SIZE", str(DEFAULT_MAX_PAGE_SIZE)))
    except ValueError:
        return DEFAULT_MAX_PAGE_SIZE
    return val if val >= 1 else DEFAULT_MAX_PAGE_SIZE


def clamp_page_size(page_size: int) -> int:
    return min(max(page_size, 1), get_max_page_size())


def paginate(query: Query, *order_by, page: int, page_size: int) -> tuple[list, int]:
    """Count the filtered query, then fetch one ordered page of it."""
    total = query.count()
    items = query.order_by(*order_by).offset((max(page, 1) - 1) * page_size).limit(page_size).all()
    return items, total


def page_response(
    response: Optional[Response],
    items: Iterable[Any],
    *,
    total: int,
    page: int,
    page_size: int,
    serialize: Callable[[Any], dict],
) -> dict:
    """List body plus `X-Total-Count` / `X-Page` / `X-Page-Size` headers."""
    if response is not None:
        response.headers["X-Total-Count"] = str(total)
        response.headers["X-Page"] = str(page)
        response.headers["X-Page-Size"] = str(page_size)
    return {
        "items": [serialize(item) for item in items],
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": -(-total // page_size) if page_size else 0,
    }
