# Overview: Offset pagination and the {data, pagination} response envelope.

from __future__ import annotations

import math

from .validation import parse_pagination


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def paginate(query, page, page_size, *, serialize=lambda row: row.to_dict()) -> dict:
    """
    Run an ordered query for one page.

    page/page_size are raw request values; they are clamped, never rejected.
    """
    page, page_size = parse_pagination(page, page_size, default_size=DEFAULT_PAGE_SIZE, max_size=MAX_PAGE_SIZE)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "data": [serialize(row) for row in rows],
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "total": total,
            "totalPages": math.ceil(total / page_size) if total else 0,
        },
    }


def order_by_sort_key(query, model, sort_key: str):
    """Apply a whitelisted "field" / "-field" key, with id as tiebreaker."""
    descending = sort_key.startswith("-")
    column = getattr(model, sort_key.lstrip("-"))
    return query.order_by(column.desc() if descending else column.asc(), model.id.asc())
