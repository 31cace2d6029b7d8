# Overview: Page/limit parsing and the shared pagination envelope for list endpoints.

from __future__ import annotations

import math

from .validation import ValidationError

MAX_PAGE_SIZE = 100


def parse_pagination(args, *, default_limit: int = 10) -> tuple[int, int]:
    """Read ?page=&limit= from request args. page >= 1, 1 <= limit <= MAX_PAGE_SIZE."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return page, limit


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    """Apply offset/limit to an ordered query; returns (rows, pagination dict)."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
