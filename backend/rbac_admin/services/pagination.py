# Overview: Offset pagination shared by the listing services.

from __future__ import annotations

from typing import Callable


def paginate_query(query, *, page: int | None, per_page: int, serializer: Callable) -> dict:
    """
    Apply offset pagination to an ordered query.

    Returns a dict with 'items', 'count' and a 'pagination' block. Pages are
    1-indexed; out-of-range pages yield an empty item list rather than an error.
    """
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serializer(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
