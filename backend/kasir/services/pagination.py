# Overview: Page/per_page pagination shared by listing services.

from __future__ import annotations

from flask import current_app

DEFAULT_PER_PAGE = 20


def paginate(query, page: int | None = None, per_page: int | None = None) -> tuple[list, dict]:
    """Return (rows, pagination dict) for a 1-indexed page of `query`."""
    max_per_page = current_app.config.get("MAX_PER_PAGE", 100)
    per_page = per_page or DEFAULT_PER_PAGE
    if per_page < 1 or per_page > max_per_page:
        per_page = DEFAULT_PER_PAGE
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
