# app/core/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def clamp_page(page: int | None) -> int:
    if page is None or page < 1:
        return 1
    return page


def clamp_limit(limit: int | None, *, default: int, maximum: int) -> int:
    if limit is None:
        return default
    return max(1, min(limit, maximum))


def page_window(page: int | None, limit: int | None, *, default_limit: int, max_limit: int) -> PageWindow:
    return PageWindow(page=clamp_page(page), limit=clamp_limit(limit, default=default_limit, maximum=max_limit))


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit); an empty result set has zero pages."""
    if limit <= 0:
        raise ValueError("limit must be positive")
    if total <= 0:
        return 0
    return math.ceil(total / limit)


def pagination_meta(window: PageWindow, total: int) -> dict:
    return {
        "page": window.page,
        "limit": window.limit,
        "total": total,
        "total_pages": total_pages(total, window.limit),
    }
