# app/core/overview.py
from __future__ import annotations

from datetime import datetime


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def previous_month_start(now: datetime) -> datetime:
    year, month = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)
    return month_start(now).replace(year=year, month=month)


def membership_growth(current: int, last: int) -> int:
    """Percent change in joins, month over month; a first month of joins counts as 100."""
    if last > 0:
        return round((current - last) / last * 100)
    if current > 0:
        return 100
    return 0
