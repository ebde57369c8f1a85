"""Calendar arithmetic for recurring plans."""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional, TypeVar, Union

from src.models.plan import PlanFrequency

D = TypeVar("D", bound=date)


def add_one_month(value: D) -> D:
    """Same day next month, clamped to the last day of a shorter month.

    2024-01-31 -> 2024-02-29, 2023-01-31 -> 2023-02-28, 2024-12-15 -> 2025-01-15.
    Works for ``datetime`` too (time of day is kept).
    """
    year, month = (value.year + 1, 1) if value.month == 12 else (value.year, value.month + 1)
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def advance_due_date(
    value: D,
    frequency: Union[PlanFrequency, str],
    interval_days: Optional[int] = None,
) -> D:
    """Return the due date following ``value`` for the given frequency.

    ``interval_days`` only matters for ``custom_days``; anything below 1
    (including ``None``) is treated as 1.
    """
    frequency = PlanFrequency(frequency)

    if frequency == PlanFrequency.weekly:
        return value + timedelta(days=7)
    if frequency == PlanFrequency.monthly:
        return add_one_month(value)
    return value + timedelta(days=max(1, interval_days or 1))
