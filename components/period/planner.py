"""Period-to-week decomposition."""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from components.core.dates import start_of_week


@dataclass
class SliceWindow:
    """Placeholder for one Monday-aligned week of a period."""
    week_number: int
    start_date: date
    end_date: date  # Inclusive
    allocated_amount: float


def week_windows(start: date, end: date) -> List[tuple]:
    """
    Monday-aligned week windows covering the half-open range [start, end).

    The first window starts on the Monday on or before ``start``; the last
    one is clipped to the day before ``end``. Windows not overlapping the
    range are skipped.
    """
    last_day = end - timedelta(days=1)
    windows = []
    current = start_of_week(start)
    while current < end:
        window_end = min(current + timedelta(days=6), last_day)
        if window_end >= start:
            windows.append((current, window_end))
        current += timedelta(days=7)
    return windows


def count_slices(start: date, end: date) -> int:
    """Number of weeks the period spans: ceil(days / 7) over [start, end)."""
    return math.ceil((end - start).days / 7)


def default_weekly_amount(total_amount: float, slice_count: int) -> float:
    """Even split of the period total, floored to whole currency units."""
    if slice_count <= 0:
        return 0
    return math.floor(total_amount / slice_count)


def generate_weekly_slices(
    start: date,
    end: date,
    total_amount: float,
    weekly_amount: Optional[float] = None,
) -> List[SliceWindow]:
    """Build numbered slices for [start, end) with their default allocation."""
    windows = week_windows(start, end)
    amount = weekly_amount if weekly_amount else default_weekly_amount(total_amount, count_slices(start, end))
    return [
        SliceWindow(
            week_number=number,
            start_date=window_start,
            end_date=window_end,
            allocated_amount=amount,
        )
        for number, (window_start, window_end) in enumerate(windows, start=1)
    ]


def per_slice_allocation(
    default_allocation: Optional[float],
    percentage: Optional[float],
    slice_count: int,
    slice_amount: float,
) -> float:
    """Allocation a period category contributes to one weekly ledger."""
    if default_allocation:
        return math.floor(default_allocation / max(slice_count, 1))
    if percentage:
        return math.floor(percentage * slice_amount / 100)
    return 0
