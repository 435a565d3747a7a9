"""Date helpers for week alignment, calendar periods and recurrence."""

from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from components.core.exceptions import ValidationError

PERIOD_TYPES = ("monthly", "quarterly", "yearly", "custom")
FREQUENCIES = ("once", "weekly", "biweekly", "monthly", "quarterly", "yearly")


def as_date(value: Union[date, datetime]) -> date:
    """Normalize a date or datetime to a date."""
    return value.date() if isinstance(value, datetime) else value


def start_of_week(day: date) -> date:
    """Monday on or before the given day."""
    return day - timedelta(days=day.weekday())


def end_of_week(day: date) -> date:
    """Sunday on or after the given day."""
    return start_of_week(day) + timedelta(days=6)


def compute_period_range(
    period_type: str,
    today: date,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Tuple[date, date]:
    """
    Return the half-open range [start, end) for a period type.

    Calendar periods are the month, quarter or year containing ``today``.
    ``custom_end`` is the inclusive last day supplied by the caller.
    """
    if period_type == "monthly":
        start = date(today.year, today.month, 1)
        return start, start + relativedelta(months=1)
    if period_type == "quarterly":
        first_month = (today.month - 1) // 3 * 3 + 1
        start = date(today.year, first_month, 1)
        return start, start + relativedelta(months=3)
    if period_type == "yearly":
        start = date(today.year, 1, 1)
        return start, date(today.year + 1, 1, 1)
    if period_type == "custom":
        if custom_start is None or custom_end is None:
            raise ValidationError("Start and end dates required for custom period")
        if custom_end < custom_start:
            raise ValidationError("Custom period end must not be before its start")
        return custom_start, custom_end + timedelta(days=1)
    raise ValidationError(f"Invalid period type: {period_type}")


def advance_due_date(due_date: date, frequency: str) -> Optional[date]:
    """Next due date for a recurring frequency; None for one-off payments."""
    if frequency == "weekly":
        return due_date + timedelta(days=7)
    if frequency == "biweekly":
        return due_date + timedelta(days=14)
    if frequency == "monthly":
        return due_date + relativedelta(months=1)
    if frequency == "quarterly":
        return due_date + relativedelta(months=3)
    if frequency == "yearly":
        return due_date + relativedelta(years=1)
    if frequency == "once":
        return None
    raise ValidationError(f"Invalid frequency: {frequency}")
