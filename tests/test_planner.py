"""Tests for period ranges, weekly slicing and recurrence dates."""

from datetime import date, timedelta

import pytest

from components.core.dates import advance_due_date, compute_period_range, end_of_week, start_of_week
from components.core.exceptions import ValidationError
from components.period.planner import (
    count_slices,
    default_weekly_amount,
    generate_weekly_slices,
    per_slice_allocation,
    week_windows,
)


class TestPeriodRange:
    """Tests for calendar and custom period ranges."""

    def test_monthly_range_is_half_open(self):
        assert compute_period_range("monthly", date(2027, 2, 17)) == (date(2027, 2, 1), date(2027, 3, 1))

    def test_quarterly_range(self):
        assert compute_period_range("quarterly", date(2027, 5, 9)) == (date(2027, 4, 1), date(2027, 7, 1))

    def test_yearly_range(self):
        assert compute_period_range("yearly", date(2027, 12, 31)) == (date(2027, 1, 1), date(2028, 1, 1))

    def test_custom_end_is_inclusive_on_input(self):
        start, end = compute_period_range("custom", date(2027, 1, 1), date(2027, 2, 1), date(2027, 2, 28))
        assert (start, end) == (date(2027, 2, 1), date(2027, 3, 1))

    def test_custom_requires_both_dates(self):
        with pytest.raises(ValidationError):
            compute_period_range("custom", date(2027, 1, 1), date(2027, 2, 1), None)

    def test_custom_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            compute_period_range("custom", date(2027, 1, 1), date(2027, 2, 10), date(2027, 2, 1))

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError, match="Invalid period type"):
            compute_period_range("fortnightly", date(2027, 1, 1))


class TestWeeklySlices:
    """Tests for Monday-aligned slicing of a period."""

    def test_february_2027_splits_into_four_equal_slices(self):
        slices = generate_weekly_slices(date(2027, 2, 1), date(2027, 3, 1), 3000)
        assert [s.week_number for s in slices] == [1, 2, 3, 4]
        assert [s.start_date for s in slices] == [
            date(2027, 2, 1), date(2027, 2, 8), date(2027, 2, 15), date(2027, 2, 22),
        ]
        assert slices[-1].end_date == date(2027, 2, 28)
        assert all(s.allocated_amount == 750 for s in slices)

    @pytest.mark.parametrize("start,end", [
        (date(2027, 2, 1), date(2027, 3, 1)),
        (date(2027, 3, 1), date(2027, 4, 1)),
        (date(2027, 1, 1), date(2028, 1, 1)),
        (date(2027, 4, 1), date(2027, 7, 1)),
        (date(2027, 5, 13), date(2027, 5, 14)),
    ])
    def test_slices_tile_the_period(self, start, end):
        windows = week_windows(start, end)
        assert all(window_start.weekday() == 0 for window_start, _ in windows)
        # First window reaches back to the Monday on or before start
        assert windows[0][0] == start_of_week(start)
        assert windows[-1][1] == end - timedelta(days=1)
        for (_, previous_end), (next_start, _) in zip(windows, windows[1:]):
            assert next_start == previous_end + timedelta(days=1)

    def test_first_slice_covers_mid_week_start(self):
        slices = generate_weekly_slices(date(2027, 3, 1), date(2027, 4, 1), 1000)
        # March 1 2027 is a Monday; March 31 is a Wednesday
        assert len(slices) == 5
        assert slices[-1].start_date == date(2027, 3, 29)
        assert slices[-1].end_date == date(2027, 3, 31)
        assert all(s.allocated_amount == 200 for s in slices)

    def test_explicit_weekly_amount_wins(self):
        slices = generate_weekly_slices(date(2027, 2, 1), date(2027, 3, 1), 3000, weekly_amount=500)
        assert all(s.allocated_amount == 500 for s in slices)

    def test_split_uses_period_length_not_window_count(self):
        # February 2026 starts on a Sunday, so five windows cover 28 days
        slices = generate_weekly_slices(date(2026, 2, 1), date(2026, 3, 1), 3000)
        assert len(slices) == 5
        assert slices[0].start_date == date(2026, 1, 26)
        assert all(s.allocated_amount == 750 for s in slices)

    @pytest.mark.parametrize("start,end,expected", [
        (date(2026, 2, 1), date(2026, 3, 1), 4),
        (date(2027, 3, 1), date(2027, 4, 1), 5),
        (date(2027, 5, 13), date(2027, 5, 14), 1),
    ])
    def test_count_slices(self, start, end, expected):
        assert count_slices(start, end) == expected

    def test_default_amount_is_floored(self):
        assert default_weekly_amount(1000, 3) == 333
        assert default_weekly_amount(1000, 0) == 0


class TestPerSliceAllocation:
    """Tests for the category share a ledger receives from its plan."""

    def test_period_amount_is_split_across_slices(self):
        assert per_slice_allocation(1200, None, 4, 750) == 300

    def test_percentage_of_slice_amount(self):
        assert per_slice_allocation(None, 20, 4, 750) == 150

    def test_nothing_configured_gives_zero(self):
        assert per_slice_allocation(None, None, 4, 750) == 0
        assert per_slice_allocation(0, 0, 4, 750) == 0


class TestRecurrence:
    """Tests for due date advancement."""

    @pytest.mark.parametrize("frequency,expected", [
        ("weekly", date(2027, 1, 17)),
        ("biweekly", date(2027, 1, 24)),
        ("monthly", date(2027, 2, 10)),
        ("quarterly", date(2027, 4, 10)),
        ("yearly", date(2028, 1, 10)),
    ])
    def test_advance(self, frequency, expected):
        assert advance_due_date(date(2027, 1, 10), frequency) == expected

    def test_month_end_is_clamped(self):
        assert advance_due_date(date(2027, 1, 31), "monthly") == date(2027, 2, 28)

    def test_once_has_no_successor(self):
        assert advance_due_date(date(2027, 1, 10), "once") is None

    def test_unknown_frequency(self):
        with pytest.raises(ValidationError):
            advance_due_date(date(2027, 1, 10), "daily")

    def test_week_bounds(self):
        assert start_of_week(date(2027, 2, 3)) == date(2027, 2, 1)
        assert end_of_week(date(2027, 2, 3)) == date(2027, 2, 7)
