"""Tests for date/offset mapping, windows and header grouping."""

from datetime import date, timedelta

import pytest

from tui_chantier.timeline import (
    TemporalIndex,
    ZoomLevel,
    add_months,
    month_groups,
    round_half_up,
    visible_window,
    week_groups,
)


@pytest.fixture
def index():
    return TemporalIndex(date(2026, 1, 1), date(2026, 4, 30), 20)


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [(7.5, 8), (7.49, 7), (-7.5, -7), (-7.51, -8), (0.5, 1), (-0.5, 0), (3.0, 3)],
    )
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestTemporalIndex:
    def test_position_of(self, index):
        assert index.position_of(date(2026, 1, 1)) == 0
        assert index.position_of(date(2026, 1, 10)) == 180
        assert index.position_of(date(2025, 12, 31)) == -20

    def test_position_round_trip_over_window(self, index):
        for d in index.days():
            assert index.date_at_position(index.position_of(d)) == d

    def test_date_at_position_rounds_to_nearest_day(self, index):
        assert index.date_at_position(29) == date(2026, 1, 2)
        assert index.date_at_position(30) == date(2026, 1, 3)
        assert index.date_at_position(31) == date(2026, 1, 3)

    def test_date_at_position_clamps_to_start(self, index):
        assert index.date_at_position(-500) == date(2026, 1, 1)

    def test_delta_days(self, index):
        assert index.delta_days(160) == 8
        assert index.delta_days(-30) == -1
        assert index.delta_days(9) == 0

    def test_bar_span_is_half_open(self, index):
        left, right = index.bar_span(date(2026, 1, 10), date(2026, 1, 24))
        assert left == 180
        assert right == 200 + 14 * 20
        assert right - left == 15 * 20

    def test_counts(self, index):
        assert index.day_count == 120
        assert index.total_width == 2400
        assert index.contains(date(2026, 4, 30))
        assert not index.contains(date(2026, 5, 1))

    def test_rejects_non_positive_width(self):
        with pytest.raises(ValueError):
            TemporalIndex(date(2026, 1, 1), date(2026, 1, 31), 0)

    def test_rejects_inverted_window(self):
        with pytest.raises(ValueError):
            TemporalIndex(date(2026, 2, 1), date(2026, 1, 31), 2)

    def test_for_month_uses_zoom_defaults(self):
        idx = TemporalIndex.for_month(date(2026, 3, 15), ZoomLevel.MONTH)
        assert idx.visible_start == date(2025, 12, 1)
        assert idx.visible_end == date(2026, 12, 31)
        assert idx.day_width == 1


class TestWindow:
    def test_week_window(self):
        assert visible_window(date(2026, 2, 14), ZoomLevel.WEEK) == (date(2026, 1, 1), date(2026, 6, 30))

    def test_day_window_matches_week(self):
        assert visible_window(date(2026, 2, 14), ZoomLevel.DAY) == visible_window(
            date(2026, 2, 14), ZoomLevel.WEEK
        )

    def test_window_crosses_year(self):
        assert visible_window(date(2026, 1, 20)) == (date(2025, 12, 1), date(2026, 5, 31))

    def test_add_months_clamps_day(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2026, 3, 31), -13) == date(2025, 2, 28)

    def test_zoom_parse(self):
        assert ZoomLevel.parse("DAY") == ZoomLevel.DAY
        assert ZoomLevel.parse("fortnight") == ZoomLevel.WEEK


class TestMonthGroups:
    def test_empty(self):
        assert month_groups([]) == []

    def test_runs(self, index):
        groups = month_groups(index.days())
        assert [g.month.month for g in groups] == [1, 2, 3, 4]
        assert [g.count for g in groups] == [31, 28, 31, 30]
        assert [g.start_index for g in groups] == [0, 31, 59, 90]

    def test_partial_month(self):
        days = [date(2026, 1, 30) + timedelta(days=i) for i in range(4)]
        groups = month_groups(days)
        assert [(g.month, g.count) for g in groups] == [
            (date(2026, 1, 30), 2),
            (date(2026, 2, 1), 2),
        ]


class TestWeekGroups:
    def test_empty(self):
        assert week_groups([], date(2026, 1, 1)) == []

    def test_partial_first_and_last_weeks(self, index):
        groups = week_groups(index.days())
        # 2026-01-01 is a Thursday
        assert groups[0].week_start == date(2025, 12, 29)
        assert groups[0].count == 4
        assert groups[0].iso_week == 1
        # 2026-04-30 is a Thursday
        assert groups[-1].week_start == date(2026, 4, 27)
        assert groups[-1].count == 4
        assert sum(g.count for g in groups) == index.day_count
        assert all(g.count == 7 for g in groups[1:-1])

    def test_contains_today(self, index):
        groups = week_groups(index.days(), today=date(2026, 3, 5))
        flagged = [g for g in groups if g.contains_today]
        assert len(flagged) == 1
        assert flagged[0].week_start == date(2026, 3, 2)

    def test_today_outside_window(self, index):
        groups = week_groups(index.days(), today=date(2027, 1, 1))
        assert not any(g.contains_today for g in groups)

    def test_start_indexes_are_contiguous(self, index):
        groups = week_groups(index.days())
        for prev, nxt in zip(groups, groups[1:]):
            assert nxt.start_index == prev.start_index + prev.count
