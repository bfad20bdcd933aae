"""Date <-> column mapping and header grouping for the schedule timeline."""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Iterator, NamedTuple


class ZoomLevel(Enum):
    """Timeline zoom. Each level has its own day width and window padding."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: str) -> ZoomLevel:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.WEEK


# zoom -> (months before current month, months after current month)
ZOOM_PADDING: dict[ZoomLevel, tuple[int, int]] = {
    ZoomLevel.DAY: (1, 4),
    ZoomLevel.WEEK: (1, 4),
    ZoomLevel.MONTH: (3, 9),
}

DEFAULT_DAY_WIDTH: dict[ZoomLevel, int] = {
    ZoomLevel.DAY: 4,
    ZoomLevel.WEEK: 2,
    ZoomLevel.MONTH: 1,
}

ZOOM_KEYS = [z.value for z in ZoomLevel]
ZOOM_LABELS = {ZoomLevel.DAY: "D", ZoomLevel.WEEK: "W", ZoomLevel.MONTH: "M"}


def round_half_up(value: float) -> int:
    """Round .5 toward +infinity (7.5 -> 8, -7.5 -> -7)."""
    return int(math.floor(value + 0.5))


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def start_of_month(d: date) -> date:
    return d.replace(day=1)


def end_of_month(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def visible_window(current_month: date, zoom: ZoomLevel = ZoomLevel.WEEK) -> tuple[date, date]:
    """Inclusive window around *current_month* with the zoom's padding."""
    before, after = ZOOM_PADDING[zoom]
    return (
        start_of_month(add_months(current_month, -before)),
        end_of_month(add_months(current_month, after)),
    )


@dataclass(frozen=True)
class TemporalIndex:
    """Maps calendar dates to horizontal offsets over a bounded window.

    Offsets are in cells: day ``n`` of the window starts at ``n * day_width``.
    """

    visible_start: date
    visible_end: date
    day_width: int

    def __post_init__(self) -> None:
        if self.day_width <= 0:
            raise ValueError(f"day_width must be positive, got {self.day_width}")
        if self.visible_end < self.visible_start:
            raise ValueError(
                f"visible_end {self.visible_end} is before visible_start {self.visible_start}"
            )

    @classmethod
    def for_month(
        cls,
        current_month: date,
        zoom: ZoomLevel = ZoomLevel.WEEK,
        day_width: int | None = None,
    ) -> TemporalIndex:
        start, end = visible_window(current_month, zoom)
        width = day_width if day_width is not None else DEFAULT_DAY_WIDTH[zoom]
        return cls(start, end, width)

    def position_of(self, d: date) -> int:
        """Offset of the left edge of *d*. May be negative or past the window."""
        return (d - self.visible_start).days * self.day_width

    def date_at_position(self, x: float) -> date:
        """Nearest day boundary to *x*, never earlier than visible_start."""
        day_index = round_half_up(x / self.day_width)
        return self.visible_start + timedelta(days=max(0, day_index))

    def delta_days(self, delta_x: float) -> int:
        """Whole days covered by a horizontal pointer movement."""
        return round_half_up(delta_x / self.day_width)

    def bar_span(self, start: date, end: date) -> tuple[int, int]:
        """Half-open ``[left, right)`` extent of a bar covering start..end inclusive."""
        return self.position_of(start), self.position_of(end) + self.day_width

    def contains(self, d: date) -> bool:
        return self.visible_start <= d <= self.visible_end

    @property
    def day_count(self) -> int:
        return (self.visible_end - self.visible_start).days + 1

    @property
    def total_width(self) -> int:
        return self.day_count * self.day_width

    def days(self) -> Iterator[date]:
        for offset in range(self.day_count):
            yield self.visible_start + timedelta(days=offset)


# ── Header grouping ──────────────────────────────────────────────


class MonthGroup(NamedTuple):
    """A run of consecutive visible days in the same calendar month."""

    month: date  # first visible day of the run
    start_index: int
    count: int


class WeekGroup(NamedTuple):
    """A run of consecutive visible days in the same ISO week."""

    week_start: date  # Monday of the week, may be before the window
    iso_week: int
    start_index: int
    count: int
    contains_today: bool


def month_groups(days: Iterable[date]) -> list[MonthGroup]:
    """Split *days* into contiguous runs sharing the same (year, month)."""
    groups: list[MonthGroup] = []
    for index, day in enumerate(days):
        if groups and (groups[-1].month.year, groups[-1].month.month) == (day.year, day.month):
            last = groups[-1]
            groups[-1] = last._replace(count=last.count + 1)
        else:
            groups.append(MonthGroup(day, index, 1))
    return groups


def week_groups(days: Iterable[date], today: date | None = None) -> list[WeekGroup]:
    """Split *days* into contiguous ISO-week runs (weeks start on Monday).

    The first and last runs may be partial weeks. ``contains_today`` marks the
    run whose days include *today*.
    """
    groups: list[WeekGroup] = []
    for index, day in enumerate(days):
        monday = day - timedelta(days=day.weekday())
        is_today = today is not None and day == today
        if groups and groups[-1].week_start == monday:
            last = groups[-1]
            groups[-1] = last._replace(
                count=last.count + 1,
                contains_today=last.contains_today or is_today,
            )
        else:
            groups.append(WeekGroup(monday, day.isocalendar()[1], index, 1, is_today))
    return groups
