"""Tests for data models."""

from datetime import date

import pytest

from tui_chantier.models import (
    Lot,
    LotStatus,
    ScheduleStats,
    format_date,
    parse_date,
)


class TestLotStatus:
    def test_parse_known(self):
        assert LotStatus.parse("in_progress") == LotStatus.IN_PROGRESS
        assert LotStatus.parse(" Completed ") == LotStatus.COMPLETED

    def test_parse_enum_passthrough(self):
        assert LotStatus.parse(LotStatus.DELAYED) is LotStatus.DELAYED

    def test_parse_unknown_is_pending(self):
        assert LotStatus.parse("on_hold") == LotStatus.PENDING
        assert LotStatus.parse(None) == LotStatus.PENDING


class TestDates:
    def test_parse_iso(self):
        assert parse_date("2026-03-05") == date(2026, 3, 5)

    def test_parse_datetime_string_keeps_date(self):
        assert parse_date("2026-03-05T08:00:00Z") == date(2026, 3, 5)

    def test_parse_date_passthrough(self):
        d = date(2026, 1, 1)
        assert parse_date(d) is d

    @pytest.mark.parametrize("value", [None, "", "   ", "05/03/2026", "soon"])
    def test_parse_empty_or_invalid(self, value):
        assert parse_date(value) is None

    def test_format_presets(self):
        d = date(2026, 3, 5)
        assert format_date(d) == "2026-03-05"
        assert format_date(d, "DD/MM/YYYY") == "05/03/2026"
        assert format_date(d, "D MMM") == "5 Mar"

    def test_format_none(self):
        assert format_date(None) == ""


class TestLot:
    def test_duration_is_inclusive(self):
        lot = Lot(name="Gros œuvre", start_date=date(2026, 1, 10), end_date=date(2026, 1, 24))
        assert lot.has_dates
        assert lot.duration_days == 15

    def test_undated(self):
        lot = Lot(name="Peinture", start_date=date(2026, 1, 10))
        assert not lot.has_dates
        assert lot.duration_days is None

    def test_with_dates_keeps_identity(self):
        lot = Lot(name="A", id="lot-1")
        moved = lot.with_dates(date(2026, 2, 1), date(2026, 2, 3))
        assert moved.id == "lot-1"
        assert lot.start_date is None

    def test_round_trip_dict(self):
        lot = Lot(
            name="Électricité",
            id="lot-3",
            start_date=date(2026, 4, 1),
            end_date=date(2026, 4, 15),
            status=LotStatus.IN_PROGRESS,
            color="#ff8800",
            sort_order=3,
            company_id="co-2",
            budget=12500.0,
        )
        data = lot.to_dict()
        assert data["start_date"] == "2026-04-01"
        assert data["status"] == "in_progress"
        assert Lot.from_dict(data) == lot

    def test_from_dict_without_name(self):
        with pytest.raises(ValueError):
            Lot.from_dict({"id": "x", "name": "  "})

    def test_from_dict_defaults(self):
        lot = Lot.from_dict({"name": "Toiture"})
        assert lot.id
        assert lot.status == LotStatus.PENDING
        assert lot.start_date is None
        assert lot.company_id is None


class TestScheduleStats:
    def test_without_dates(self):
        stats = ScheduleStats(total=5, with_dates=3)
        assert stats.without_dates == 2

    def test_summary_mentions_delayed_only_when_present(self):
        assert "delayed" not in ScheduleStats(total=1).summary()
        assert "2 delayed" in ScheduleStats(total=3, delayed=2).summary()
