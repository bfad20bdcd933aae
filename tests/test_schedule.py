"""Tests for the schedule view: rows, gestures, quick-add and store commands."""

from datetime import date, timedelta

import pytest

from tui_chantier.models import Company, Lot, LotStatus
from tui_chantier.quick_add import QuickAddRequest
from tui_chantier.schedule import (
    ScheduleView,
    compute_stats,
    filter_lots,
    is_delayed,
    sort_lots,
)
from tui_chantier.store import LotStoreError, MemoryLotStore
from tui_chantier.timeline import ZoomLevel

TODAY = date(2026, 2, 14)


class RecordingStore(MemoryLotStore):
    """Memory store that remembers every command it receives."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.updates = []
        self.creates = []

    async def update_lot(self, lot_id, **fields):
        self.updates.append((lot_id, fields))
        return await super().update_lot(lot_id, **fields)

    async def create_lot(self, name, start_date, end_date):
        self.creates.append((name, start_date, end_date))
        return await super().create_lot(name, start_date, end_date)


class FailingStore(RecordingStore):
    async def update_lot(self, lot_id, **fields):
        self.updates.append((lot_id, fields))
        raise LotStoreError("disk full")


def _lots():
    return [
        Lot(name="Gros œuvre", id="lot-1", start_date=date(2026, 1, 10), end_date=date(2026, 1, 24),
            status=LotStatus.IN_PROGRESS, sort_order=2, company_id="co-1"),
        Lot(name="Terrassement", id="lot-2", start_date=date(2026, 1, 2), end_date=date(2026, 1, 8),
            status=LotStatus.COMPLETED, sort_order=1),
        Lot(name="Peinture", id="lot-3", sort_order=5),
        Lot(name="Électricité", id="lot-4", start_date=date(2026, 2, 1), end_date=date(2026, 2, 20),
            status=LotStatus.PENDING, sort_order=3),
    ]


def _view(store, **kwargs):
    """A week view whose window starts on 2026-01-01 with 20 cells per day."""
    notes = []
    view = ScheduleView(
        store,
        current_month=TODAY,
        zoom=ZoomLevel.WEEK,
        day_widths={ZoomLevel.WEEK: 20},
        notify=lambda message, severity: notes.append((message, severity)),
        clock=lambda: TODAY,
        **kwargs,
    )
    return view, notes


@pytest.fixture
def store():
    return RecordingStore(_lots(), [Company("co-1", "Maçonnerie Martin")])


def _row(view, lot_id):
    return next(row for row in view.rows() if row.lot.id == lot_id)


class TestWindow:
    def test_window_starts_january_first(self, store):
        view, _ = _view(store)
        assert view.index.visible_start == date(2026, 1, 1)
        assert view.index.day_width == 20

    def test_navigation(self, store):
        view, _ = _view(store)
        view.next_month()
        assert view.index.visible_start == date(2026, 2, 1)
        view.prev_month()
        view.prev_month()
        assert view.index.visible_start == date(2025, 12, 1)
        view.go_to_today()
        assert view.current_month == TODAY

    def test_header_groups_follow_window(self, store):
        view, _ = _view(store)
        assert view.month_groups()[0].month == date(2026, 1, 1)
        assert sum(1 for g in view.week_groups() if g.contains_today) == 1

    def test_set_zoom_uses_zoom_width(self, store):
        view, _ = _view(store)
        view.set_zoom(ZoomLevel.MONTH)
        assert view.index.day_width == 1
        assert view.index.visible_start == date(2025, 11, 1)
        assert view.drag.day_width == 1


class TestDragScenarios:
    def test_move_commits_exactly_one_update(self, store):
        view, notes = _view(store)
        assert view.pointer_down("lot-1", 300) is True
        assert view.pointer_move(460) is True

        row = _row(view, "lot-1")
        assert row.dragging
        assert (row.start_date, row.end_date) == (date(2026, 1, 18), date(2026, 2, 1))
        # store untouched while dragging
        assert store.get("lot-1").start_date == date(2026, 1, 10)

        update = view.pointer_up()
        assert update is not None
        assert view.is_pending("lot-1")
        assert _row(view, "lot-1").start_date == date(2026, 1, 18)

    @pytest.mark.asyncio
    async def test_commit_update(self, store):
        view, notes = _view(store)
        view.pointer_down("lot-1", 300)
        view.pointer_move(460)
        update = view.pointer_up()

        assert await view.commit_update(update) is True
        assert store.updates == [
            ("lot-1", {"start_date": date(2026, 1, 18), "end_date": date(2026, 2, 1)})
        ]
        assert not view.is_pending("lot-1")
        row = _row(view, "lot-1")
        assert (row.start_date, row.end_date) == (date(2026, 1, 18), date(2026, 2, 1))
        assert ("Schedule updated", "information") in notes

    def test_leave_discards_gesture(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 300)
        view.pointer_move(460)
        assert view.pointer_leave() is True
        assert view.pointer_up() is None
        assert store.updates == []
        row = _row(view, "lot-1")
        assert (row.start_date, row.end_date) == (date(2026, 1, 10), date(2026, 1, 24))
        assert not row.dragging

    def test_press_without_movement_commits_nothing(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 300)
        assert view.pointer_up() is None
        assert not view.is_pending("lot-1")

    def test_resize_start_never_passes_end(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 181)
        view.pointer_move(181 + 40 * 20)
        update = view.pointer_up()
        assert update.start_date == update.end_date == date(2026, 1, 24)

    def test_second_press_ignored_while_dragging(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 300)
        assert view.pointer_down("lot-4", 700) is False
        assert view.drag.active_lot_id == "lot-1"

    def test_undated_lot_cannot_be_dragged(self, store):
        view, _ = _view(store)
        assert view.pointer_down("lot-3", 100) is False
        assert view.pointer_down("missing", 100) is False

    @pytest.mark.asyncio
    async def test_failed_commit_reverts_and_reports(self):
        store = FailingStore(_lots())
        view, notes = _view(store)
        view.pointer_down("lot-1", 300)
        view.pointer_move(460)
        update = view.pointer_up()

        assert await view.commit_update(update) is False
        assert len(store.updates) == 1
        assert not view.is_pending("lot-1")
        row = _row(view, "lot-1")
        assert (row.start_date, row.end_date) == (date(2026, 1, 10), date(2026, 1, 24))
        assert notes[-1][1] == "error"
        assert "disk full" in notes[-1][0]

    def test_zoom_change_discards_drag(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 300)
        view.pointer_move(460)
        view.set_zoom(ZoomLevel.DAY)
        assert not view.drag.is_dragging
        assert view.pointer_up() is None


class TestQuickAddScenarios:
    @pytest.mark.asyncio
    async def test_click_then_submit_creates_one_lot(self, store):
        view, notes = _view(store)
        x = view.index.position_of(date(2026, 3, 5))
        draft = view.click_timeline(x)
        assert (draft.start_date, draft.end_date) == (date(2026, 3, 5), date(2026, 3, 19))

        view.quick_add.set_name("Toiture")
        request = view.submit_quick_add()
        assert not view.quick_add.is_open

        lot = await view.commit_quick_add(request)
        assert store.creates == [("Toiture", date(2026, 3, 5), date(2026, 3, 19))]
        assert store.updates == []
        assert lot in store.snapshot()
        assert ("Lot created", "information") in notes

    def test_click_ignored_while_dragging(self, store):
        view, _ = _view(store)
        view.pointer_down("lot-1", 300)
        assert view.click_timeline(1260) is None
        assert not view.quick_add.is_open

    @pytest.mark.asyncio
    async def test_placing_undated_lot_updates_it(self, store):
        view, notes = _view(store)
        x = view.index.position_of(date(2026, 3, 2))
        draft = view.click_timeline(x, lot_id="lot-3")
        assert draft.name == "Peinture"
        assert draft.lot_id == "lot-3"

        lot = await view.commit_quick_add(view.submit_quick_add())
        assert store.creates == []
        assert store.updates == [
            ("lot-3", {"start_date": date(2026, 3, 2), "end_date": date(2026, 3, 16)})
        ]
        assert lot.has_dates
        assert ("Peinture scheduled", "information") in notes

    @pytest.mark.asyncio
    async def test_placing_undated_lot_keeps_renamed_name(self, store):
        view, notes = _view(store)
        x = view.index.position_of(date(2026, 3, 2))
        view.click_timeline(x, lot_id="lot-3")
        view.quick_add.set_name("Peinture intérieure")

        lot = await view.commit_quick_add(view.submit_quick_add())
        assert store.updates == [
            ("lot-3", {
                "start_date": date(2026, 3, 2),
                "end_date": date(2026, 3, 16),
                "name": "Peinture intérieure",
            })
        ]
        assert lot.name == "Peinture intérieure"
        assert ("Peinture intérieure scheduled", "information") in notes

    def test_click_on_dated_lot_row_opens_plain_draft(self, store):
        view, _ = _view(store)
        draft = view.click_timeline(1260, lot_id="lot-1")
        assert draft.lot_id is None
        assert draft.name == ""

    def test_submit_without_name_warns(self, store):
        view, notes = _view(store)
        view.open_quick_add()
        assert view.submit_quick_add() is None
        assert view.quick_add.is_open
        assert notes[-1][1] == "warning"

    def test_open_quick_add_defaults_to_today(self, store):
        view, _ = _view(store)
        draft = view.open_quick_add()
        assert draft.start_date == TODAY
        assert draft.end_date == TODAY + timedelta(days=14)

    def test_quick_add_days_is_configurable(self, store):
        view, _ = _view(store, quick_add_days=5)
        assert view.open_quick_add().end_date == TODAY + timedelta(days=5)

    @pytest.mark.asyncio
    async def test_commit_failure_reports(self, store):
        view, notes = _view(store)
        view.open_quick_add()
        view.quick_add.set_name("Toiture")
        request = view.submit_quick_add()
        await store.delete_lot("lot-1")
        bad = QuickAddRequest(request.name, request.start_date, request.end_date, "lot-1")
        assert await view.commit_quick_add(bad) is None
        assert notes[-1][1] == "error"

    def test_escape_closes_draft_before_drag(self, store):
        view, _ = _view(store)
        view.open_quick_add()
        assert view.handle_key("escape") is True
        assert not view.quick_add.is_open
        view.pointer_down("lot-1", 300)
        assert view.handle_key("escape") is True
        assert not view.drag.is_dragging
        assert view.handle_key("escape") is False
        assert view.handle_key("x") is False


class TestRowsAndFilters:
    def test_rows_sorted_dated_first(self, store):
        view, _ = _view(store)
        assert [row.lot.id for row in view.rows()] == ["lot-2", "lot-1", "lot-4", "lot-3"]

    def test_undated_row_has_no_span(self, store):
        view, _ = _view(store)
        row = _row(view, "lot-3")
        assert not row.has_dates
        assert row.span is None

    def test_row_span_and_company(self, store):
        view, _ = _view(store)
        row = _row(view, "lot-1")
        assert row.span == (180, 480)
        assert row.company_name == "Maçonnerie Martin"

    def test_delayed_flag(self, store):
        view, _ = _view(store)
        assert _row(view, "lot-1").delayed
        assert not _row(view, "lot-2").delayed
        assert not _row(view, "lot-4").delayed

    def test_status_filter(self, store):
        view, _ = _view(store)
        view.set_status_filter(LotStatus.PENDING)
        assert [row.lot.id for row in view.rows()] == ["lot-4", "lot-3"]

    def test_cycle_status_filter(self, store):
        view, _ = _view(store)
        seen = [view.cycle_status_filter() for _ in range(5)]
        assert seen == [
            LotStatus.PENDING,
            LotStatus.IN_PROGRESS,
            LotStatus.COMPLETED,
            LotStatus.DELAYED,
            None,
        ]

    def test_stats_ignore_filter(self, store):
        view, _ = _view(store)
        view.set_status_filter(LotStatus.COMPLETED)
        stats = view.stats()
        assert stats.total == 4
        assert stats.with_dates == 3
        assert stats.without_dates == 1
        assert stats.completed == 1
        assert stats.in_progress == 1
        assert stats.delayed == 1

    def test_selection(self, store):
        view, _ = _view(store)
        assert view.select("lot-4").name == "Électricité"
        assert _row(view, "lot-4").selected
        assert view.select(None) is None

    @pytest.mark.asyncio
    async def test_delete_clears_selection(self, store):
        view, notes = _view(store)
        view.select("lot-4")
        assert await view.delete_lot("lot-4") is True
        assert view.selected_id is None
        assert view.find_lot("lot-4") is None
        assert await view.delete_lot("lot-4") is False
        assert notes[-1][1] == "error"


class TestPureHelpers:
    def test_sort_is_idempotent(self):
        once = sort_lots(_lots())
        assert sort_lots(once) == once

    def test_sort_is_stable_for_equal_keys(self):
        a = Lot(name="A", id="a", start_date=date(2026, 1, 1), end_date=date(2026, 1, 2))
        b = Lot(name="B", id="b", start_date=date(2026, 1, 1), end_date=date(2026, 1, 9))
        assert [lot.id for lot in sort_lots([b, a])] == ["b", "a"]

    def test_filter_none_keeps_all(self):
        assert len(filter_lots(_lots(), None)) == 4

    def test_delayed_rule(self):
        yesterday = TODAY - timedelta(days=1)
        late = Lot(name="A", start_date=yesterday, end_date=yesterday, status=LotStatus.IN_PROGRESS)
        done = Lot(name="B", start_date=yesterday, end_date=yesterday, status=LotStatus.COMPLETED)
        due_today = Lot(name="C", start_date=TODAY, end_date=TODAY)
        assert is_delayed(late, TODAY)
        assert not is_delayed(done, TODAY)
        assert not is_delayed(due_today, TODAY)
        assert not is_delayed(Lot(name="D"), TODAY)

    def test_compute_stats_by_status(self):
        stats = compute_stats(_lots(), TODAY)
        assert stats.by_status[LotStatus.PENDING] == 2
        assert stats.by_status[LotStatus.DELAYED] == 0
