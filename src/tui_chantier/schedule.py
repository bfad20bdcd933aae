"""Schedule view: composes the timeline, the store snapshot and the controllers.

Everything here is independent of Textual so the interaction model can be
driven directly from tests. The widgets in ``tui_chantier.widgets`` only
translate terminal events into calls on :class:`ScheduleView`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from tui_chantier.drag import DEFAULT_HANDLE_WIDTH, DragController, LotDateUpdate, Overlay
from tui_chantier.models import STATUS_ORDER, Lot, LotStatus, ScheduleStats
from tui_chantier.quick_add import (
    DEFAULT_DURATION_DAYS,
    QuickAddController,
    QuickAddDraft,
    QuickAddError,
    QuickAddRequest,
)
from tui_chantier.store import LotStore, LotStoreError
from tui_chantier.timeline import (
    DEFAULT_DAY_WIDTH,
    MonthGroup,
    TemporalIndex,
    WeekGroup,
    ZoomLevel,
    add_months,
    month_groups,
    week_groups,
)

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def _silent(message: str, severity: str) -> None:
    pass


# ── Pure views over a lot list ───────────────────────────────────


def filter_lots(lots: Iterable[Lot], status: LotStatus | None) -> list[Lot]:
    """Lots with *status*, or all lots when *status* is None."""
    if status is None:
        return list(lots)
    return [lot for lot in lots if lot.status == status]


def _sort_key(lot: Lot) -> tuple[int, int]:
    if lot.start_date is not None:
        return (0, lot.start_date.toordinal())
    return (1, lot.sort_order)


def sort_lots(lots: Iterable[Lot]) -> list[Lot]:
    """Dated lots by start date, then undated lots by sort_order. Stable."""
    return sorted(lots, key=_sort_key)


def is_delayed(lot: Lot, today: date | None = None) -> bool:
    """End date passed without the lot being completed."""
    if lot.end_date is None or lot.status == LotStatus.COMPLETED:
        return False
    return lot.end_date < (today or date.today())


def compute_stats(lots: Iterable[Lot], today: date | None = None) -> ScheduleStats:
    lots = list(lots)
    today = today or date.today()
    by_status = {status: 0 for status in STATUS_ORDER}
    for lot in lots:
        by_status[lot.status] += 1
    return ScheduleStats(
        total=len(lots),
        with_dates=sum(1 for lot in lots if lot.has_dates),
        completed=by_status[LotStatus.COMPLETED],
        in_progress=by_status[LotStatus.IN_PROGRESS],
        delayed=sum(1 for lot in lots if is_delayed(lot, today)),
        by_status=by_status,
    )


@dataclass(frozen=True)
class ScheduleRow:
    """One rendered lot row, with overlay/pending dates already applied."""

    lot: Lot
    start_date: date | None
    end_date: date | None
    span: tuple[int, int] | None  # [left, right) in cells, None when undated
    delayed: bool
    dragging: bool
    pending: bool
    selected: bool
    company_name: str = ""

    @property
    def has_dates(self) -> bool:
        return self.span is not None


# ── Composition root ─────────────────────────────────────────────


class ScheduleView:
    """Routes pointer and keyboard input to the controllers and derives rows.

    Persistence calls are returned to the host as coroutines-to-be
    (``commit_update``, ``commit_quick_add``, ``delete_lot``); the controller
    transitions themselves never wait on the store.
    """

    def __init__(
        self,
        store: LotStore,
        current_month: date | None = None,
        zoom: ZoomLevel = ZoomLevel.WEEK,
        day_widths: dict[ZoomLevel, int] | None = None,
        quick_add_days: int = DEFAULT_DURATION_DAYS,
        handle_width: int = DEFAULT_HANDLE_WIDTH,
        notify: Notifier | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self._clock = clock
        self.current_month = current_month or clock()
        self.zoom = zoom
        self.day_widths = dict(DEFAULT_DAY_WIDTH)
        if day_widths:
            self.day_widths.update(day_widths)
        self.status_filter: LotStatus | None = None
        self.selected_id: str | None = None
        self.drag = DragController(self.index.day_width, handle_width)
        self.quick_add = QuickAddController(quick_add_days)
        self._pending: dict[str, Overlay] = {}
        self._notify = notify or _silent

    # ── Timeline ──

    @property
    def today(self) -> date:
        return self._clock()

    @property
    def index(self) -> TemporalIndex:
        return TemporalIndex.for_month(self.current_month, self.zoom, self.day_widths[self.zoom])

    def month_groups(self) -> list[MonthGroup]:
        return month_groups(self.index.days())

    def week_groups(self) -> list[WeekGroup]:
        return week_groups(self.index.days(), self.today)

    def prev_month(self) -> None:
        self.current_month = add_months(self.current_month, -1)

    def next_month(self) -> None:
        self.current_month = add_months(self.current_month, 1)

    def go_to_today(self) -> None:
        self.current_month = self.today

    def set_zoom(self, zoom: ZoomLevel) -> None:
        if zoom == self.zoom:
            return
        # Pixel anchors are meaningless at a new scale.
        self.drag.leave()
        self.zoom = zoom
        self.drag.day_width = self.index.day_width

    def set_status_filter(self, status: LotStatus | None) -> None:
        self.status_filter = status

    def cycle_status_filter(self) -> LotStatus | None:
        """All -> each status in turn -> All."""
        cycle: list[LotStatus | None] = [None, *STATUS_ORDER]
        position = cycle.index(self.status_filter)
        self.status_filter = cycle[(position + 1) % len(cycle)]
        return self.status_filter

    # ── Derived views ──

    def lots(self) -> tuple[Lot, ...]:
        return self.store.snapshot()

    def find_lot(self, lot_id: str) -> Lot | None:
        for lot in self.store.snapshot():
            if lot.id == lot_id:
                return lot
        return None

    def visible_lots(self) -> list[Lot]:
        return sort_lots(filter_lots(self.store.snapshot(), self.status_filter))

    def stats(self) -> ScheduleStats:
        return compute_stats(self.store.snapshot(), self.today)

    def effective_dates(self, lot: Lot) -> tuple[date | None, date | None]:
        """Drag overlay, then in-flight commit, then the stored dates."""
        overlay = self.drag.overlay_for(lot.id) or self._pending.get(lot.id)
        if overlay is not None:
            return overlay.start_date, overlay.end_date
        return lot.start_date, lot.end_date

    def is_pending(self, lot_id: str) -> bool:
        return lot_id in self._pending

    def rows(self) -> list[ScheduleRow]:
        index = self.index
        today = self.today
        company_names = {c.id: c.name for c in self.store.companies()}
        rows: list[ScheduleRow] = []
        for lot in self.visible_lots():
            start, end = self.effective_dates(lot)
            span = index.bar_span(start, end) if start and end else None
            rows.append(
                ScheduleRow(
                    lot=lot,
                    start_date=start,
                    end_date=end,
                    span=span,
                    delayed=is_delayed(lot.with_dates(start, end), today),
                    dragging=self.drag.active_lot_id == lot.id,
                    pending=lot.id in self._pending,
                    selected=self.selected_id == lot.id,
                    company_name=company_names.get(lot.company_id or "", ""),
                )
            )
        return rows

    # ── Selection ──

    def select(self, lot_id: str | None) -> Lot | None:
        self.selected_id = lot_id
        return self.selected_lot

    @property
    def selected_lot(self) -> Lot | None:
        if self.selected_id is None:
            return None
        return self.find_lot(self.selected_id)

    # ── Pointer routing ──

    def pointer_down(self, lot_id: str, x: float) -> bool:
        """Press on a lot's bar. Returns True when a gesture started."""
        lot = self.find_lot(lot_id)
        if lot is None:
            return False
        start, end = self.effective_dates(lot)
        if start is None or end is None:
            return False
        left, right = self.index.bar_span(start, end)
        return self.drag.press_bar(lot.with_dates(start, end), x, left, right)

    def pointer_move(self, x: float) -> bool:
        return self.drag.move(x)

    def pointer_up(self) -> LotDateUpdate | None:
        """Finish the gesture. The returned update must be passed to commit_update."""
        update = self.drag.release()
        if update is not None:
            self._pending[update.lot_id] = Overlay(update.start_date, update.end_date)
        return update

    def pointer_leave(self) -> bool:
        """Pointer left the timeline: discard any gesture without committing."""
        return self.drag.leave()

    def click_timeline(self, x: float, lot_id: str | None = None) -> QuickAddDraft | None:
        """Click on empty timeline space, or on the placeholder of an undated lot."""
        if self.drag.is_dragging:
            return None
        at = self.index.date_at_position(x)
        lot = self.find_lot(lot_id) if lot_id else None
        if lot is not None and not lot.has_dates:
            return self.quick_add.open(at, name=lot.name, lot_id=lot.id)
        return self.quick_add.open(at)

    def open_quick_add(self, at: date | None = None) -> QuickAddDraft:
        return self.quick_add.open(at or self.today)

    def handle_key(self, key: str) -> bool:
        """Escape closes the quick-add draft, or else abandons the drag."""
        if key != "escape":
            return False
        if self.quick_add.cancel():
            return True
        return self.drag.leave()

    def submit_quick_add(self) -> QuickAddRequest | None:
        try:
            return self.quick_add.submit()
        except QuickAddError as e:
            self._notify(str(e).capitalize(), "warning")
            return None

    # ── Store commands ──

    async def commit_update(self, update: LotDateUpdate) -> bool:
        """Persist a released gesture. On failure the stored dates stay authoritative."""
        pending = Overlay(update.start_date, update.end_date)
        try:
            await self.store.update_lot(update.lot_id, **update.fields())
        except (LotStoreError, OSError) as e:
            logger.warning("update of lot %s failed: %s", update.lot_id, e)
            self._notify(f"Schedule update failed: {e}", "error")
            return False
        finally:
            if self._pending.get(update.lot_id) == pending:
                del self._pending[update.lot_id]
        self._notify("Schedule updated", "information")
        return True

    async def commit_quick_add(self, request: QuickAddRequest) -> Lot | None:
        try:
            if request.lot_id is not None:
                fields: dict[str, object] = {
                    "start_date": request.start_date,
                    "end_date": request.end_date,
                }
                current = self.find_lot(request.lot_id)
                if current is not None and current.name != request.name:
                    fields["name"] = request.name
                lot = await self.store.update_lot(request.lot_id, **fields)
                self._notify(f"{lot.name} scheduled", "information")
            else:
                lot = await self.store.create_lot(
                    request.name, request.start_date, request.end_date
                )
                self._notify("Lot created", "information")
        except (LotStoreError, OSError) as e:
            logger.warning("quick-add of %r failed: %s", request.name, e)
            self._notify(f"Could not save lot: {e}", "error")
            return None
        return lot

    async def delete_lot(self, lot_id: str) -> bool:
        try:
            await self.store.delete_lot(lot_id)
        except (LotStoreError, OSError) as e:
            logger.warning("delete of lot %s failed: %s", lot_id, e)
            self._notify(f"Could not delete lot: {e}", "error")
            return False
        if self.selected_id == lot_id:
            self.selected_id = None
        self._notify("Lot deleted", "information")
        return True
