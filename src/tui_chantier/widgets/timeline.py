"""Timeline widgets: toolbar, header rows, lot bars and the quick-add row."""

from __future__ import annotations

from datetime import date, timedelta

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.geometry import Size
from textual.message import Message
from textual.scroll_view import ScrollView
from textual.strip import Strip
from textual.widget import Widget
from textual.widgets import Button, Input, Static

from rich.markup import escape
from rich.segment import Segment
from rich.style import Style
from rich.text import Text

from tui_chantier import theme
from tui_chantier.drag import LotDateUpdate
from tui_chantier.models import STATUS_LABELS, LotStatus, ScheduleStats, format_date
from tui_chantier.quick_add import QuickAddDraft
from tui_chantier.schedule import ScheduleRow, ScheduleView
from tui_chantier.timeline import ZOOM_LABELS, ZoomLevel

SIDEBAR_WIDTH = 26
PLACEHOLDER = "click to schedule"
ADD_ROW_LABEL = "+ Add lot"


def _is_dark(widget: Widget) -> bool:
    try:
        return widget.app.current_theme.dark
    except Exception:
        return True


def _fit(label: str, width: int) -> str:
    """Truncate/pad *label* to exactly *width* cells."""
    if width <= 0:
        return ""
    if len(label) > width:
        return label[: max(0, width - 1)] + "…" if width > 1 else label[:1]
    return label.ljust(width)


class TimelineToolbar(Widget):
    """1-line toolbar: month navigation, zoom buttons, filter and stats."""

    class NavigateRequested(Message):
        def __init__(self, direction: str) -> None:
            super().__init__()
            self.direction = direction  # "prev", "next" or "today"

    class ZoomChanged(Message):
        def __init__(self, zoom: ZoomLevel) -> None:
            super().__init__()
            self.zoom = zoom

    class FilterCycled(Message):
        pass

    DEFAULT_CSS = """
    TimelineToolbar {
        height: 1;
        background: $background;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._month: date = date.today()
        self._zoom: ZoomLevel = ZoomLevel.WEEK
        self._status_filter: LotStatus | None = None
        self._stats = ScheduleStats()
        self._regions: list[tuple[int, int, Message]] = []

    def update_toolbar(
        self,
        month: date,
        zoom: ZoomLevel,
        status_filter: LotStatus | None,
        stats: ScheduleStats,
    ) -> None:
        self._month = month
        self._zoom = zoom
        self._status_filter = status_filter
        self._stats = stats
        self.refresh()

    def _button(self, text: Text, label: str, style: Style, message: Message) -> None:
        start = len(text)
        text.append(label, style)
        self._regions.append((start, len(text), message))

    def render(self) -> Text:
        dark = _is_dark(self)
        text = Text()
        self._regions = []
        dim = Style(dim=True)

        self._button(text, " ◀ ", Style(bold=True), self.NavigateRequested("prev"))
        text.append(self._month.strftime("%B %Y").center(16), Style(bold=True))
        self._button(text, " ▶ ", Style(bold=True), self.NavigateRequested("next"))
        self._button(text, " Today ", Style(reverse=True), self.NavigateRequested("today"))

        text.append("  │ ", dim)
        for zoom in ZoomLevel:
            label = f" {ZOOM_LABELS[zoom]} "
            style = Style(bold=True, reverse=True) if zoom == self._zoom else dim
            self._button(text, label, style, self.ZoomChanged(zoom))

        text.append("  │ ", dim)
        filter_label = STATUS_LABELS[self._status_filter] if self._status_filter else "All lots"
        filter_style = Style(color=theme.FILTER_BADGE.resolve(dark), bold=self._status_filter is not None)
        self._button(text, f"Filter: {filter_label}", filter_style, self.FilterCycled())

        stats = self._stats
        text.append("  │ ", dim)
        text.append(f"{stats.total} lots · {stats.in_progress} in progress · {stats.completed} completed")
        if stats.without_dates:
            text.append(f" · {stats.without_dates} without dates", Style(dim=True, italic=True))
        if stats.delayed:
            text.append(f" · {stats.delayed} delayed", Style(bold=True, color=theme.DELAYED_BADGE.resolve(dark)))
        return text

    def on_click(self, event: events.Click) -> None:
        for start, end, message in self._regions:
            if start <= event.x < end:
                self.post_message(message)
                return


class TimelineHeader(Widget):
    """Fixed header: month row, ISO week row and today marker."""

    DEFAULT_CSS = """
    TimelineHeader {
        height: 3;
        background: $background;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._view: ScheduleView | None = None
        self.scroll_x_offset: int = 0

    def bind(self, view: ScheduleView) -> None:
        self._view = view
        self.refresh()

    def render_line(self, y: int) -> Strip:
        width = self.size.width
        view = self._view
        if view is None or y > 2:
            return Strip.blank(width)
        dark = _is_dark(self)
        header = Style(bold=True, color=theme.TIMELINE_HEADER.resolve(dark))
        sidebar_label = ("Lots", "Week", "")[y]
        segments = [Segment(_fit(f" {sidebar_label}", SIDEBAR_WIDTH), header)]

        first = self.scroll_x_offset
        last = first + max(0, width - SIDEBAR_WIDTH)
        if y == 0:
            segments.extend(self._month_row(view, first, last, header, dark))
        elif y == 1:
            segments.extend(self._week_row(view, first, last, header, dark))
        else:
            segments.extend(self._today_row(view, first, last, dark))
        return Strip(segments).crop(0, width)

    def _spans(self, runs, day_width: int, first: int, last: int):
        """Yield (index, run, run_left, lo, hi) for runs overlapping [first, last)."""
        for i, run in enumerate(runs):
            left = run.start_index * day_width
            right = left + run.count * day_width
            lo, hi = max(left, first), min(right, last)
            if lo < hi:
                yield i, run, left, lo, hi

    def _month_row(self, view: ScheduleView, first: int, last: int, header: Style, dark: bool) -> list[Segment]:
        band = Style(bgcolor=theme.TIMELINE_BAND_BG.resolve(dark))
        base = Style(bgcolor=theme.TIMELINE_BASE_BG.resolve(dark))
        dw = view.index.day_width
        segments: list[Segment] = []
        for i, group, left, lo, hi in self._spans(view.month_groups(), dw, first, last):
            label = group.month.strftime("%b %Y").center(group.count * dw)
            bg = band if i % 2 else base
            segments.append(Segment(_fit(label[lo - left:hi - left], hi - lo), header + bg))
        return segments

    def _week_row(self, view: ScheduleView, first: int, last: int, header: Style, dark: bool) -> list[Segment]:
        band = Style(bgcolor=theme.TIMELINE_BAND_BG.resolve(dark))
        base = Style(bgcolor=theme.TIMELINE_BASE_BG.resolve(dark))
        today_bg = Style(bgcolor=theme.TIMELINE_TODAY_WEEK_BG.resolve(dark))
        dw = view.index.day_width
        segments: list[Segment] = []
        for i, week, left, lo, hi in self._spans(view.week_groups(), dw, first, last):
            label = f"W{week.iso_week}"[: week.count * dw].center(week.count * dw)
            bg = today_bg if week.contains_today else (band if i % 2 else base)
            segments.append(Segment(_fit(label[lo - left:hi - left], hi - lo), header + bg))
        return segments

    def _today_row(self, view: ScheduleView, first: int, last: int, dark: bool) -> list[Segment]:
        index = view.index
        today = view.today
        today_col = index.position_of(today) if index.contains(today) else -1
        marker = Style(color=theme.TIMELINE_TODAY_MARKER.resolve(dark), bold=True)
        dim = Style(dim=True)
        segments: list[Segment] = []
        for c in range(first, min(last, index.total_width)):
            if c == today_col:
                segments.append(Segment("▼", marker))
            else:
                segments.append(Segment("┄", dim))
        return segments


class TimelineView(ScrollView):
    """Renders one row per lot and turns mouse input into ScheduleView calls."""

    class LotSelected(Message):
        def __init__(self, lot_id: str) -> None:
            super().__init__()
            self.lot_id = lot_id

    class GestureReleased(Message):
        """A drag ended with new dates that must be committed."""

        def __init__(self, update: LotDateUpdate) -> None:
            super().__init__()
            self.update = update

    class QuickAddOpened(Message):
        def __init__(self, draft: QuickAddDraft) -> None:
            super().__init__()
            self.draft = draft

    class ScrollXChanged(Message):
        def __init__(self, scroll_x: float) -> None:
            super().__init__()
            self.scroll_x = scroll_x

    can_focus = True

    DEFAULT_CSS = """
    TimelineView {
        height: 1fr;
        background: $background;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._view: ScheduleView | None = None
        self._rows: list[ScheduleRow] = []
        self._date_format: str = "YYYY-MM-DD"
        self._gesture_in_press = False

    def bind(self, view: ScheduleView, date_format: str = "YYYY-MM-DD") -> None:
        self._view = view
        self._date_format = date_format
        self.reload()

    def reload(self) -> None:
        """Re-derive rows from the schedule and resize the scroll area."""
        if self._view is None:
            return
        self._rows = self._view.rows()
        width = SIDEBAR_WIDTH + self._view.index.total_width
        self.virtual_size = Size(width, len(self._rows) + 1)
        self.refresh()

    @property
    def rows(self) -> list[ScheduleRow]:
        return self._rows

    def watch_scroll_x(self, old_value: float, new_value: float) -> None:
        super().watch_scroll_x(old_value, new_value)
        self.post_message(self.ScrollXChanged(new_value))

    # ── Coordinates ──

    def timeline_x(self, x: int) -> int | None:
        """Timeline cell under widget column *x*, or None over the sidebar."""
        if x < SIDEBAR_WIDTH:
            return None
        return x - SIDEBAR_WIDTH + int(self.scroll_x)

    def row_at(self, y: int) -> ScheduleRow | None:
        row_index = y + int(self.scroll_y)
        if 0 <= row_index < len(self._rows):
            return self._rows[row_index]
        return None

    # ── Mouse ──

    def on_mouse_down(self, event: events.MouseDown) -> None:
        self._gesture_in_press = False
        if self._view is None:
            return
        row = self.row_at(event.y)
        tx = self.timeline_x(event.x)
        if row is None:
            return
        self.post_message(self.LotSelected(row.lot.id))
        if tx is None or row.span is None:
            return
        left, right = row.span
        if left <= tx < right and self._view.pointer_down(row.lot.id, tx):
            self._gesture_in_press = True
            self.reload()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self._view is None or not self._view.drag.is_dragging:
            return
        tx = self.timeline_x(event.x)
        if tx is not None and self._view.pointer_move(tx):
            self.reload()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if self._view is None or not self._view.drag.is_dragging:
            return
        update = self._view.pointer_up()
        self.reload()
        if update is not None:
            self.post_message(self.GestureReleased(update))

    def on_leave(self, event: events.Leave) -> None:
        if self._view is not None and self._view.pointer_leave():
            self._gesture_in_press = False
            self.reload()

    def on_click(self, event: events.Click) -> None:
        if self._view is None or self._gesture_in_press:
            self._gesture_in_press = False
            return
        tx = self.timeline_x(event.x)
        row = self.row_at(event.y)
        draft: QuickAddDraft | None = None
        if row is None:
            row_index = event.y + int(self.scroll_y)
            if row_index == len(self._rows):
                draft = self._view.click_timeline(tx) if tx is not None else self._view.open_quick_add()
        elif tx is not None and row.span is None:
            draft = self._view.click_timeline(tx, row.lot.id)
        if draft is not None:
            self.reload()
            self.post_message(self.QuickAddOpened(draft))

    # ── Rendering ──

    def render_line(self, y: int) -> Strip:
        width = self.size.width
        if self._view is None:
            return Strip.blank(width)
        if not self._rows and y == 0 and not self._view.quick_add.is_open:
            text = Text("  No lots. Click here or press 'a' to add one.", style="dim")
            return Strip(text.render(self.app.console)).crop(0, width)

        dark = _is_dark(self)
        first = int(self.scroll_x)
        last = first + max(0, width - SIDEBAR_WIDTH)
        row_index = y + int(self.scroll_y)
        if row_index < len(self._rows):
            segments = self._render_row(self._rows[row_index], row_index, first, last, dark)
        elif row_index == len(self._rows):
            segments = self._render_add_row(first, last, dark)
        else:
            segments = [Segment(" " * SIDEBAR_WIDTH)] + self._background(first, last, row_index, dark)
        return Strip(segments).crop(0, width)

    def _cell_date(self, c: int) -> date:
        index = self._view.index
        return index.visible_start + timedelta(days=c // index.day_width)

    def _background(self, first: int, last: int, row_index: int, dark: bool, selected: bool = False) -> list[Segment]:
        index = self._view.index
        today = self._view.today
        today_col = index.position_of(today) if index.contains(today) else -1
        base = Style(bgcolor=theme.TIMELINE_BASE_BG.resolve(dark))
        band = Style(bgcolor=theme.TIMELINE_BAND_BG.resolve(dark))
        weekend = Style(bgcolor=theme.TIMELINE_WEEKEND_BG.resolve(dark))
        row_bg = band if row_index % 2 else base
        if selected:
            row_bg = Style(bgcolor=theme.TIMELINE_HIGHLIGHT_BG.resolve(dark))
        today_style = Style(color=theme.TIMELINE_TODAY_MARKER.resolve(dark))
        show_weekends = self._view.zoom is not ZoomLevel.MONTH
        segments: list[Segment] = []
        for c in range(first, min(last, index.total_width)):
            bg = row_bg
            if show_weekends and not selected and self._cell_date(c).weekday() >= 5:
                bg = weekend
            segments.append(Segment("│" if c == today_col else " ", today_style + bg))
        return segments

    def _sidebar(self, row: ScheduleRow, dark: bool) -> list[Segment]:
        color = theme.lot_color(row.lot.status, row.lot.color, dark)
        label = row.lot.name
        if row.company_name:
            label = f"{label} · {row.company_name}"
        name_style = Style(bold=row.selected, reverse=row.selected)
        segments = [Segment(" ●", Style(color=color)), Segment(" ")]
        segments.append(Segment(_fit(label, SIDEBAR_WIDTH - 4), name_style))
        if row.delayed:
            segments.append(Segment("!", Style(bold=True, color=theme.DELAYED_BADGE.resolve(dark))))
        else:
            segments.append(Segment(" "))
        return segments

    def _render_row(self, row: ScheduleRow, row_index: int, first: int, last: int, dark: bool) -> list[Segment]:
        segments = self._sidebar(row, dark)
        background = self._background(first, last, row_index, dark, selected=row.selected)
        if row.span is None:
            return segments + self._overlay_label(background, first, PLACEHOLDER, Style(italic=True, color=theme.TIMELINE_PLACEHOLDER.resolve(dark)))

        left, right = row.span
        color = theme.lot_color(row.lot.status, row.lot.color, dark)
        if row.pending:
            color = theme.TIMELINE_PENDING_BAR.resolve(dark)
        bar = Style(bgcolor=color, color=theme.TIMELINE_BAR_TEXT.resolve(dark), bold=row.dragging)
        handle = Style(bgcolor=color, color=theme.TIMELINE_DRAG_HANDLE.resolve(dark), bold=True)
        label = f" {row.lot.name} "
        if right - left < len(label) + 2:
            label = ""
        for i, c in enumerate(range(first, first + len(background))):
            if not left <= c < right:
                continue
            if right - left >= 3 and c == left:
                background[i] = Segment("▏", handle)
            elif right - left >= 3 and c == right - 1:
                background[i] = Segment("▕", handle)
            else:
                pos = c - left - 1
                ch = label[pos] if 0 <= pos < len(label) else " "
                background[i] = Segment(ch, bar)
        if row.delayed and first <= right < first + len(background):
            background[right - first] = Segment("⚑", Style(bold=True, color=theme.TIMELINE_DELAYED_RING.resolve(dark)))
        return segments + background

    def _render_add_row(self, first: int, last: int, dark: bool) -> list[Segment]:
        draft = self._view.quick_add.draft
        background = self._background(first, last, 0, dark)
        if not draft.visible:
            sidebar = [Segment(_fit(f" {ADD_ROW_LABEL}", SIDEBAR_WIDTH), Style(dim=True))]
            return sidebar + background
        qa_bg = theme.TIMELINE_QUICK_ADD_BG.resolve(dark)
        sidebar_label = draft.name or "New lot…"
        sidebar = [Segment(_fit(f" + {sidebar_label}", SIDEBAR_WIDTH), Style(bold=True, bgcolor=qa_bg))]
        if draft.start_date and draft.end_date:
            left, right = self._view.index.bar_span(draft.start_date, draft.end_date)
            preview = Style(bgcolor=theme.TIMELINE_PENDING_BAR.resolve(dark), dim=True)
            for i, c in enumerate(range(first, first + len(background))):
                if left <= c < right:
                    background[i] = Segment("░", preview)
        return sidebar + background

    def _overlay_label(self, background: list[Segment], first: int, label: str, style: Style) -> list[Segment]:
        """Center *label* over the visible part of the row."""
        if len(background) < len(label) + 2:
            return background
        start = (len(background) - len(label)) // 2
        for i, ch in enumerate(label):
            background[start + i] = Segment(ch, style + (background[start + i].style or Style()))
        return background


class QuickAddBar(Horizontal):
    """Inline form for the quick-add draft: name, start, end."""

    DEFAULT_CSS = """
    QuickAddBar {
        height: 3;
        display: none;
        background: $surface;
    }
    QuickAddBar.open {
        display: block;
    }
    QuickAddBar #qa-title {
        width: 18;
        padding: 1 1;
    }
    QuickAddBar #qa-name {
        width: 1fr;
    }
    QuickAddBar #qa-start, QuickAddBar #qa-end {
        width: 16;
    }
    QuickAddBar Button {
        min-width: 10;
        margin: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static("New lot", id="qa-title")
        yield Input(placeholder="Lot name…", id="qa-name")
        yield Input(placeholder="Start", id="qa-start")
        yield Input(placeholder="End", id="qa-end")
        yield Button("Add", variant="primary", id="qa-submit")
        yield Button("Cancel", id="qa-cancel")

    def load(self, draft: QuickAddDraft) -> None:
        """Show *draft* (or hide the bar when it is closed)."""
        self.set_class(draft.visible, "open")
        if not draft.visible:
            return
        self.query_one("#qa-title", Static).update("Schedule lot" if draft.lot_id else "New lot")
        self._set_value("#qa-name", draft.name)
        self._set_value("#qa-start", draft.start_date.isoformat() if draft.start_date else "")
        self._set_value("#qa-end", draft.end_date.isoformat() if draft.end_date else "")
        self.query_one("#qa-submit", Button).disabled = not (
            draft.name.strip() and draft.start_date and draft.end_date
        )

    def _set_value(self, selector: str, value: str) -> None:
        field = self.query_one(selector, Input)
        if field.value != value:
            with field.prevent(Input.Changed):
                field.value = value


class LotDetail(Static):
    """One-line summary of the selected lot."""

    DEFAULT_CSS = """
    LotDetail {
        height: 1;
        padding: 0 1;
        background: $primary-background;
        color: $text;
    }
    """

    def show_row(self, row: ScheduleRow | None, date_format: str) -> None:
        if row is None:
            self.update("No lot selected. Click a lot to see its details.")
            return
        lot = row.lot
        parts = [f"[b]{escape(lot.name)}[/b]", STATUS_LABELS[lot.status]]
        if row.start_date and row.end_date:
            days = (row.end_date - row.start_date).days + 1
            parts.append(
                f"{format_date(row.start_date, date_format)} → "
                f"{format_date(row.end_date, date_format)} ({days}d)"
            )
        else:
            parts.append("no dates")
        if row.company_name:
            parts.append(escape(row.company_name))
        if lot.budget is not None:
            parts.append(f"budget {lot.budget:,.0f}")
        if row.delayed:
            parts.append(f"[b {theme.DELAYED_BADGE.dark}]delayed[/]")
        self.update(" · ".join(parts))
