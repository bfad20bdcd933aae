"""Main Textual App for TUI Chantier."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Button, Footer, Header, Input

from tui_chantier import theme
from tui_chantier.config import day_widths, load_config
from tui_chantier.filelock import acquire_lock, release_lock
from tui_chantier.models import STATUS_LABELS, ProjectConfig, parse_date
from tui_chantier.schedule import ScheduleRow, ScheduleView
from tui_chantier.screens.confirm_screen import ConfirmScreen
from tui_chantier.store import LotStore, LotStoreError, MemoryLotStore, load_store
from tui_chantier.timeline import ZoomLevel
from tui_chantier.widgets.timeline import (
    LotDetail,
    QuickAddBar,
    TimelineHeader,
    TimelineToolbar,
    TimelineView,
)

logger = logging.getLogger(__name__)

_TEXTUAL_THEMES = {"default_dark": "textual-dark", "default_light": "textual-light"}


class ChantierApp(App):
    """TUI Chantier Application."""

    TITLE = "TUI Chantier"
    CSS = """
    #timeline {
        height: 1fr;
        scrollbar-size-vertical: 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("left_square_bracket", "prev_month", "Prev month"),
        Binding("right_square_bracket", "next_month", "Next month"),
        Binding("t", "today", "Today"),
        Binding("a", "add_lot", "Add lot"),
        Binding("d", "delete_lot", "Delete"),
        Binding("f", "cycle_filter", "Filter"),
        Binding("escape", "cancel", "Cancel", show=False),
        # Zoom
        Binding("D", "zoom('day')", show=False),
        Binding("W", "zoom('week')", show=False),
        Binding("M", "zoom('month')", show=False),
        # Theme
        Binding("T", "toggle_theme", "Theme", show=False),
    ]

    def __init__(
        self,
        project_dir: Path,
        no_color: bool = False,
        store: LotStore | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        if no_color:
            os.environ["NO_COLOR"] = "1"
        super().__init__()
        self.project_dir = project_dir
        self.config: ProjectConfig = ProjectConfig()
        self.store: LotStore | None = store
        self.view: ScheduleView | None = None
        self._clock = clock
        self._owns_lock = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield TimelineToolbar(id="toolbar")
        yield TimelineHeader(id="timeline-header")
        yield TimelineView(id="timeline")
        yield QuickAddBar(id="quick-add")
        yield LotDetail("", id="lot-detail")
        yield Footer()

    def on_mount(self) -> None:
        self.set_timer(0.01, self._load_project)

    def _load_project(self) -> None:
        theme.load_theme(self.project_dir)
        self.config = load_config(self.project_dir)
        self.theme = _TEXTUAL_THEMES.get(self.config.theme_name, "textual-dark")

        if self.store is None:
            self._owns_lock = acquire_lock(self.project_dir)
            if not self._owns_lock:
                self.notify("Project locked by another process", severity="error")
            try:
                self.store = load_store(self.project_dir)
            except LotStoreError as e:
                logger.error("cannot open lots of %s: %s", self.project_dir, e)
                self.notify(f"{e}. Changes will not be saved.", severity="error", timeout=10)
                self.store = MemoryLotStore()

        timeline_config = self.config.timeline
        self.view = ScheduleView(
            self.store,
            current_month=self._clock(),
            zoom=ZoomLevel.parse(timeline_config.zoom),
            day_widths=day_widths(self.config),
            quick_add_days=timeline_config.quick_add_days,
            handle_width=timeline_config.resize_handle_width,
            notify=self._notify_user,
            clock=self._clock,
        )
        self.store.subscribe(self._refresh_ui)

        project_name = self.config.name or self.project_dir.name
        self.title = f"TUI Chantier - {project_name}"
        self.query_one(TimelineHeader).bind(self.view)
        self.query_one(TimelineView).bind(self.view, self.config.date_format)
        self._refresh_ui()
        self.query_one(TimelineView).focus()

    def on_unmount(self) -> None:
        if self._owns_lock:
            release_lock(self.project_dir)

    def _notify_user(self, message: str, severity: str) -> None:
        self.notify(message, severity=severity)  # type: ignore[arg-type]

    # ── UI Refresh ──

    def _selected_row(self, rows: list[ScheduleRow]) -> ScheduleRow | None:
        if self.view is None or self.view.selected_id is None:
            return None
        for row in rows:
            if row.lot.id == self.view.selected_id:
                return row
        return None

    def _refresh_ui(self) -> None:
        view = self.view
        if view is None:
            return
        # the timeline lives on the base screen, under any open dialog
        screen = self.screen_stack[0]
        screen.query_one(TimelineToolbar).update_toolbar(
            view.current_month, view.zoom, view.status_filter, view.stats()
        )
        screen.query_one(TimelineHeader).refresh()
        timeline = screen.query_one(TimelineView)
        timeline.reload()
        screen.query_one(QuickAddBar).load(view.quick_add.draft)
        screen.query_one(LotDetail).show_row(self._selected_row(timeline.rows), self.config.date_format)

    # ── Store commands ──

    def _run_store_command(self, command: Awaitable[object]) -> None:
        """Run a store command off the event handler, redrawing once it settles."""

        async def _run() -> None:
            try:
                await command
            except Exception as e:
                logger.exception("store command failed")
                self.notify(f"Unexpected store error: {e}", severity="error")
            finally:
                if self.is_running:
                    self._refresh_ui()

        self.run_worker(_run(), group="store", exit_on_error=False)

    # ── Widget messages ──

    def on_timeline_toolbar_navigate_requested(self, event: TimelineToolbar.NavigateRequested) -> None:
        actions = {"prev": self.action_prev_month, "next": self.action_next_month, "today": self.action_today}
        actions[event.direction]()

    def on_timeline_toolbar_zoom_changed(self, event: TimelineToolbar.ZoomChanged) -> None:
        self.action_zoom(event.zoom.value)

    def on_timeline_toolbar_filter_cycled(self, event: TimelineToolbar.FilterCycled) -> None:
        self.action_cycle_filter()

    def on_timeline_view_lot_selected(self, event: TimelineView.LotSelected) -> None:
        if self.view is not None:
            self.view.select(event.lot_id)
            self._refresh_ui()

    def on_timeline_view_gesture_released(self, event: TimelineView.GestureReleased) -> None:
        if self.view is not None:
            self._run_store_command(self.view.commit_update(event.update))
            self._refresh_ui()

    def on_timeline_view_quick_add_opened(self, event: TimelineView.QuickAddOpened) -> None:
        self._show_quick_add()

    def on_timeline_view_scroll_x_changed(self, event: TimelineView.ScrollXChanged) -> None:
        header = self.query_one(TimelineHeader)
        header.scroll_x_offset = int(event.scroll_x)
        header.refresh()

    def on_input_changed(self, event: Input.Changed) -> None:
        if self.view is None or not self.view.quick_add.is_open:
            return
        quick_add = self.view.quick_add
        if event.input.id == "qa-name":
            quick_add.set_name(event.value)
        elif event.input.id in ("qa-start", "qa-end"):
            value = parse_date(event.value)
            if value is None:
                return
            if event.input.id == "qa-start":
                quick_add.set_start_date(value)
            else:
                quick_add.set_end_date(value)
        else:
            return
        self.query_one(QuickAddBar).load(quick_add.draft)
        self.query_one(TimelineView).refresh()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id in ("qa-name", "qa-start", "qa-end"):
            self._submit_quick_add()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "qa-submit":
            self._submit_quick_add()
        elif event.button.id == "qa-cancel":
            self.action_cancel()

    # ── Quick add ──

    def _show_quick_add(self) -> None:
        if self.view is None:
            return
        self._refresh_ui()
        self.query_one("#qa-name", Input).focus()

    def _submit_quick_add(self) -> None:
        if self.view is None:
            return
        request = self.view.submit_quick_add()
        if request is None:
            return
        self._run_store_command(self.view.commit_quick_add(request))
        self._refresh_ui()
        self.query_one(TimelineView).focus()

    # ── Actions ──

    def action_quit_app(self) -> None:
        if self._owns_lock:
            release_lock(self.project_dir)
            self._owns_lock = False
        self.exit()

    def action_prev_month(self) -> None:
        if self.view is not None:
            self.view.prev_month()
            self._refresh_ui()

    def action_next_month(self) -> None:
        if self.view is not None:
            self.view.next_month()
            self._refresh_ui()

    def action_today(self) -> None:
        if self.view is not None:
            self.view.go_to_today()
            self._refresh_ui()

    def action_zoom(self, zoom: str) -> None:
        if self.view is not None:
            self.view.set_zoom(ZoomLevel.parse(zoom))
            self._refresh_ui()

    def action_cycle_filter(self) -> None:
        if self.view is None:
            return
        status = self.view.cycle_status_filter()
        label = STATUS_LABELS[status] if status else "All lots"
        self.notify(f"Filter: {label}", severity="information")
        self._refresh_ui()

    def action_add_lot(self) -> None:
        if self.view is None:
            return
        self.view.open_quick_add()
        self._show_quick_add()

    def action_cancel(self) -> None:
        if self.view is None:
            return
        if self.view.handle_key("escape"):
            self._refresh_ui()
            self.query_one(TimelineView).focus()

    def action_delete_lot(self) -> None:
        if self.view is None:
            return
        lot = self.view.selected_lot
        if lot is None:
            self.notify("Select a lot first", severity="warning")
            return

        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed and self.view is not None:
                self._run_store_command(self.view.delete_lot(lot.id))

        self.push_screen(ConfirmScreen(lot, self.config.date_format), callback=_on_confirm)

    def action_toggle_theme(self) -> None:
        self.theme = "textual-light" if self.theme == "textual-dark" else "textual-dark"
        self._refresh_ui()
