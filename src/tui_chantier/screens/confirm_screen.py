"""Confirmation dialog shown before a lot is deleted."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static

from tui_chantier.models import DEFAULT_DATE_FORMAT, STATUS_LABELS, Lot, format_date


class ConfirmScreen(ModalScreen[bool]):
    """Ask before deleting ``lot``. Dismisses with True when the user agrees."""

    BINDINGS = [
        ("escape", "cancel", "Keep"),
        ("n", "cancel", "Keep"),
        ("y", "confirm", "Delete"),
    ]

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }
    #delete-dialog {
        width: 60;
        height: auto;
        background: $surface;
        border: thick $error;
        padding: 1 2;
    }
    #delete-title {
        text-style: bold;
    }
    #delete-summary {
        color: $text-muted;
        margin-bottom: 1;
    }
    #delete-actions {
        align: center middle;
        height: 3;
    }
    #delete-actions Button {
        margin: 0 1;
    }
    """

    def __init__(self, lot: Lot, date_format: str = DEFAULT_DATE_FORMAT) -> None:
        super().__init__()
        self.lot = lot
        self.date_format = date_format

    def _summary(self) -> Text:
        if self.lot.has_dates:
            span = (
                f"{format_date(self.lot.start_date, self.date_format)} → "
                f"{format_date(self.lot.end_date, self.date_format)}"
            )
        else:
            span = "no dates"
        return Text(f"{span} · {STATUS_LABELS[self.lot.status]}")

    def compose(self) -> ComposeResult:
        with Vertical(id="delete-dialog"):
            yield Label(Text(f"Delete lot '{self.lot.name}'?"), id="delete-title")
            yield Static(self._summary(), id="delete-summary")
            with Horizontal(id="delete-actions"):
                yield Button("Delete", variant="error", id="delete-yes")
                yield Button("Keep", variant="primary", id="delete-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "delete-yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
