"""Inline "create a lot by clicking the timeline" flow."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta

DEFAULT_DURATION_DAYS = 14


class QuickAddError(ValueError):
    """Raised when a draft is submitted before it is complete."""


@dataclass(frozen=True)
class QuickAddDraft:
    visible: bool = False
    name: str = ""
    start_date: date | None = None
    end_date: date | None = None
    lot_id: str | None = None  # set when placing an existing undated lot


@dataclass(frozen=True)
class QuickAddRequest:
    """A validated draft: name is stripped and start_date <= end_date."""

    name: str
    start_date: date
    end_date: date
    lot_id: str | None = None


_CLOSED = QuickAddDraft()


def _ordered(start: date | None, end: date | None) -> tuple[date | None, date | None]:
    if start is not None and end is not None and end < start:
        return end, start
    return start, end


class QuickAddController:
    """Owns the single quick-add draft."""

    def __init__(self, default_duration_days: int = DEFAULT_DURATION_DAYS) -> None:
        self.default_duration_days = default_duration_days
        self._draft: QuickAddDraft = _CLOSED

    @property
    def draft(self) -> QuickAddDraft:
        return self._draft

    @property
    def is_open(self) -> bool:
        return self._draft.visible

    def open(self, at_date: date, name: str = "", lot_id: str | None = None) -> QuickAddDraft:
        """Open a fresh draft at *at_date*, replacing any draft already open."""
        self._draft = QuickAddDraft(
            visible=True,
            name=name,
            start_date=at_date,
            end_date=at_date + timedelta(days=self.default_duration_days),
            lot_id=lot_id,
        )
        return self._draft

    def set_name(self, name: str) -> None:
        if self._draft.visible:
            self._draft = replace(self._draft, name=name)

    def set_start_date(self, value: date | None) -> None:
        if self._draft.visible:
            start, end = _ordered(value, self._draft.end_date)
            self._draft = replace(self._draft, start_date=start, end_date=end)

    def set_end_date(self, value: date | None) -> None:
        if self._draft.visible:
            start, end = _ordered(self._draft.start_date, value)
            self._draft = replace(self._draft, start_date=start, end_date=end)

    @property
    def can_submit(self) -> bool:
        d = self._draft
        return (
            d.visible
            and bool(d.name.strip())
            and d.start_date is not None
            and d.end_date is not None
        )

    def submit(self) -> QuickAddRequest:
        """Close the draft and return what to persist.

        Raises QuickAddError when the draft has no name or a missing date.
        """
        if not self._draft.visible:
            raise QuickAddError("no quick-add draft is open")
        if not self.can_submit:
            raise QuickAddError("a name and both dates are required")
        d = self._draft
        start, end = _ordered(d.start_date, d.end_date)
        self._draft = _CLOSED
        return QuickAddRequest(d.name.strip(), start, end, d.lot_id)

    def cancel(self) -> bool:
        was_open = self._draft.visible
        self._draft = _CLOSED
        return was_open
