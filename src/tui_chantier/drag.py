"""Pointer drag/resize state machine for timeline bars."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Union

from tui_chantier.models import Lot
from tui_chantier.timeline import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_HANDLE_WIDTH = 8


class DragKind(Enum):
    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


@dataclass(frozen=True)
class DragState:
    """Snapshot taken on pointer-down. Never mutated during the gesture."""

    lot_id: str
    kind: DragKind
    anchor_x: float
    original_start: date
    original_end: date


@dataclass(frozen=True)
class Overlay:
    """Provisional dates shown while a gesture is in flight."""

    start_date: date
    end_date: date


@dataclass(frozen=True)
class LotDateUpdate:
    """Dates to commit for one completed gesture."""

    lot_id: str
    start_date: date
    end_date: date

    def fields(self) -> dict[str, date]:
        return {"start_date": self.start_date, "end_date": self.end_date}


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    drag: DragState
    delta_days: int = 0
    overlay: Overlay | None = None


DragPhase = Union[Idle, Dragging]


def hit_zone(pointer_x: float, bar_left: float, bar_right: float, handle_width: int) -> DragKind:
    """Classify a press on a bar spanning ``[bar_left, bar_right)``.

    Presses within *handle_width* of an edge resize that edge; anything else
    moves the bar. Handles shrink on narrow bars so at least one cell of body
    is left to grab, and bars under three cells wide only move.
    """
    handle_width = min(handle_width, int(bar_right - bar_left - 1) // 2)
    if handle_width <= 0:
        return DragKind.MOVE
    if pointer_x < bar_left + handle_width:
        return DragKind.RESIZE_START
    if pointer_x >= bar_right - handle_width:
        return DragKind.RESIZE_END
    return DragKind.MOVE


def compute_overlay(drag: DragState, delta_days: int) -> Overlay:
    """Candidate dates for *drag* shifted by *delta_days*. Resizes never invert."""
    start, end = drag.original_start, drag.original_end
    shift = timedelta(days=delta_days)
    if drag.kind is DragKind.MOVE:
        return Overlay(start + shift, end + shift)
    if drag.kind is DragKind.RESIZE_START:
        return Overlay(min(start + shift, end), end)
    return Overlay(start, max(end + shift, start))


class DragController:
    """Tracks at most one in-flight gesture and its provisional overlay.

    ``press`` -> ``move``* -> ``release`` commits; ``leave`` discards.
    """

    def __init__(
        self,
        day_width: int,
        handle_width: int = DEFAULT_HANDLE_WIDTH,
        first_gesture_wins: bool = True,
    ) -> None:
        self.day_width = day_width
        self.handle_width = handle_width
        self.first_gesture_wins = first_gesture_wins
        self._phase: DragPhase = Idle()

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def is_dragging(self) -> bool:
        return isinstance(self._phase, Dragging)

    @property
    def active_lot_id(self) -> str | None:
        if isinstance(self._phase, Dragging):
            return self._phase.drag.lot_id
        return None

    def overlay_for(self, lot_id: str) -> Overlay | None:
        phase = self._phase
        if isinstance(phase, Dragging) and phase.drag.lot_id == lot_id:
            return phase.overlay
        return None

    def press(self, lot: Lot, pointer_x: float, kind: DragKind) -> bool:
        """Start a gesture on *lot*. Returns False when the press is ignored."""
        if not lot.has_dates:
            return False
        if isinstance(self._phase, Dragging):
            if self.first_gesture_wins:
                logger.debug("ignoring press on %s: gesture on %s in flight",
                             lot.id, self._phase.drag.lot_id)
                return False
            logger.debug("discarding gesture on %s for %s", self._phase.drag.lot_id, lot.id)
        self._phase = Dragging(
            DragState(
                lot_id=lot.id,
                kind=kind,
                anchor_x=pointer_x,
                original_start=lot.start_date,
                original_end=lot.end_date,
            )
        )
        return True

    def press_bar(self, lot: Lot, pointer_x: float, bar_left: float, bar_right: float) -> bool:
        """Start a gesture, choosing move/resize from where the bar was hit."""
        return self.press(lot, pointer_x, hit_zone(pointer_x, bar_left, bar_right, self.handle_width))

    def move(self, pointer_x: float) -> bool:
        """Recompute the overlay. Returns True when the overlay changed."""
        phase = self._phase
        if not isinstance(phase, Dragging):
            return False
        delta = round_half_up((pointer_x - phase.drag.anchor_x) / self.day_width)
        if delta == 0 or delta == phase.delta_days:
            return False
        self._phase = Dragging(phase.drag, delta, compute_overlay(phase.drag, delta))
        return True

    def release(self) -> LotDateUpdate | None:
        """End the gesture. Returns the update to commit, if the bar moved."""
        phase = self._phase
        self._phase = Idle()
        if not isinstance(phase, Dragging) or phase.overlay is None:
            return None
        return LotDateUpdate(phase.drag.lot_id, phase.overlay.start_date, phase.overlay.end_date)

    def leave(self) -> bool:
        """Abandon the gesture without committing. Returns True if one was active."""
        was_dragging = isinstance(self._phase, Dragging)
        self._phase = Idle()
        return was_dragging
