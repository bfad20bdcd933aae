"""Data models for TUI Chantier."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any


class LotStatus(Enum):
    """Lot status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"

    @classmethod
    def parse(cls, value: Any) -> LotStatus:
        """Parse a stored status value. Unknown values fall back to PENDING."""
        if isinstance(value, LotStatus):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


STATUS_LABELS = {
    LotStatus.PENDING: "Pending",
    LotStatus.IN_PROGRESS: "In progress",
    LotStatus.COMPLETED: "Completed",
    LotStatus.DELAYED: "Delayed",
}

STATUS_ORDER: tuple[LotStatus, ...] = (
    LotStatus.PENDING,
    LotStatus.IN_PROGRESS,
    LotStatus.COMPLETED,
    LotStatus.DELAYED,
)

DATE_FORMAT_PRESETS: dict[str, str] = {
    "YYYY-MM-DD": "%Y-%m-%d",
    "DD/MM/YYYY": "%d/%m/%Y",
    "MM/DD/YYYY": "%m/%d/%Y",
    "DD.MM.YYYY": "%d.%m.%Y",
    "D MMM": "%-d %b",
    "MM-DD": "%m-%d",
}
DEFAULT_DATE_FORMAT = "YYYY-MM-DD"


def format_date(d: date | None, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Format a date for display. Returns empty string for None."""
    if d is None:
        return ""
    fmt = DATE_FORMAT_PRESETS.get(date_format)
    if fmt is None:
        return d.isoformat()
    if fmt.startswith("%-d"):
        # %-d is not portable
        return f"{d.day} {d.strftime('%b')}"
    return d.strftime(fmt)


def parse_date(value: Any) -> date | None:
    """Coerce a stored date value to a date. Empty or invalid values give None."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def new_lot_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Company:
    """A contractor a lot can be assigned to. Lookup only."""

    id: str
    name: str


@dataclass(frozen=True)
class Lot:
    """A schedulable work package. Immutable, use dataclasses.replace() to edit."""

    name: str
    id: str = field(default_factory=new_lot_id)
    start_date: date | None = None
    end_date: date | None = None
    status: LotStatus = LotStatus.PENDING
    color: str | None = None
    sort_order: int = 0
    company_id: str | None = None
    budget: float | None = None

    @property
    def has_dates(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def duration_days(self) -> int | None:
        """Inclusive length in days, or None when undated."""
        if not self.has_dates:
            return None
        return (self.end_date - self.start_date).days + 1

    def with_dates(self, start_date: date | None, end_date: date | None) -> Lot:
        return replace(self, start_date=start_date, end_date=end_date)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain values (ISO dates, status string)."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status.value,
            "sort_order": self.sort_order,
        }
        if self.color:
            data["color"] = self.color
        if self.company_id:
            data["company_id"] = self.company_id
        if self.budget is not None:
            data["budget"] = self.budget
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lot:
        """Build a lot from stored values. Raises ValueError without a name."""
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("lot has no name")
        budget = data.get("budget")
        return cls(
            name=name,
            id=str(data.get("id") or new_lot_id()),
            start_date=parse_date(data.get("start_date")),
            end_date=parse_date(data.get("end_date")),
            status=LotStatus.parse(data.get("status")),
            color=str(data["color"]) if data.get("color") else None,
            sort_order=int(data.get("sort_order") or 0),
            company_id=str(data["company_id"]) if data.get("company_id") else None,
            budget=float(budget) if budget is not None else None,
        )


@dataclass(frozen=True)
class ScheduleStats:
    """Summary counts over the whole (unfiltered) schedule."""

    total: int = 0
    with_dates: int = 0
    completed: int = 0
    in_progress: int = 0
    delayed: int = 0
    by_status: dict[LotStatus, int] = field(default_factory=dict)

    @property
    def without_dates(self) -> int:
        return self.total - self.with_dates

    def summary(self) -> str:
        parts = [
            f"{self.total} lots",
            f"{self.with_dates} scheduled",
            f"{self.in_progress} in progress",
            f"{self.completed} completed",
        ]
        if self.delayed:
            parts.append(f"{self.delayed} delayed")
        return " | ".join(parts)


@dataclass
class TimelineConfig:
    """Timeline settings stored in the [timeline] table of config.toml."""

    zoom: str = "week"
    quick_add_days: int = 14
    resize_handle_width: int = 1
    day_width: dict[str, int] = field(
        default_factory=lambda: {"day": 4, "week": 2, "month": 1}
    )


@dataclass
class ProjectConfig:
    """Project-level configuration stored in .tui-chantier/config.toml."""

    name: str = ""
    theme_name: str = "default_dark"
    date_format: str = DEFAULT_DATE_FORMAT
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
