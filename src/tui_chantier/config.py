"""Project configuration management using tomlkit."""

from __future__ import annotations

import logging
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

from tui_chantier.models import (
    DATE_FORMAT_PRESETS,
    DEFAULT_DATE_FORMAT,
    ProjectConfig,
    TimelineConfig,
)
from tui_chantier.timeline import ZOOM_KEYS, ZoomLevel

logger = logging.getLogger(__name__)

CONFIG_DIR = ".tui-chantier"
CONFIG_FILE = "config.toml"

MAX_DAY_WIDTH = 12
MAX_QUICK_ADD_DAYS = 365


def _get_config_path(project_dir: Path) -> Path:
    return project_dir / CONFIG_DIR / CONFIG_FILE


def _clamp(value: object, low: int, high: int, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


def load_config(project_dir: Path) -> ProjectConfig:
    """Load project configuration from .tui-chantier/config.toml."""
    config_path = _get_config_path(project_dir)
    config = ProjectConfig()

    if not config_path.exists():
        return config

    try:
        content = config_path.read_text(encoding="utf-8")
        doc = tomlkit.parse(content)
    except (OSError, TOMLKitError) as e:
        logger.warning("ignoring unreadable %s: %s", config_path, e)
        return config

    # [project]
    project_section = doc.get("project", {})
    config.name = str(project_section.get("name", ""))
    config.theme_name = str(project_section.get("theme_name", "default_dark"))
    if "date_format" in project_section:
        raw_fmt = str(project_section.get("date_format", DEFAULT_DATE_FORMAT))
        config.date_format = raw_fmt if raw_fmt in DATE_FORMAT_PRESETS else DEFAULT_DATE_FORMAT

    # [timeline]
    timeline_section = doc.get("timeline", {})
    config.timeline = _parse_timeline(timeline_section)
    return config


def _parse_timeline(data: dict) -> TimelineConfig:
    timeline = TimelineConfig()
    timeline.zoom = ZoomLevel.parse(data.get("zoom", timeline.zoom)).value
    timeline.quick_add_days = _clamp(
        data.get("quick_add_days"), 1, MAX_QUICK_ADD_DAYS, timeline.quick_add_days
    )
    timeline.resize_handle_width = _clamp(
        data.get("resize_handle_width"), 1, MAX_DAY_WIDTH, timeline.resize_handle_width
    )

    widths = data.get("day_width")
    if isinstance(widths, dict):
        for key in ZOOM_KEYS:
            if key in widths:
                timeline.day_width[key] = _clamp(
                    widths[key], 1, MAX_DAY_WIDTH, timeline.day_width[key]
                )
    return timeline


def save_config(project_dir: Path, config: ProjectConfig) -> None:
    """Save project configuration to .tui-chantier/config.toml."""
    config_path = _get_config_path(project_dir)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    doc = tomlkit.document()

    project_table = tomlkit.table()
    project_table.add("name", config.name)
    project_table.add("theme_name", config.theme_name)
    project_table.add("date_format", config.date_format)
    doc.add("project", project_table)

    timeline_table = tomlkit.table()
    timeline_table.add("zoom", config.timeline.zoom)
    timeline_table.add("quick_add_days", config.timeline.quick_add_days)
    timeline_table.add("resize_handle_width", config.timeline.resize_handle_width)
    widths_table = tomlkit.table()
    for key in ZOOM_KEYS:
        widths_table.add(key, config.timeline.day_width[key])
    timeline_table.add("day_width", widths_table)
    doc.add("timeline", timeline_table)

    config_path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def day_widths(config: ProjectConfig) -> dict[ZoomLevel, int]:
    """Per-zoom day widths keyed by ZoomLevel."""
    return {ZoomLevel(key): width for key, width in config.timeline.day_width.items()}
