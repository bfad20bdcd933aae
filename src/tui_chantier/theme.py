"""YAML-based centralized color system for TUI Chantier.

Loads colors from default_theme.yaml and optionally merges
project-level overrides from {project_dir}/.tui-chantier/theme.yaml.
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path
from typing import NamedTuple

import yaml

from tui_chantier.models import LotStatus

logger = logging.getLogger(__name__)

THEME_FILE = "theme.yaml"


class ColorPair(NamedTuple):
    """A pair of colors for dark and light themes."""

    dark: str
    light: str

    def resolve(self, is_dark: bool) -> str:
        return self.dark if is_dark else self.light


# ── Module-level variables (populated by _apply) ──────────────────

STATUS_COLORS: dict[LotStatus, ColorPair]

TIMELINE_HEADER: ColorPair
TIMELINE_TODAY_MARKER: ColorPair
TIMELINE_TODAY_WEEK_BG: ColorPair
TIMELINE_BAND_BG: ColorPair
TIMELINE_BASE_BG: ColorPair
TIMELINE_HIGHLIGHT_BG: ColorPair
TIMELINE_WEEKEND_BG: ColorPair
TIMELINE_BAR_TEXT: ColorPair
TIMELINE_DRAG_HANDLE: ColorPair
TIMELINE_PENDING_BAR: ColorPair
TIMELINE_DELAYED_RING: ColorPair
TIMELINE_PLACEHOLDER: ColorPair
TIMELINE_QUICK_ADD_BG: ColorPair

DELAYED_BADGE: ColorPair
FILTER_BADGE: ColorPair


# ── Internal helpers ──────────────────────────────────────────────

def _load_yaml(path: Path) -> dict:
    """Load a YAML file and return a dict (empty dict on error)."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("could not load theme %s: %s", path, e)
        return {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (returns a new dict)."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _pair(d: object) -> ColorPair:
    """Convert a {dark: ..., light: ...} dict to a ColorPair."""
    if not isinstance(d, dict):
        d = {}
    return ColorPair(str(d.get("dark", "white")), str(d.get("light", "black")))


def _apply(data: dict) -> None:
    """Map parsed YAML data onto module-level constants."""
    mod = sys.modules[__name__]

    status = data.get("status", {})
    mod.STATUS_COLORS = {s: _pair(status.get(s.value, {})) for s in LotStatus}

    timeline = data.get("timeline", {})
    mod.TIMELINE_HEADER = _pair(timeline.get("header"))
    mod.TIMELINE_TODAY_MARKER = _pair(timeline.get("today_marker"))
    mod.TIMELINE_TODAY_WEEK_BG = _pair(timeline.get("today_week_bg"))
    mod.TIMELINE_BAND_BG = _pair(timeline.get("band_bg"))
    mod.TIMELINE_BASE_BG = _pair(timeline.get("base_bg"))
    mod.TIMELINE_HIGHLIGHT_BG = _pair(timeline.get("highlight_bg"))
    mod.TIMELINE_WEEKEND_BG = _pair(timeline.get("weekend_bg"))
    mod.TIMELINE_BAR_TEXT = _pair(timeline.get("bar_text"))
    mod.TIMELINE_DRAG_HANDLE = _pair(timeline.get("drag_handle"))
    mod.TIMELINE_PENDING_BAR = _pair(timeline.get("pending_bar"))
    mod.TIMELINE_DELAYED_RING = _pair(timeline.get("delayed_ring"))
    mod.TIMELINE_PLACEHOLDER = _pair(timeline.get("placeholder"))
    mod.TIMELINE_QUICK_ADD_BG = _pair(timeline.get("quick_add_bg"))

    ui = data.get("ui", {})
    mod.DELAYED_BADGE = _pair(ui.get("delayed_badge"))
    mod.FILTER_BADGE = _pair(ui.get("filter_badge"))


# ── Public API ────────────────────────────────────────────────────

def lot_color(status: LotStatus, override: str | None, is_dark: bool) -> str:
    """Bar color of a lot: its own color if set, else its status color."""
    if override:
        return override
    return STATUS_COLORS[status].resolve(is_dark)


def init_theme(project_dir: Path) -> Path:
    """Copy default_theme.yaml → {project_dir}/.tui-chantier/theme.yaml.

    Raises FileExistsError if the destination already exists.
    """
    dest = project_dir / ".tui-chantier" / THEME_FILE
    if dest.exists():
        raise FileExistsError(str(dest))
    dest.parent.mkdir(parents=True, exist_ok=True)
    src = Path(__file__).parent / "default_theme.yaml"
    shutil.copy2(src, dest)
    return dest


def load_theme(project_dir: Path | None = None) -> None:
    """Load the default theme and optionally merge project overrides."""
    default_path = Path(__file__).parent / "default_theme.yaml"
    data = _load_yaml(default_path)

    if project_dir is not None:
        override_path = project_dir / ".tui-chantier" / THEME_FILE
        if override_path.is_file():
            override = _load_yaml(override_path)
            if override:
                data = _deep_merge(data, override)

    _apply(data)


# Apply default theme on module import
load_theme()
