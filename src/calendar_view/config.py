"""YAML configuration loading for the calendar view."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from .models import VALID_VIEW_TYPES

logger = logging.getLogger("calendar-view")

CONFIG_PATH = os.environ.get("CALENDAR_VIEW_CONFIG", "/config/calendar_view.yaml")

DEFAULT_COLORS = [
    "#1a73e8",  # Blue
    "#34a853",  # Green
    "#fbbc04",  # Yellow
    "#ea4335",  # Red
    "#9c27b0",  # Purple
    "#ff6f00",  # Orange
    "#0097a7",  # Teal
    "#795548",  # Brown
]


@dataclass
class CalendarSettings:
    """Runtime settings for the store, the views and the demo data."""

    latency_ms: int = 300
    default_view: str = "week"
    hour_height: int = 60  # px per hour row
    snap_minutes: int = 15
    event_gap: float = 1.0  # percent trimmed from each event box
    default_color: str = "#1a73e8"
    colors: list[str] = field(default_factory=lambda: list(DEFAULT_COLORS))
    demo_events: bool = True
    demo_seed: int | None = None

    @property
    def latency(self) -> float:
        """Simulated latency in seconds."""
        return self.latency_ms / 1000


_KNOWN_KEYS = set(CalendarSettings.__dataclass_fields__)


def _positive_int(raw: dict[str, Any], key: str, default: int, allow_zero: bool = False) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"'{key}' must be {'>= 0' if allow_zero else '> 0'}, got {value}")
    return value


def load_config() -> CalendarSettings:
    """Load and validate calendar_view.yaml.

    Missing file or empty document yields default settings.
    """
    path = CONFIG_PATH
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return CalendarSettings()

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not raw:
        return CalendarSettings()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown config key(s): {sorted(unknown)}")

    defaults = CalendarSettings()

    latency_ms = _positive_int(raw, "latency_ms", defaults.latency_ms, allow_zero=True)
    hour_height = _positive_int(raw, "hour_height", defaults.hour_height)

    snap_minutes = _positive_int(raw, "snap_minutes", defaults.snap_minutes)
    if 60 % snap_minutes:
        raise ValueError(f"'snap_minutes' must divide 60, got {snap_minutes}")

    default_view = str(raw.get("default_view", defaults.default_view)).strip().lower()
    if default_view not in VALID_VIEW_TYPES:
        raise ValueError(
            f"Invalid default_view '{default_view}'. Must be one of: {VALID_VIEW_TYPES}"
        )

    event_gap = raw.get("event_gap", defaults.event_gap)
    if isinstance(event_gap, bool) or not isinstance(event_gap, (int, float)) or not 0 <= event_gap < 100:
        raise ValueError(f"'event_gap' must be a number in [0, 100), got {event_gap!r}")

    colors = raw.get("colors", defaults.colors)
    if not isinstance(colors, list) or not colors or not all(isinstance(c, str) for c in colors):
        raise ValueError("'colors' must be a non-empty list of strings")

    raw_seed = raw.get("demo_seed")
    demo_seed = int(raw_seed) if raw_seed is not None else None

    settings = CalendarSettings(
        latency_ms=latency_ms,
        default_view=default_view,
        hour_height=hour_height,
        snap_minutes=snap_minutes,
        event_gap=float(event_gap),
        default_color=str(raw.get("default_color", defaults.default_color)),
        colors=colors,
        demo_events=bool(raw.get("demo_events", defaults.demo_events)),
        demo_seed=demo_seed,
    )
    if settings.latency_ms == 0:
        logger.warning("latency_ms is 0: store operations resolve without simulated delay")
    return settings
