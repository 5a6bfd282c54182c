"""calendar-view — day/week/month calendar model with an overlap layout engine."""

from .layout import (
    calculate_event_positions,
    calculate_event_positions_with_preview,
    calculate_group_positions,
    events_overlap,
    group_overlapping_events,
)
from .models import PREVIEW_EVENT_ID, CalendarEvent, DropPreviewEvent, EventPosition

__all__ = [
    "PREVIEW_EVENT_ID",
    "CalendarEvent",
    "DropPreviewEvent",
    "EventPosition",
    "calculate_event_positions",
    "calculate_event_positions_with_preview",
    "calculate_group_positions",
    "events_overlap",
    "group_overlapping_events",
]
