"""Core data types shared by the store, the layout engine and the views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

VALID_VIEW_TYPES = {"day", "week", "month"}

# Reserved id of the synthetic drag-preview event. Real events must never use it.
PREVIEW_EVENT_ID = "__preview__"


@dataclass
class CalendarEvent:
    """A single calendar entry."""

    id: str
    title: str
    start: datetime
    end: datetime  # exclusive
    description: str = ""
    all_day: bool = False
    color: str | None = None
    location: str = ""
    attendees: list[str] = field(default_factory=list)

    @property
    def duration(self):
        return self.end - self.start


@dataclass(frozen=True)
class DropPreviewEvent:
    """Time range an in-progress drag would occupy if dropped now."""

    start: datetime
    end: datetime


@dataclass
class EventPosition:
    """Horizontal placement of one event inside its day column.

    ``left`` and ``width`` are percentages of the day container.
    """

    event: CalendarEvent
    column: int
    total_columns: int
    left: float
    width: float
