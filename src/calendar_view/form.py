"""Event dialog form binding and validation."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .config import DEFAULT_COLORS
from .errors import EventValidationError
from .models import PREVIEW_EVENT_ID, CalendarEvent

DEFAULT_COLOR = DEFAULT_COLORS[0]


def generate_event_id() -> str:
    """Time-ordered, collision-resistant id for newly created events."""
    return f"{time.time_ns():x}{secrets.token_hex(4)}"


@dataclass
class EventForm:
    """Field values of the event dialog; dates are ``YYYY-MM-DD``, times ``HH:MM``.

    Blank attendee entries are dropped when the event is built.
    """

    title: str = ""
    description: str = ""
    start_date: str = ""
    start_time: str = ""
    end_date: str = ""
    end_time: str = ""
    all_day: bool = False
    color: str = DEFAULT_COLOR
    location: str = ""
    attendees: list[str] = field(default_factory=list)

    @classmethod
    def for_event(cls, event: CalendarEvent) -> EventForm:
        """Edit mode: pre-fill from an existing event."""
        return cls(
            title=event.title,
            description=event.description or "",
            start_date=f"{event.start:%Y-%m-%d}",
            start_time=f"{event.start:%H:%M}",
            end_date=f"{event.end:%Y-%m-%d}",
            end_time=f"{event.end:%H:%M}",
            all_day=event.all_day,
            color=event.color or DEFAULT_COLOR,
            location=event.location or "",
            attendees=list(event.attendees),
        )

    @classmethod
    def for_new(cls, default_date: datetime) -> EventForm:
        """Create mode: a one-hour event starting at ``default_date``."""
        end = default_date + timedelta(hours=1)
        return cls(
            start_date=f"{default_date:%Y-%m-%d}",
            start_time=f"{default_date:%H:%M}",
            end_date=f"{end:%Y-%m-%d}",
            end_time=f"{end:%H:%M}",
        )

    def _parse(self, date_str: str, time_str: str, which: str) -> datetime:
        try:
            value = datetime.strptime(date_str, "%Y-%m-%d")
        except ValueError:
            raise EventValidationError(f"Invalid {which} date: {date_str!r}") from None

        if self.all_day or not time_str:
            return value
        try:
            parsed = datetime.strptime(time_str, "%H:%M")
        except ValueError:
            raise EventValidationError(f"Invalid {which} time: {time_str!r}") from None
        return value.replace(hour=parsed.hour, minute=parsed.minute)

    def to_event(self, event_id: str | None = None) -> CalendarEvent:
        """Validate the form and build the event it describes.

        Raises:
            EventValidationError: empty title, unparsable date/time,
                end before start, or the reserved preview id.
        """
        title = self.title.strip()
        if not title:
            raise EventValidationError("Title is required")
        if event_id == PREVIEW_EVENT_ID:
            raise EventValidationError(f"Event id '{PREVIEW_EVENT_ID}' is reserved")

        start = self._parse(self.start_date, self.start_time, "start")
        end = self._parse(self.end_date, self.end_time, "end")
        if end < start:
            raise EventValidationError("End time must be after start time")

        all_day = self.all_day
        if not all_day and start.date() != end.date():
            # Timed events spanning several days become all-day events
            all_day = True
            start = start.replace(hour=0, minute=0, second=0)
            end = end.replace(hour=23, minute=59, second=59)

        return CalendarEvent(
            id=event_id or generate_event_id(),
            title=title,
            description=self.description.strip(),
            start=start,
            end=end,
            all_day=all_day,
            color=self.color,
            location=self.location.strip(),
            attendees=[a.strip() for a in self.attendees if a.strip()],
        )
