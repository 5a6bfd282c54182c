"""Render-ready geometry for day, week and month views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .config import CalendarSettings
from .dates import end_of_day, hour_position, is_same_day, start_of_day, start_of_month, start_of_week
from .layout import LayoutCache, calculate_event_positions_with_preview
from .models import CalendarEvent, DropPreviewEvent, EventPosition
from .store import CalendarStore

MONTH_GRID_DAYS = 42  # 6 weeks
MONTH_CELL_MAX_EVENTS = 3


@dataclass
class EventBox:
    """Absolute box of one event: ``top``/``height`` in px, ``left``/``width`` in percent."""

    event: CalendarEvent
    top: float
    height: float
    left: float
    width: float
    color: str


class DayColumn:
    """Timed and all-day events of one calendar day."""

    def __init__(
        self,
        date: datetime,
        events: list[CalendarEvent],
        settings: CalendarSettings | None = None,
        cache: LayoutCache | None = None,
    ):
        self.date = start_of_day(date)
        self.events = events
        self._settings = settings or CalendarSettings()
        self._cache = cache

    @classmethod
    def from_store(
        cls,
        store: CalendarStore,
        date: datetime,
        settings: CalendarSettings | None = None,
        cache: LayoutCache | None = None,
    ) -> DayColumn:
        events = store.get_events_for_date_range(start_of_day(date), end_of_day(date))
        return cls(date, events, settings, cache)

    @property
    def all_day_events(self) -> list[CalendarEvent]:
        return [e for e in self.events if e.all_day]

    @property
    def timed_events(self) -> list[CalendarEvent]:
        """Timed events occupying part of ``[date, next day)``.

        An event ending exactly at midnight belongs to the previous day only.
        """
        next_day = self.date + timedelta(days=1)
        return [
            e for e in self.events
            if not e.all_day
            and (self.date <= e.start < next_day or e.start < self.date < e.end)
        ]

    def positions(
        self,
        preview: DropPreviewEvent | None = None,
        exclude_id: str | None = None,
    ) -> list[EventPosition]:
        """Lay out timed events, optionally re-flowed around a drop preview.

        ``exclude_id`` leaves out the event being dragged so it does not
        compete with its own preview.
        """
        events = self.timed_events
        if exclude_id is not None:
            events = [e for e in events if e.id != exclude_id]
        return calculate_event_positions_with_preview(events, preview, self._cache)

    def _vertical(self, start: datetime, end: datetime) -> tuple[float, float]:
        hour_height = self._settings.hour_height
        start_hour = hour_position(start) if is_same_day(start, self.date) else 0
        end_hour = hour_position(end) if is_same_day(end, self.date) else 24
        # 2px border between stacked events
        return start_hour * hour_height, max(0.0, (end_hour - start_hour) * hour_height - 2)

    def event_box(self, position: EventPosition) -> EventBox:
        event = position.event
        top, height = self._vertical(event.start, event.end)
        return EventBox(
            event=event,
            top=top,
            height=height,
            left=position.left,
            width=max(0.0, position.width - self._settings.event_gap),
            color=event.color or self._settings.default_color,
        )

    def boxes(
        self,
        preview: DropPreviewEvent | None = None,
        exclude_id: str | None = None,
    ) -> list[EventBox]:
        return [self.event_box(p) for p in self.positions(preview, exclude_id)]


def week_days(date: datetime) -> list[datetime]:
    """The seven days (Sunday first) of the week containing ``date``."""
    first = start_of_week(date)
    return [first + timedelta(days=i) for i in range(7)]


def week_columns(
    store: CalendarStore,
    date: datetime,
    settings: CalendarSettings | None = None,
    cache: LayoutCache | None = None,
) -> list[DayColumn]:
    return [DayColumn.from_store(store, day, settings, cache) for day in week_days(date)]


@dataclass
class MonthDay:
    date: datetime
    is_current_month: bool
    is_today: bool
    events: list[CalendarEvent] = field(default_factory=list)

    @property
    def visible_events(self) -> list[CalendarEvent]:
        return self.events[:MONTH_CELL_MAX_EVENTS]

    @property
    def more_count(self) -> int:
        return max(0, len(self.events) - MONTH_CELL_MAX_EVENTS)


def _touches_day(event: CalendarEvent, day: datetime) -> bool:
    return (
        is_same_day(event.start, day)
        or is_same_day(event.end, day)
        or (event.start <= day and event.end >= day)
    )


def month_grid(
    date: datetime, events: list[CalendarEvent], today: datetime | None = None
) -> list[MonthDay]:
    """42 day cells starting on the Sunday on or before the 1st of the month."""
    today = today or datetime.now()
    first = start_of_week(start_of_month(date))
    cells = []
    for i in range(MONTH_GRID_DAYS):
        day = first + timedelta(days=i)
        cells.append(MonthDay(
            date=day,
            is_current_month=day.month == date.month,
            is_today=is_same_day(day, today),
            events=[e for e in events if _touches_day(e, day)],
        ))
    return cells


def month_weeks(cells: list[MonthDay]) -> list[list[MonthDay]]:
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]
