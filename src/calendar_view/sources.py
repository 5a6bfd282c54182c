"""Event sources the store loads visible ranges from."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from .config import DEFAULT_COLORS
from .dates import start_of_day
from .models import CalendarEvent

logger = logging.getLogger("calendar-view")


@runtime_checkable
class EventSource(Protocol):
    """Protocol that all event sources must satisfy."""

    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]: ...


class StaticEventSource:
    """Serves a fixed list of events, filtered to the requested range."""

    def __init__(self, events: Iterable[CalendarEvent] = ()):
        self._events = list(events)

    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        return [e for e in self._events if e.start <= end and e.end >= start]


class DemoEventSource:
    """Generates plausible weekday meetings for any requested range."""

    def __init__(self, colors: list[str] | None = None, seed: int | None = None):
        self._colors = colors or list(DEFAULT_COLORS)
        self._rng = random.Random(seed)

    def generate(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        rng = self._rng
        first_day = start_of_day(start)
        days = max(0, (end - first_day).days + 1)
        per_day = 2 + rng.randrange(3)

        events: list[CalendarEvent] = []
        for day in range(days):
            date = first_day + timedelta(days=day)
            for i in range(per_day):
                ev_start = date.replace(hour=9 + rng.randrange(8), minute=rng.choice((0, 30)))
                ev_end = ev_start + timedelta(hours=1 + rng.randrange(3))

                # Keep only ~30% of weekend meetings
                if ev_start.weekday() >= 5 and rng.random() > 0.3:
                    continue

                events.append(CalendarEvent(
                    id=f"event-{int(ev_start.timestamp())}-{i}",
                    title=f"Meeting {day * per_day + i + 1}",
                    description=f"Description for meeting on {ev_start:%Y-%m-%d}",
                    start=ev_start,
                    end=ev_end,
                    color=rng.choice(self._colors),
                    all_day=rng.random() > 0.85,
                ))
        return events

    async def list_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        events = self.generate(start, end)
        logger.debug("Generated %d demo event(s)", len(events))
        return events
