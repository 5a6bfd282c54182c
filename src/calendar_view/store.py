"""In-memory event store with simulated API latency.

Reads are synchronous against the current event list. Mutations resolve after
the configured latency, like a remote API would, and then replace the list.

Saves are keyed by event id: starting a new save for an id cancels the one
still in flight, so the last *initiated* edit always wins regardless of
completion order. The awaiter of a superseded save gets
``SaveSupersededError``; cancelling the awaiter itself still raises
``CancelledError``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from dateutil.relativedelta import relativedelta

from .dates import end_of_day, end_of_month, end_of_week, start_of_day, start_of_month, start_of_week
from .errors import EventNotFoundError, EventValidationError, SaveSupersededError, SupersededError
from .models import PREVIEW_EVENT_ID, VALID_VIEW_TYPES, CalendarEvent
from .sources import EventSource

logger = logging.getLogger("calendar-view")

T = TypeVar("T")

_UPDATABLE_FIELDS = {f.name for f in dataclasses.fields(CalendarEvent)} - {"id"}

Listener = Callable[[list[CalendarEvent]], None]


class CalendarStore:
    """Authoritative, ordered list of events plus the current view state."""

    def __init__(
        self,
        source: EventSource,
        latency: float = 0.3,
        view_type: str = "week",
        current_date: datetime | None = None,
    ):
        if view_type not in VALID_VIEW_TYPES:
            raise ValueError(f"Unknown view type: {view_type}")
        self._source = source
        self._latency = latency
        self._events: list[CalendarEvent] = []
        self._view_type = view_type
        self._current_date = current_date or datetime.now()
        self._pending: dict[str, asyncio.Task] = {}
        self._refresh_task: asyncio.Task | None = None
        # Tasks cancelled by the store, mapped to the reason given to their awaiter
        self._superseded: dict[asyncio.Task, str] = {}
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def events(self) -> list[CalendarEvent]:
        """Snapshot of the current event list."""
        return list(self._events)

    @property
    def current_date(self) -> datetime:
        return self._current_date

    @property
    def view_type(self) -> str:
        return self._view_type

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new event list after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_events(self, events: list[CalendarEvent]) -> None:
        self._events = events
        for listener in list(self._listeners):
            listener(self.events)

    def visible_date_range(self) -> tuple[datetime, datetime]:
        date = self._current_date
        if self._view_type == "day":
            return start_of_day(date), end_of_day(date)
        if self._view_type == "week":
            return start_of_week(date), end_of_week(date)
        # Month view shows the partial weeks around the month as well
        return start_of_week(start_of_month(date)), end_of_week(end_of_month(date))

    def get_event(self, event_id: str) -> CalendarEvent:
        for event in self._events:
            if event.id == event_id:
                return event
        raise EventNotFoundError(event_id)

    def get_events_for_date_range(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Events starting or ending inside [start, end], or spanning it entirely."""
        return [
            e for e in self._events
            if (start <= e.start <= end)
            or (start <= e.end <= end)
            or (e.start <= start and e.end >= end)
        ]

    async def get_events_for_date_range_async(
        self, start: datetime, end: datetime
    ) -> list[CalendarEvent]:
        await asyncio.sleep(self._latency * 2 / 3)
        return self.get_events_for_date_range(start, end)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_events_for_range(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        logger.info("Loading events for range: %s to %s", start.isoformat(), end.isoformat())
        await asyncio.sleep(self._latency)
        return await self._source.list_events(start, end)

    async def refresh_events(self) -> list[CalendarEvent]:
        """Reload the visible range, replacing the event list.

        A refresh started while another is in flight cancels the older one,
        whose awaiter gets ``SupersededError``.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            self._supersede(self._refresh_task, "Refresh superseded by a newer refresh")

        start, end = self.visible_date_range()
        task = asyncio.ensure_future(self.load_events_for_range(start, end))
        self._refresh_task = task
        try:
            events = await self._await_unless_superseded(task, SupersededError)
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

        self._set_events(list(events))
        logger.info("Loaded %d event(s)", len(events))
        return self.events

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _supersede(self, task: asyncio.Task, reason: str) -> None:
        self._superseded[task] = reason
        task.cancel()

    async def _await_unless_superseded(self, task: asyncio.Task, error: type[SupersededError]):
        """Await ``task``, turning a store-initiated cancellation into ``error``."""
        try:
            return await task
        except asyncio.CancelledError:
            reason = self._superseded.pop(task, None)
            if reason is None:
                raise
            raise error(reason) from None
        finally:
            self._superseded.pop(task, None)

    async def _save(self, event_id: str, apply: Callable[[], T]) -> T:
        previous = self._pending.get(event_id)
        if previous is not None and not previous.done():
            logger.warning("Superseding in-flight save for event %s", event_id)
            self._supersede(previous, f"Save for event {event_id} was superseded by a newer edit")

        async def delayed() -> T:
            await asyncio.sleep(self._latency)
            return apply()

        task = asyncio.ensure_future(delayed())
        self._pending[event_id] = task
        try:
            return await self._await_unless_superseded(task, SaveSupersededError)
        finally:
            if self._pending.get(event_id) is task:
                del self._pending[event_id]

    def has_pending(self, event_id: str) -> bool:
        task = self._pending.get(event_id)
        return task is not None and not task.done()

    def cancel_pending(self, event_id: str) -> bool:
        """Cancel the in-flight save for ``event_id``. Returns True if one was cancelled.

        The awaiter of the cancelled save gets ``SaveSupersededError``.
        """
        task = self._pending.get(event_id)
        if task is None or task.done():
            return False
        self._supersede(task, f"Save for event {event_id} was cancelled")
        logger.info("Cancelled in-flight save for event %s", event_id)
        return True

    async def add_event(self, event: CalendarEvent) -> CalendarEvent:
        if event.id == PREVIEW_EVENT_ID:
            raise EventValidationError(f"Event id '{PREVIEW_EVENT_ID}' is reserved")

        def apply() -> CalendarEvent:
            if any(e.id == event.id for e in self._events):
                raise ValueError(f"Duplicate event id: {event.id}")
            self._set_events([*self._events, event])
            logger.info("Event created: %s (%s)", event.title, event.id)
            return event

        return await self._save(event.id, apply)

    async def update_event(self, event_id: str, **changes: Any) -> CalendarEvent:
        """Apply a partial update. Only the provided fields are changed."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown event field(s): {sorted(unknown)}")

        def apply() -> CalendarEvent:
            updated: CalendarEvent | None = None
            events = []
            for event in self._events:
                if event.id == event_id:
                    updated = dataclasses.replace(event, **changes)
                    events.append(updated)
                else:
                    events.append(event)
            if updated is None:
                raise EventNotFoundError(event_id)
            self._set_events(events)
            logger.info("Event updated: %s (%s)", event_id, ", ".join(sorted(changes)))
            return updated

        return await self._save(event_id, apply)

    async def move_event(self, event_id: str, new_start: datetime, new_end: datetime) -> CalendarEvent:
        return await self.update_event(event_id, start=new_start, end=new_end)

    async def delete_event(self, event_id: str) -> None:
        def apply() -> None:
            events = [e for e in self._events if e.id != event_id]
            if len(events) == len(self._events):
                raise EventNotFoundError(event_id)
            self._set_events(events)
            logger.info("Event deleted: %s", event_id)

        await self._save(event_id, apply)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def set_current_date(self, date: datetime) -> None:
        self._current_date = date

    def set_view_type(self, view_type: str) -> None:
        if view_type not in VALID_VIEW_TYPES:
            raise ValueError(
                f"Unknown view type '{view_type}'. Must be one of: {VALID_VIEW_TYPES}"
            )
        self._view_type = view_type

    def _step(self) -> timedelta | relativedelta:
        if self._view_type == "day":
            return timedelta(days=1)
        if self._view_type == "week":
            return timedelta(days=7)
        return relativedelta(months=1)

    def navigate_previous(self) -> None:
        self._current_date = self._current_date - self._step()

    def navigate_next(self) -> None:
        self._current_date = self._current_date + self._step()

    def navigate_today(self) -> None:
        self._current_date = datetime.now()
