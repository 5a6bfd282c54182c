"""Pointer interaction state machine for day, week and month views.

Each view owns one ``InteractionController``. Its state is always exactly one
of ``Idle``, ``Dragging`` or ``Resizing``; a resize holds a ``PointerCapture``
on the view's ``PointerSurface`` (the global pointer-move/pointer-up pair)
which is released when the gesture ends or the controller is closed.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol, Union

from .dates import is_same_day, time_from_offset
from .errors import InteractionError, SaveSupersededError
from .models import CalendarEvent, DropPreviewEvent
from .store import CalendarStore

logger = logging.getLogger("calendar-view")

POINTER_MOVE = "pointermove"
POINTER_UP = "pointerup"
RESIZE_EDGES = {"top", "bottom"}

PointerCallback = Callable[[float], None]


class PointerSurface(Protocol):
    """Document-level pointer event target (one per window)."""

    def add_listener(self, kind: str, callback: PointerCallback) -> None: ...

    def remove_listener(self, kind: str, callback: PointerCallback) -> None: ...


class PointerCapture:
    """Scoped registration of a pointer-move/pointer-up listener pair."""

    def __init__(self, surface: PointerSurface, on_move: PointerCallback, on_up: PointerCallback):
        self._surface = surface
        self._on_move = on_move
        self._on_up = on_up
        self.active = False

    def acquire(self) -> PointerCapture:
        if not self.active:
            self._surface.add_listener(POINTER_MOVE, self._on_move)
            self._surface.add_listener(POINTER_UP, self._on_up)
            self.active = True
        return self

    def release(self) -> None:
        if self.active:
            self._surface.remove_listener(POINTER_MOVE, self._on_move)
            self._surface.remove_listener(POINTER_UP, self._on_up)
            self.active = False

    def __enter__(self) -> PointerCapture:
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    event: CalendarEvent
    preview: Optional[DropPreviewEvent] = None


@dataclass(frozen=True)
class Resizing:
    event: CalendarEvent
    edge: str  # "top" | "bottom"
    origin_y: float
    original_start: datetime
    original_end: datetime
    capture: PointerCapture
    current_start: datetime
    current_end: datetime


InteractionState = Union[Idle, Dragging, Resizing]

IDLE = Idle()


def _log_save_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if isinstance(exc, SaveSupersededError):
        logger.debug("Resize save superseded: %s", exc)
    elif exc is not None:
        logger.warning("Resize save failed: %s", exc)


class InteractionController:
    """Drives drag-to-move and resize gestures against a ``CalendarStore``."""

    def __init__(
        self,
        store: CalendarStore,
        surface: PointerSurface,
        hour_height: int = 60,
        snap_minutes: int = 15,
    ):
        self._store = store
        self._surface = surface
        self._hour_height = hour_height
        self._snap_minutes = snap_minutes
        self._state: InteractionState = IDLE
        self._resize_task: asyncio.Task | None = None
        self._closed = False

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def preview(self) -> DropPreviewEvent | None:
        if isinstance(self._state, Dragging):
            return self._state.preview
        return None

    @property
    def dragged_event_id(self) -> str | None:
        if isinstance(self._state, Dragging):
            return self._state.event.id
        return None

    def _require(self, kind: type, action: str):
        if self._closed:
            raise InteractionError(f"Cannot {action}: controller is closed")
        if not isinstance(self._state, kind):
            raise InteractionError(
                f"Cannot {action} while {type(self._state).__name__.lower()}"
            )
        return self._state

    # ------------------------------------------------------------------
    # Drag to move
    # ------------------------------------------------------------------

    def begin_drag(self, event: CalendarEvent) -> None:
        self._require(Idle, "start a drag")
        self._state = Dragging(event)

    def drag_over(self, start: datetime) -> DropPreviewEvent | None:
        """Move the drop preview so the dragged event would start at ``start``."""
        state = self._require(Dragging, "drag over")
        if state.event.all_day:
            return None
        preview = DropPreviewEvent(start, start + state.event.duration)
        self._state = dataclasses.replace(state, preview=preview)
        return preview

    def drag_over_slot(
        self, day: datetime, hour: int, offset_y: float, slot_height: float
    ) -> DropPreviewEvent | None:
        """Preview at the snapped time under the pointer inside an hour slot."""
        slot_hour, minute = time_from_offset(hour, offset_y, slot_height, self._snap_minutes)
        start = day.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(
            hours=slot_hour, minutes=minute
        )
        return self.drag_over(start)

    def drag_over_event(self, hovered: CalendarEvent) -> DropPreviewEvent | None:
        """Hovering another event snaps the preview to that event's start."""
        state = self._require(Dragging, "drag over")
        if hovered.id == state.event.id:
            return state.preview
        return self.drag_over(hovered.start)

    def drag_leave(self) -> None:
        state = self._require(Dragging, "leave a drop zone")
        self._state = dataclasses.replace(state, preview=None)

    async def drop(self) -> CalendarEvent | None:
        """Commit the current preview. Returns the moved event, or None without a preview."""
        state = self._require(Dragging, "drop")
        self._state = IDLE
        if state.preview is None or state.event.all_day:
            return None
        return await self._store.move_event(state.event.id, state.preview.start, state.preview.end)

    async def drop_all_day(self, day: datetime) -> CalendarEvent | None:
        """Drop onto the all-day strip of ``day``, converting a timed event."""
        state = self._require(Dragging, "drop")
        self._state = IDLE
        if state.event.all_day:
            return None
        start = day.replace(hour=0, minute=0, second=0, microsecond=0)
        return await self._store.update_event(
            state.event.id,
            start=start,
            end=start.replace(hour=23, minute=59, second=59, microsecond=999999),
            all_day=True,
        )

    async def drop_on_day(self, day: datetime) -> CalendarEvent:
        """Drop onto a month cell, keeping the time of day and the duration.

        A timed event that would cross midnight on its new day is widened to
        an all-day event covering every day it touches.
        """
        state = self._require(Dragging, "drop")
        self._state = IDLE
        event = state.event

        start = day.replace(hour=0, minute=0, second=0, microsecond=0)
        if not event.all_day:
            start = start.replace(hour=event.start.hour, minute=event.start.minute)
        end = start + event.duration

        if event.all_day or is_same_day(start, end):
            return await self._store.move_event(event.id, start, end)
        return await self._store.update_event(
            event.id,
            start=start.replace(hour=0, minute=0),
            end=end.replace(hour=23, minute=59, second=59, microsecond=999999),
            all_day=True,
        )

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def begin_resize(self, event: CalendarEvent, edge: str, y: float) -> None:
        self._require(Idle, "start a resize")
        if edge not in RESIZE_EDGES:
            raise ValueError(f"Unknown resize edge '{edge}'. Must be one of: {RESIZE_EDGES}")

        capture = PointerCapture(self._surface, self.resize_move, self._on_pointer_up).acquire()
        self._state = Resizing(
            event=event,
            edge=edge,
            origin_y=y,
            original_start=event.start,
            original_end=event.end,
            capture=capture,
            current_start=event.start,
            current_end=event.end,
        )

    def resize_move(self, y: float) -> asyncio.Task | None:
        """Snap the pointer delta and save the new edge time.

        Returns the pending save, or None if the move was rejected or
        changed nothing. Each save supersedes the previous one.
        """
        state = self._require(Resizing, "resize")
        step = self._snap_minutes
        minutes = round((y - state.origin_y) / self._hour_height * 60 / step) * step
        delta = timedelta(minutes=minutes)

        if state.edge == "top":
            new_start = state.original_start + delta
            if not new_start < state.original_end or new_start == state.current_start:
                return None
            self._state = dataclasses.replace(state, current_start=new_start)
            changes = {"start": new_start}
        else:
            new_end = state.original_end + delta
            if not new_end > state.original_start or new_end == state.current_end:
                return None
            self._state = dataclasses.replace(state, current_end=new_end)
            changes = {"end": new_end}

        task = asyncio.ensure_future(self._store.update_event(state.event.id, **changes))
        task.add_done_callback(_log_save_failure)
        self._resize_task = task
        return task

    def _on_pointer_up(self, y: float) -> None:
        self.resize_end()

    def resize_end(self) -> asyncio.Task | None:
        """Finish the resize and release the pointer capture. Returns the last save."""
        state = self._require(Resizing, "end a resize")
        state.capture.release()
        self._state = IDLE
        task, self._resize_task = self._resize_task, None
        return task

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Abort the gesture in progress. Resize saves already started still complete."""
        if isinstance(self._state, Resizing):
            self._state.capture.release()
        self._state = IDLE

    def close(self) -> None:
        """Tear down the controller; further gestures raise ``InteractionError``."""
        self.cancel()
        self._closed = True

    def __enter__(self) -> InteractionController:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
