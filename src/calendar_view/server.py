#!/usr/bin/env python3
"""
calendar-view — calendar store and overlap layout exposed as an MCP server.

Tools cover event CRUD against the in-memory store, view navigation, and the
per-day lane layout (with or without a drag drop preview).

Environment variables:
    CALENDAR_VIEW_CONFIG — Path to calendar_view.yaml (default: /config/calendar_view.yaml)
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import CalendarSettings, load_config
from .dates import end_of_day, parse_datetime, start_of_day
from .errors import SupersededError
from .form import EventForm
from .layout import LayoutCache
from .models import CalendarEvent, DropPreviewEvent, EventPosition
from .sources import DemoEventSource, StaticEventSource
from .store import CalendarStore
from .views import DayColumn

# MCP stdio servers must NEVER write to stdout — log to stderr only.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("calendar-view")


# ---------------------------------------------------------------------------
# Module-level state
# ---------------------------------------------------------------------------

_settings: CalendarSettings = CalendarSettings()
_store: CalendarStore | None = None
_cache = LayoutCache()
_loaded = False


def _build_store(settings: CalendarSettings) -> CalendarStore:
    """Create the store with the event source the settings ask for."""
    if settings.demo_events:
        source = DemoEventSource(settings.colors, settings.demo_seed)
    else:
        source = StaticEventSource()
    return CalendarStore(source, latency=settings.latency, view_type=settings.default_view)


async def _get_store() -> CalendarStore:
    """Get the store. Lazy-initializes and loads the visible range on first access."""
    global _store, _loaded
    if _store is None:
        _store = _build_store(_settings)
    if not _loaded:
        _loaded = True
        try:
            await _store.refresh_events()
        except SupersededError:
            logger.info("Initial load superseded by a newer refresh")
    return _store


def _event_to_dict(event: CalendarEvent) -> dict[str, Any]:
    """Convert CalendarEvent to JSON-friendly dict."""
    return {
        "id": event.id,
        "title": event.title,
        "start": event.start.isoformat(),
        "end": event.end.isoformat(),
        "description": event.description,
        "location": event.location,
        "color": event.color,
        "all_day": event.all_day,
        "attendees": list(event.attendees),
    }


def _position_to_dict(position: EventPosition) -> dict[str, Any]:
    return {
        "event_id": position.event.id,
        "title": position.event.title,
        "start": position.event.start.isoformat(),
        "end": position.event.end.isoformat(),
        "column": position.column,
        "total_columns": position.total_columns,
        "left": position.left,
        "width": position.width,
    }


def _parse_day(value: str) -> datetime:
    if not value:
        return start_of_day(datetime.now())
    return start_of_day(parse_datetime(value))


# ---------------------------------------------------------------------------
# MCP Server + Tools
# ---------------------------------------------------------------------------

mcp = FastMCP("calendar-view")


@mcp.tool()
async def list_events(start: str = "", end: str = "") -> dict:
    """List events in a date range.

    Start/end default to the currently visible range of the calendar.

    Args:
        start: Start date/time (ISO 8601, e.g. "2026-02-13" or "2026-02-13T09:00:00").
        end: End date/time (ISO 8601). A date-only end covers the whole day.
    """
    store = await _get_store()
    dt_start, dt_end = store.visible_date_range()

    if start:
        try:
            dt_start = parse_datetime(start)
        except Exception:
            return {"error": f"Invalid start date: {start}"}
    if end:
        try:
            dt_end = parse_datetime(end)
        except Exception:
            return {"error": f"Invalid end date: {end}"}
        if "T" not in end:
            dt_end = end_of_day(dt_end)

    events = sorted(store.get_events_for_date_range(dt_start, dt_end), key=lambda e: e.start)
    return {
        "start": dt_start.isoformat(),
        "end": dt_end.isoformat(),
        "count": len(events),
        "events": [_event_to_dict(e) for e in events],
    }


@mcp.tool()
async def get_event(event_id: str) -> dict:
    """Get a single event with full details.

    Args:
        event_id: Event ID
    """
    store = await _get_store()
    try:
        return {"event": _event_to_dict(store.get_event(event_id))}
    except KeyError as e:
        return {"error": str(e)}


@mcp.tool()
async def create_event(
    title: str,
    start: str,
    end: str,
    description: str = "",
    location: str = "",
    color: str = "",
    all_day: bool = False,
    attendees: list[str] | None = None,
) -> dict:
    """Create a new calendar event.

    Args:
        title: Event title
        start: Start date/time (ISO 8601, e.g. "2026-02-14T14:00:00")
        end: End date/time (ISO 8601, e.g. "2026-02-14T15:00:00")
        description: Event description (optional)
        location: Event location (optional)
        color: Display colour, e.g. "#34a853" (optional)
        all_day: Whether this is an all-day event
        attendees: Attendee names or email addresses (optional)
    """
    try:
        dt_start = parse_datetime(start)
    except Exception:
        return {"error": f"Invalid start date: {start}"}
    try:
        dt_end = parse_datetime(end)
    except Exception:
        return {"error": f"Invalid end date: {end}"}

    form = EventForm(
        title=title,
        description=description,
        start_date=f"{dt_start:%Y-%m-%d}",
        start_time=f"{dt_start:%H:%M}",
        end_date=f"{dt_end:%Y-%m-%d}",
        end_time=f"{dt_end:%H:%M}",
        all_day=all_day,
        color=color or _settings.default_color,
        location=location,
        attendees=list(attendees or []),
    )
    try:
        event = form.to_event()
    except ValueError as e:
        return {"error": str(e)}

    store = await _get_store()
    try:
        created = await store.add_event(event)
        return {"success": True, "event": _event_to_dict(created)}
    except Exception as e:
        return {"error": f"Failed to create event: {e}"}


@mcp.tool()
async def update_event(
    event_id: str,
    title: str = "",
    start: str = "",
    end: str = "",
    description: str = "",
    location: str = "",
    color: str = "",
    attendees: list[str] | None = None,
) -> dict:
    """Update an existing calendar event. Only provided fields are changed.

    Args:
        event_id: Event ID (from list_events or get_event)
        title: New title (optional)
        start: New start date/time (optional)
        end: New end date/time (optional)
        description: New description (optional)
        location: New location (optional)
        color: New colour (optional)
        attendees: Replacement attendee list; [] clears it (optional)
    """
    kwargs: dict[str, Any] = {}
    if title:
        kwargs["title"] = title.strip()
    if start:
        try:
            kwargs["start"] = parse_datetime(start)
        except Exception:
            return {"error": f"Invalid start date: {start}"}
    if end:
        try:
            kwargs["end"] = parse_datetime(end)
        except Exception:
            return {"error": f"Invalid end date: {end}"}
    if description:
        kwargs["description"] = description
    if location:
        kwargs["location"] = location
    if color:
        kwargs["color"] = color
    if attendees is not None:
        kwargs["attendees"] = [a.strip() for a in attendees if a.strip()]

    if not kwargs:
        return {"error": "No fields to update"}

    store = await _get_store()
    try:
        current = store.get_event(event_id)
    except KeyError as e:
        return {"error": str(e)}
    if kwargs.get("end", current.end) < kwargs.get("start", current.start):
        return {"error": "End time must be after start time"}

    try:
        event = await store.update_event(event_id, **kwargs)
        return {"success": True, "event": _event_to_dict(event)}
    except Exception as e:
        return {"error": f"Failed to update event: {e}"}


@mcp.tool()
async def move_event(event_id: str, start: str, end: str) -> dict:
    """Move an event to a new time range (drag and drop).

    Args:
        event_id: Event ID
        start: New start date/time (ISO 8601)
        end: New end date/time (ISO 8601)
    """
    try:
        dt_start = parse_datetime(start)
        dt_end = parse_datetime(end)
    except Exception:
        return {"error": f"Invalid time range: {start} - {end}"}
    if dt_end < dt_start:
        return {"error": "End time must be after start time"}

    store = await _get_store()
    try:
        event = await store.move_event(event_id, dt_start, dt_end)
        return {"success": True, "event": _event_to_dict(event)}
    except Exception as e:
        return {"error": f"Failed to move event: {e}"}


@mcp.tool()
async def delete_event(event_id: str) -> dict:
    """Delete a calendar event.

    Args:
        event_id: Event ID (from list_events or get_event)
    """
    store = await _get_store()
    try:
        await store.delete_event(event_id)
        return {"success": True, "message": f"Event deleted: {event_id}"}
    except KeyError as e:
        return {"error": str(e)}
    except Exception as e:
        return {"error": f"Failed to delete event: {e}"}


@mcp.tool()
async def layout_day(date: str = "") -> dict:
    """Horizontal layout of one day's timed events.

    Each position gives the lane (column), the lane count of its overlap
    cluster (total_columns) and left/width as percentages of the day column.

    Args:
        date: Day to lay out (ISO 8601 date). Default: today.
    """
    try:
        day = _parse_day(date)
    except Exception:
        return {"error": f"Invalid date: {date}"}

    store = await _get_store()
    column = DayColumn.from_store(store, day, _settings, _cache)
    positions = column.positions()
    return {
        "date": day.date().isoformat(),
        "all_day": [_event_to_dict(e) for e in column.all_day_events],
        "positions": [_position_to_dict(p) for p in positions],
    }


@mcp.tool()
async def layout_day_with_preview(
    preview_start: str,
    preview_end: str,
    date: str = "",
    dragged_event_id: str = "",
) -> dict:
    """Layout of one day as if a dragged event were dropped at the preview range.

    Args:
        preview_start: Start of the drop preview (ISO 8601)
        preview_end: End of the drop preview (ISO 8601)
        date: Day to lay out (ISO 8601 date). Default: day of preview_start.
        dragged_event_id: Event being dragged; left out of the layout (optional)
    """
    try:
        start = parse_datetime(preview_start)
        end = parse_datetime(preview_end)
    except Exception:
        return {"error": f"Invalid preview range: {preview_start} - {preview_end}"}
    if end < start:
        return {"error": "Preview end must not be before its start"}
    try:
        day = _parse_day(date) if date else start_of_day(start)
    except Exception:
        return {"error": f"Invalid date: {date}"}

    store = await _get_store()
    column = DayColumn.from_store(store, day, _settings, _cache)
    positions = column.positions(DropPreviewEvent(start, end), dragged_event_id or None)
    return {
        "date": day.date().isoformat(),
        "preview": {"start": start.isoformat(), "end": end.isoformat()},
        "positions": [_position_to_dict(p) for p in positions],
    }


@mcp.tool()
async def navigate(action: str = "", view_type: str = "", date: str = "") -> dict:
    """Change the visible range and reload its events.

    Args:
        action: "previous", "next" or "today" (optional)
        view_type: "day", "week" or "month" (optional)
        date: Jump to this date (ISO 8601, optional)
    """
    store = await _get_store()

    if view_type:
        try:
            store.set_view_type(view_type)
        except ValueError as e:
            return {"error": str(e)}
    if date:
        try:
            store.set_current_date(parse_datetime(date))
        except Exception:
            return {"error": f"Invalid date: {date}"}

    if action == "previous":
        store.navigate_previous()
    elif action == "next":
        store.navigate_next()
    elif action == "today":
        store.navigate_today()
    elif action:
        return {"error": f"Unknown action '{action}'. Use previous, next or today."}

    try:
        events = await store.refresh_events()
    except Exception as e:
        logger.warning("Failed to load events: %s", e)
        return {"error": f"Failed to load events: {e}"}

    range_start, range_end = store.visible_date_range()
    return {
        "view_type": store.view_type,
        "current_date": store.current_date.isoformat(),
        "start": range_start.isoformat(),
        "end": range_end.isoformat(),
        "count": len(events),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Entry point for console script and python -m."""
    global _settings, _store, _loaded

    _settings = load_config()
    _store = _build_store(_settings)
    events = asyncio.run(_store.refresh_events())
    _loaded = True
    logger.info(
        "Calendar view ready (view=%s, latency=%dms, %d event(s) loaded)",
        _settings.default_view, _settings.latency_ms, len(events),
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
