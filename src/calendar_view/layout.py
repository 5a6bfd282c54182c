"""Overlap layout engine for the timed events of a single day column.

Events are split into clusters (connected components of the overlap relation),
each cluster is packed greedily into lanes, and every event is then widened
into the lanes to its right that stay free for its whole time range.

All functions are pure: they only read their input and return fresh
``EventPosition`` objects, so they can be called on every render.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from .models import PREVIEW_EVENT_ID, CalendarEvent, DropPreviewEvent, EventPosition

logger = logging.getLogger("calendar-view")


def events_overlap(a: CalendarEvent, b: CalendarEvent) -> bool:
    """Half-open interval intersection; touching events do not overlap."""
    return a.start < b.end and b.start < a.end


def _layout_order(event: CalendarEvent):
    # Earlier start first, longer event first on ties.
    return (event.start, -(event.end - event.start))


def group_overlapping_events(events: Iterable[CalendarEvent]) -> list[list[CalendarEvent]]:
    """Partition events into clusters of directly or transitively overlapping events.

    An event that overlaps several existing clusters merges all of them
    (plus itself) into one cluster in the same step.
    """
    groups: list[list[CalendarEvent]] = []

    for event in sorted(events, key=lambda e: e.start):
        matched = [
            idx for idx, group in enumerate(groups)
            if any(events_overlap(event, member) for member in group)
        ]

        if not matched:
            groups.append([event])
        elif len(matched) == 1:
            groups[matched[0]].append(event)
        else:
            merged: list[CalendarEvent] = []
            for idx in matched:
                merged.extend(groups[idx])
            merged.append(event)
            # Merged cluster takes the slot of the earliest matched cluster.
            for idx in reversed(matched[1:]):
                del groups[idx]
            groups[matched[0]] = merged

    return groups


def calculate_group_positions(events: Sequence[CalendarEvent]) -> list[EventPosition]:
    """Assign lanes and widths to the events of one cluster."""
    if not events:
        return []

    columns: list[list[CalendarEvent]] = []

    for event in sorted(events, key=_layout_order):
        for column in columns:
            if column[-1].end <= event.start:
                column.append(event)
                break
        else:
            columns.append([event])

    total_columns = len(columns)
    column_width = 100 / total_columns
    positions: list[EventPosition] = []

    for col_idx, column in enumerate(columns):
        for event in column:
            span = 1
            for other_column in columns[col_idx + 1:]:
                if any(events_overlap(event, other) for other in other_column):
                    break
                span += 1

            positions.append(EventPosition(
                event=event,
                column=col_idx,
                total_columns=total_columns,
                left=col_idx * column_width,
                width=column_width * span,
            ))

    return positions


def calculate_event_positions(
    events: Sequence[CalendarEvent],
    cache: LayoutCache | None = None,
) -> list[EventPosition]:
    """Lay out all timed events of a day column.

    All-day events must be filtered out by the caller.
    """
    if not events:
        return []

    positions: list[EventPosition] = []
    groups = group_overlapping_events(events)
    for group in groups:
        if cache is not None:
            positions.extend(cache.positions_for(group))
        else:
            positions.extend(calculate_group_positions(group))

    logger.debug("Laid out %d event(s) in %d cluster(s)", len(positions), len(groups))
    return positions


def calculate_event_positions_with_preview(
    events: Sequence[CalendarEvent],
    preview: DropPreviewEvent | None,
    cache: LayoutCache | None = None,
) -> list[EventPosition]:
    """Lay out events as if a drag in progress had already been dropped.

    The preview takes part in clustering and packing as a synthetic event
    but is not part of the returned positions.
    """
    if preview is None:
        return calculate_event_positions(events, cache)

    ghost = CalendarEvent(
        id=PREVIEW_EVENT_ID,
        title="Preview",
        start=preview.start,
        end=preview.end,
        color="transparent",
    )
    positions = calculate_event_positions([*events, ghost], cache)
    return [p for p in positions if p.event.id != PREVIEW_EVENT_ID]


class LayoutCache:
    """Memoizes per-cluster geometry keyed by the cluster's id/time signature.

    Only geometry is cached; positions are rebuilt around the caller's
    current event objects so edits to titles or colours show up immediately.
    """

    def __init__(self, max_entries: int = 512):
        self._max_entries = max_entries
        self._entries: dict[tuple, dict[str, tuple[int, int, float, float]]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def signature(group: Iterable[CalendarEvent]) -> tuple:
        return tuple(sorted((e.id, e.start, e.end) for e in group))

    def positions_for(self, group: Sequence[CalendarEvent]) -> list[EventPosition]:
        key = self.signature(group)
        geometry = self._entries.get(key)

        if geometry is None:
            self.misses += 1
            computed = calculate_group_positions(group)
            if len(self._entries) >= self._max_entries:
                # Drop the oldest entry (dicts keep insertion order).
                del self._entries[next(iter(self._entries))]
            self._entries[key] = {
                p.event.id: (p.column, p.total_columns, p.left, p.width) for p in computed
            }
            return computed

        self.hits += 1
        by_id = {e.id: e for e in group}
        positions = []
        for event_id, (column, total, left, width) in geometry.items():
            positions.append(EventPosition(
                event=by_id[event_id],
                column=column,
                total_columns=total,
                left=left,
                width=width,
            ))
        return positions

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
