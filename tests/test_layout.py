"""Tests for the overlap layout engine."""

import random
from datetime import datetime, timedelta

import pytest

from calendar_view.layout import (
    LayoutCache,
    calculate_event_positions,
    calculate_event_positions_with_preview,
    calculate_group_positions,
    events_overlap,
    group_overlapping_events,
)
from calendar_view.models import PREVIEW_EVENT_ID, CalendarEvent, DropPreviewEvent


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, 13, hour, minute)


def _ev(id: str, start: tuple[int, int], end: tuple[int, int], title: str = "") -> CalendarEvent:
    return CalendarEvent(id=id, title=title or id, start=_at(*start), end=_at(*end))


def _by_id(positions):
    return {p.event.id: p for p in positions}


def _random_events(rng: random.Random, count: int) -> list[CalendarEvent]:
    events = []
    for i in range(count):
        start = _at(8) + timedelta(minutes=15 * rng.randrange(40))
        end = start + timedelta(minutes=15 * rng.randrange(1, 12))
        events.append(CalendarEvent(id=f"r{i}", title=f"Random {i}", start=start, end=end))
    return events


# ---------------------------------------------------------------------------
# Overlap predicate
# ---------------------------------------------------------------------------

class TestEventsOverlap:
    def test_overlapping(self):
        assert events_overlap(_ev("a", (10, 0), (11, 30)), _ev("b", (10, 30), (12, 0)))

    def test_touching_is_not_overlap(self):
        a = _ev("a", (9, 0), (10, 0))
        b = _ev("b", (10, 0), (11, 0))
        assert not events_overlap(a, b)
        assert not events_overlap(b, a)

    def test_contained(self):
        assert events_overlap(_ev("a", (9, 0), (12, 0)), _ev("b", (10, 0), (10, 30)))

    def test_disjoint(self):
        assert not events_overlap(_ev("a", (9, 0), (10, 0)), _ev("b", (14, 0), (15, 0)))


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------

class TestGroupOverlappingEvents:
    def test_empty(self):
        assert group_overlapping_events([]) == []

    def test_separate_groups_for_disjoint_events(self):
        groups = group_overlapping_events([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (11, 0), (12, 0)),
            _ev("c", (13, 0), (14, 0)),
        ])
        assert [[e.id for e in g] for g in groups] == [["a"], ["b"], ["c"]]

    def test_overlapping_events_grouped(self):
        groups = group_overlapping_events([
            _ev("a", (9, 0), (10, 30)),
            _ev("b", (10, 0), (11, 0)),
        ])
        assert len(groups) == 1
        assert {e.id for e in groups[0]} == {"a", "b"}

    def test_bridging_event_merges_clusters(self):
        # a and b never overlap each other; c connects them
        groups = group_overlapping_events([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (10, 30), (11, 30)),
            _ev("c", (9, 30), (11, 0)),
        ])
        assert len(groups) == 1
        assert {e.id for e in groups[0]} == {"a", "b", "c"}

    def test_transitive_chain_is_one_cluster(self):
        groups = group_overlapping_events([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (9, 45), (11, 0)),
            _ev("c", (10, 45), (12, 0)),
            _ev("d", (14, 0), (15, 0)),
        ])
        assert len(groups) == 2
        assert {e.id for e in groups[0]} == {"a", "b", "c"}
        assert [e.id for e in groups[1]] == ["d"]

    def test_input_order_does_not_matter(self):
        events = [
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (10, 30), (11, 30)),
            _ev("c", (9, 30), (11, 0)),
            _ev("d", (15, 0), (16, 0)),
        ]
        forward = group_overlapping_events(events)
        backward = group_overlapping_events(list(reversed(events)))
        as_sets = lambda groups: sorted(sorted(e.id for e in g) for g in groups)
        assert as_sets(forward) == as_sets(backward) == [["a", "b", "c"], ["d"]]

    def test_partition_covers_input_once(self):
        events = _random_events(random.Random(7), 40)
        groups = group_overlapping_events(events)
        ids = [e.id for g in groups for e in g]
        assert sorted(ids) == sorted(e.id for e in events)

    def test_clusters_do_not_overlap_each_other(self):
        groups = group_overlapping_events(_random_events(random.Random(11), 40))
        for i, g1 in enumerate(groups):
            for g2 in groups[i + 1:]:
                assert not any(events_overlap(a, b) for a in g1 for b in g2)


# ---------------------------------------------------------------------------
# Lane packing
# ---------------------------------------------------------------------------

class TestCalculateGroupPositions:
    def test_empty(self):
        assert calculate_group_positions([]) == []

    def test_longer_event_first_on_same_start(self):
        positions = _by_id(calculate_group_positions([
            _ev("short", (10, 0), (11, 0)),
            _ev("long", (10, 0), (12, 0)),
        ]))
        assert positions["long"].column == 0
        assert positions["short"].column == 1

    def test_reuses_free_column(self):
        positions = _by_id(calculate_group_positions([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (9, 30), (11, 0)),
            _ev("c", (10, 0), (10, 30)),
        ]))
        assert positions["a"].column == 0
        assert positions["b"].column == 1
        assert positions["c"].column == 0
        assert positions["c"].total_columns == 2

    def test_event_spans_free_columns(self):
        positions = _by_id(calculate_group_positions([
            _ev("a", (9, 0), (12, 0)),
            _ev("b", (9, 0), (10, 0)),
            _ev("c", (9, 30), (10, 30)),
            _ev("d", (10, 30), (11, 30)),
        ]))
        assert positions["a"].column == 0
        assert positions["b"].column == 1
        assert positions["c"].column == 2
        assert positions["d"].column == 1
        # d is free in column 2 once c has ended
        assert positions["d"].left == pytest.approx(100 / 3)
        assert positions["d"].width == pytest.approx(200 / 3)
        assert positions["b"].width == pytest.approx(100 / 3)

    def test_expansion_stops_at_first_conflict(self):
        positions = _by_id(calculate_group_positions([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (9, 0), (11, 0)),
            _ev("c", (9, 30), (10, 30)),
            _ev("d", (10, 0), (10, 45)),
        ]))
        # b: col 0, a: col 1, c: col 2, d reuses col 1 after a
        assert positions["b"].column == 0
        assert positions["a"].column == 1
        assert positions["d"].column == 1
        # col 2 holds c (9:30-10:30), which overlaps d
        assert positions["d"].width == pytest.approx(100 / 3)


# ---------------------------------------------------------------------------
# Full layout
# ---------------------------------------------------------------------------

class TestCalculateEventPositions:
    def test_empty(self):
        assert calculate_event_positions([]) == []

    def test_single_event(self):
        [pos] = calculate_event_positions([_ev("a", (10, 0), (11, 0))])
        assert pos.left == 0
        assert pos.width == 100
        assert pos.column == 0
        assert pos.total_columns == 1

    def test_two_overlapping_events(self):
        positions = _by_id(calculate_event_positions([
            _ev("a", (10, 0), (11, 30)),
            _ev("b", (10, 30), (12, 0)),
        ]))
        assert positions["a"].column == 0
        assert positions["b"].column == 1
        assert positions["a"].left == 0
        assert positions["b"].left == 50
        assert positions["a"].width == 50
        assert positions["b"].width == 50

    def test_three_mutually_overlapping_events(self):
        positions = calculate_event_positions([
            _ev("a", (10, 0), (12, 0)),
            _ev("b", (10, 30), (11, 30)),
            _ev("c", (11, 0), (12, 30)),
        ])
        assert {p.total_columns for p in positions} == {3}
        assert sorted(p.column for p in positions) == [0, 1, 2]

    def test_separate_clusters_are_independent(self):
        positions = _by_id(calculate_event_positions([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (10, 30), (11, 30)),
            _ev("c", (10, 30), (11, 30)),
        ]))
        assert positions["a"].width == 100
        assert positions["a"].total_columns == 1
        assert positions["b"].width == 50
        assert positions["c"].width == 50
        assert {positions["b"].left, positions["c"].left} == {0, 50}

    def test_touching_events_share_full_width(self):
        positions = calculate_event_positions([
            _ev("a", (9, 0), (10, 0)),
            _ev("b", (10, 0), (11, 0)),
        ])
        assert [p.width for p in positions] == [100, 100]

    def test_idempotent(self):
        events = _random_events(random.Random(3), 25)
        first = [(p.event.id, p.column, p.total_columns, p.left, p.width)
                 for p in calculate_event_positions(events)]
        second = [(p.event.id, p.column, p.total_columns, p.left, p.width)
                  for p in calculate_event_positions(events)]
        assert first == second

    def test_does_not_mutate_input_order(self):
        events = [_ev("b", (11, 0), (12, 0)), _ev("a", (9, 0), (10, 0))]
        calculate_event_positions(events)
        assert [e.id for e in events] == ["b", "a"]

    @pytest.mark.parametrize("seed", [1, 2, 5, 8, 13])
    def test_random_layouts_are_consistent(self, seed):
        events = _random_events(random.Random(seed), 30)
        positions = calculate_event_positions(events)

        # every event placed exactly once
        assert sorted(p.event.id for p in positions) == sorted(e.id for e in events)

        by_id = _by_id(positions)
        for group in group_overlapping_events(events):
            for i, a in enumerate(group):
                for b in group[i + 1:]:
                    pa, pb = by_id[a.id], by_id[b.id]
                    assert pa.total_columns == pb.total_columns
                    if events_overlap(a, b):
                        assert pa.column != pb.column
                    if pa.column == pb.column:
                        assert not events_overlap(a, b)

        for p in positions:
            assert p.width > 0
            assert p.left + p.width <= 100 + 1e-9


# ---------------------------------------------------------------------------
# Drop preview
# ---------------------------------------------------------------------------

class TestCalculateEventPositionsWithPreview:
    def test_no_preview_matches_plain_layout(self):
        events = [_ev("a", (10, 0), (11, 30)), _ev("b", (10, 30), (12, 0))]
        plain = calculate_event_positions(events)
        with_none = calculate_event_positions_with_preview(events, None)
        assert [(p.event.id, p.column, p.width) for p in plain] == \
            [(p.event.id, p.column, p.width) for p in with_none]

    def test_preview_shrinks_overlapped_event(self):
        real = _ev("a", (10, 0), (11, 0))
        preview = DropPreviewEvent(_at(10, 30), _at(11, 30))
        positions = calculate_event_positions_with_preview([real], preview)
        assert len(positions) == 1
        assert positions[0].event.id == "a"
        assert positions[0].width < 100
        assert positions[0].total_columns == 2

    def test_preview_not_in_result(self):
        events = [_ev("a", (9, 0), (10, 0)), _ev("b", (13, 0), (14, 0))]
        preview = DropPreviewEvent(_at(9, 30), _at(10, 30))
        positions = calculate_event_positions_with_preview(events, preview)
        assert PREVIEW_EVENT_ID not in {p.event.id for p in positions}
        assert {p.event.id for p in positions} == {"a", "b"}

    def test_preview_elsewhere_leaves_layout_untouched(self):
        events = [_ev("a", (9, 0), (10, 0))]
        preview = DropPreviewEvent(_at(15, 0), _at(16, 0))
        [pos] = calculate_event_positions_with_preview(events, preview)
        assert pos.width == 100

    def test_preview_overlapping_multiple_events(self):
        events = [_ev("a", (10, 0), (11, 0)), _ev("b", (10, 30), (11, 30))]
        preview = DropPreviewEvent(_at(10, 15), _at(11, 15))
        positions = _by_id(calculate_event_positions_with_preview(events, preview))
        assert positions["a"].total_columns == 3
        assert positions["a"].column == 0
        assert positions["b"].column == 2
        assert positions["b"].left == pytest.approx(200 / 3)

    def test_preview_alone(self):
        preview = DropPreviewEvent(_at(10, 0), _at(11, 0))
        assert calculate_event_positions_with_preview([], preview) == []


# ---------------------------------------------------------------------------
# Cluster memo
# ---------------------------------------------------------------------------

class TestLayoutCache:
    def test_second_call_hits(self):
        cache = LayoutCache()
        events = [_ev("a", (10, 0), (11, 30)), _ev("b", (10, 30), (12, 0)), _ev("c", (14, 0), (15, 0))]
        first = calculate_event_positions(events, cache)
        second = calculate_event_positions(events, cache)
        assert cache.misses == 2
        assert cache.hits == 2
        assert [(p.event.id, p.column, p.left, p.width) for p in first] == \
            [(p.event.id, p.column, p.left, p.width) for p in second]

    def test_uses_current_event_objects(self):
        cache = LayoutCache()
        calculate_event_positions([_ev("a", (10, 0), (11, 0), title="Old")], cache)
        [pos] = calculate_event_positions([_ev("a", (10, 0), (11, 0), title="New")], cache)
        assert cache.hits == 1
        assert pos.event.title == "New"

    def test_moved_event_misses(self):
        cache = LayoutCache()
        calculate_event_positions([_ev("a", (10, 0), (11, 0))], cache)
        calculate_event_positions([_ev("a", (12, 0), (13, 0))], cache)
        assert cache.hits == 0
        assert len(cache) == 2

    def test_evicts_oldest(self):
        cache = LayoutCache(max_entries=1)
        calculate_event_positions([_ev("a", (10, 0), (11, 0))], cache)
        calculate_event_positions([_ev("b", (12, 0), (13, 0))], cache)
        assert len(cache) == 1
        calculate_event_positions([_ev("a", (10, 0), (11, 0))], cache)
        assert cache.hits == 0
