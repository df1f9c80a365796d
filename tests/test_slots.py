"""
Tests for slot slicing.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from runcall.application.utils.slots import align_up, iter_slots, slice_slots
from runcall.domain.entities.interval import Interval, Slot

THIRTY = timedelta(minutes=30)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 5, 6, hour, minute, tzinfo=timezone.utc)


def test_free_hour_yields_two_slots():
    slots = slice_slots([Interval(_at(9), _at(10))], [], THIRTY)
    assert slots == [Slot(_at(9), _at(9, 30)), Slot(_at(9, 30), _at(10))]


def test_busy_overlap_removes_both_slots():
    slots = slice_slots([Interval(_at(9), _at(10))], [Interval(_at(9, 15), _at(9, 45))], THIRTY)
    assert slots == []


def test_duplicate_availability_yields_one_slot():
    availability = [Interval(_at(14), _at(14, 30)), Interval(_at(14), _at(14, 30))]
    assert slice_slots(availability, [], THIRTY) == [Slot(_at(14), _at(14, 30))]


def test_touching_busy_interval_does_not_block():
    slots = slice_slots([Interval(_at(9), _at(10))], [Interval(_at(8), _at(9))], THIRTY)
    assert slots == [Slot(_at(9), _at(9, 30)), Slot(_at(9, 30), _at(10))]


def test_remainder_shorter_than_slot_is_dropped():
    slots = slice_slots([Interval(_at(9), _at(10, 10))], [], THIRTY)
    assert slots[-1] == Slot(_at(9, 30), _at(10))
    assert len(slots) == 2


def test_overlapping_availability_is_sorted_and_deduplicated():
    availability = [Interval(_at(10), _at(11)), Interval(_at(9), _at(10, 30))]
    slots = slice_slots(availability, [], THIRTY)
    assert slots == sorted(set(slots))
    assert slots[0] == Slot(_at(9), _at(9, 30))
    assert Slot(_at(10), _at(10, 30)) in slots


def test_slot_invariants_hold():
    availability = [Interval(_at(8), _at(12)), Interval(_at(13, 10), _at(15))]
    busy = [Interval(_at(9), _at(9, 20)), Interval(_at(14), _at(14, 5))]
    slots = slice_slots(availability, busy, THIRTY)

    assert slots
    for slot in slots:
        assert slot.end - slot.start == THIRTY
        assert any(a.start <= slot.start and slot.end <= a.end for a in availability)
        assert not any(b.overlaps(slot.start, slot.end) for b in busy)
    starts = [s.start for s in slots]
    assert starts == sorted(starts)
    assert len(set(slots)) == len(slots)


def test_slicing_is_repeatable():
    availability = [Interval(_at(9), _at(12))]
    busy = [Interval(_at(10), _at(10, 30))]
    first = slice_slots(availability, busy, THIRTY)
    assert slice_slots(availability, busy, THIRTY) == first
    assert list(iter_slots(availability, busy, THIRTY)) == list(iter_slots(availability, busy, THIRTY))


def test_slots_before_now_plus_lead_time_are_dropped():
    slots = slice_slots(
        [Interval(_at(9), _at(11))],
        [],
        THIRTY,
        now=_at(9, 20),
        lead_time=timedelta(minutes=20),
    )
    assert [s.start for s in slots] == [_at(10), _at(10, 30)]


def test_exact_start_by_default_and_aligned_on_request():
    availability = [Interval(_at(9, 10), _at(10, 30))]

    exact = slice_slots(availability, [], THIRTY)
    assert [s.start for s in exact] == [_at(9, 10), _at(9, 40)]

    aligned = slice_slots(availability, [], THIRTY, align_to_boundary=True)
    assert [s.start for s in aligned] == [_at(9, 30), _at(10)]


def test_align_up():
    assert align_up(_at(9), THIRTY) == _at(9)
    assert align_up(_at(9, 1), THIRTY) == _at(9, 30)


def test_non_positive_duration_is_rejected():
    with pytest.raises(ValueError):
        slice_slots([Interval(_at(9), _at(10))], [], timedelta(0))
