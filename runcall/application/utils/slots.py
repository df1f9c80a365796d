from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator

from runcall.domain.entities.interval import Interval, Slot

SLOT_DURATION = timedelta(minutes=30)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def align_up(value: datetime, step: timedelta) -> datetime:
    """Round ``value`` up to the next multiple of ``step`` counted from the Unix epoch."""
    remainder = (value - _EPOCH) % step
    if not remainder:
        return value
    return value + (step - remainder)


def iter_slots(
    availability: Iterable[Interval],
    busy: Iterable[Interval],
    slot_duration: timedelta = SLOT_DURATION,
    now: datetime | None = None,
    lead_time: timedelta = timedelta(0),
    align_to_boundary: bool = False,
) -> Iterator[Slot]:
    """
    Yield candidate slots per availability interval, in interval order.

    No sorting or dedup here; see slice_slots. Calling it again with the same
    inputs yields the same sequence.
    """
    if slot_duration <= timedelta(0):
        raise ValueError("slot_duration must be positive")

    busy_list = list(busy)
    earliest = (now + lead_time) if now is not None else None

    for interval in availability:
        cursor = align_up(interval.start, slot_duration) if align_to_boundary else interval.start
        while cursor + slot_duration <= interval.end:
            slot_end = cursor + slot_duration
            if earliest is not None and cursor < earliest:
                cursor = slot_end
                continue
            if not any(b.overlaps(cursor, slot_end) for b in busy_list):
                yield Slot(start=cursor, end=slot_end)
            cursor = slot_end


def slice_slots(
    availability: Iterable[Interval],
    busy: Iterable[Interval],
    slot_duration: timedelta = SLOT_DURATION,
    now: datetime | None = None,
    lead_time: timedelta = timedelta(0),
    align_to_boundary: bool = False,
) -> list[Slot]:
    """Sorted by start, deduplicated by (start, end)."""
    candidates = iter_slots(
        availability,
        busy,
        slot_duration=slot_duration,
        now=now,
        lead_time=lead_time,
        align_to_boundary=align_to_boundary,
    )
    return sorted(set(candidates))
