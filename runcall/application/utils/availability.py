from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from runcall.domain.entities.calendar_event import CalendarEvent, EventKind
from runcall.domain.entities.interval import Interval

DEFAULT_KEYWORD = ("run", "call")


@dataclass(frozen=True)
class ClassifiedEvents:
    availability: list[Interval]
    busy: list[Interval]


@lru_cache
def availability_pattern(first: str = DEFAULT_KEYWORD[0], second: str = DEFAULT_KEYWORD[1]) -> re.Pattern[str]:
    """Keyword pair with at most one space or hyphen between the halves ("RunCall", "run-call", "Run call")."""
    return re.compile(rf"{re.escape(first)}[ \-]?{re.escape(second)}", re.IGNORECASE)


def is_availability_text(text: str, pattern: re.Pattern[str] | None = None) -> bool:
    if not text:
        return False
    return bool((pattern or availability_pattern()).search(text))


def scrub_availability_text(text: str, pattern: re.Pattern[str] | None = None) -> str:
    """Remove keyword matches so text written into booking events never reads as an announcement."""
    pattern = pattern or availability_pattern()
    text = text or ""
    # Each pass shortens the text, so this terminates; one pass can expose a new match ("runrun callcall").
    while pattern.search(text):
        text = pattern.sub(" ", text)
    return text


def classify_event(event: CalendarEvent, pattern: re.Pattern[str] | None = None) -> EventKind:
    if event.is_cancelled:
        return EventKind.IGNORED
    # All-day entries have no concrete instant; they are ignored as both signal kinds.
    if not _is_timed(event):
        return EventKind.IGNORED

    if event.is_booking_marker:
        return EventKind.BOOKING
    if is_availability_text(event.text, pattern):
        return EventKind.AVAILABILITY
    if event.transparency != "transparent":
        return EventKind.BUSY
    return EventKind.IGNORED


def classify(events: Iterable[CalendarEvent], pattern: re.Pattern[str] | None = None) -> ClassifiedEvents:
    availability: list[Interval] = []
    busy: list[Interval] = []
    for event in events:
        kind = classify_event(event, pattern)
        if kind == EventKind.IGNORED:
            continue
        interval = _to_interval(event)
        if interval is None:
            continue
        if kind == EventKind.AVAILABILITY:
            availability.append(interval)
        else:
            busy.append(interval)
    return ClassifiedEvents(availability=sorted(availability), busy=sorted(busy))


def _is_timed(event: CalendarEvent) -> bool:
    return (
        event.start is not None
        and event.end is not None
        and event.start.date_time is not None
        and event.end.date_time is not None
    )


def _to_interval(event: CalendarEvent) -> Interval | None:
    start = event.start.date_time if event.start else None
    end = event.end.date_time if event.end else None
    if start is None or end is None or end <= start:
        return None
    return Interval(start=start, end=end)
