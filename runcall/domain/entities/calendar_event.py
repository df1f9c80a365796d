from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

BOOKING_MARKER_KEY = "runcall_type"
BOOKING_MARKER_VALUE = "booking"
BOOKING_ID_KEY = "runcall_booking_id"


class EventKind(str, Enum):
    AVAILABILITY = "availability"
    BOOKING = "booking"
    BUSY = "busy"
    IGNORED = "ignored"


@dataclass(frozen=True)
class EventTime:
    """Either a concrete instant (``date_time``) or an all-day ``date``."""

    date_time: datetime | None = None
    date: date | None = None

    @property
    def is_all_day(self) -> bool:
        return self.date_time is None and self.date is not None

    @staticmethod
    def from_payload(payload: dict[str, Any] | None) -> "EventTime | None":
        if not payload:
            return None
        raw_dt = payload.get("dateTime")
        if raw_dt:
            return EventTime(date_time=parse_rfc3339(raw_dt))
        raw_date = payload.get("date")
        if raw_date:
            return EventTime(date=date.fromisoformat(raw_date))
        return None


@dataclass(frozen=True)
class CalendarRef:
    id: str
    summary: str | None = None
    access_role: str | None = None
    primary: bool = False


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    status: str = "confirmed"  # "confirmed", "tentative", "cancelled"
    summary: str = ""
    description: str = ""
    start: EventTime | None = None
    end: EventTime | None = None
    transparency: str = "opaque"  # "opaque" blocks time, "transparent" does not
    private_properties: dict[str, str] = field(default_factory=dict)
    hangout_link: str | None = None
    conference_entry_points: tuple[dict[str, Any], ...] = ()
    calendar_id: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    @property
    def is_booking_marker(self) -> bool:
        marker = self.private_properties.get(BOOKING_MARKER_KEY)
        return str(marker or "").lower() == BOOKING_MARKER_VALUE

    @property
    def text(self) -> str:
        return f"{self.summary or ''} {self.description or ''}"

    @property
    def video_link(self) -> str | None:
        for entry in self.conference_entry_points:
            if entry.get("entryPointType") == "video" and entry.get("uri"):
                return str(entry["uri"])
        return self.hangout_link

    @staticmethod
    def from_google(payload: dict[str, Any], calendar_id: str | None = None) -> "CalendarEvent":
        extended = payload.get("extendedProperties") or {}
        conference = payload.get("conferenceData") or {}
        return CalendarEvent(
            id=str(payload.get("id") or ""),
            status=str(payload.get("status") or "confirmed"),
            summary=payload.get("summary") or "",
            description=payload.get("description") or "",
            start=EventTime.from_payload(payload.get("start")),
            end=EventTime.from_payload(payload.get("end")),
            transparency=payload.get("transparency") or "opaque",
            private_properties={str(k): str(v) for k, v in (extended.get("private") or {}).items()},
            hangout_link=payload.get("hangoutLink"),
            conference_entry_points=tuple(conference.get("entryPoints") or ()),
            calendar_id=calendar_id,
        )


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
