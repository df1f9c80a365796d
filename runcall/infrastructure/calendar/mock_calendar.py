from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from runcall.application.exceptions import EventConflict, ProviderError
from runcall.application.ports.calendar import CalendarPort
from runcall.domain.entities.calendar_event import CalendarEvent, CalendarRef


class MockCalendar(CalendarPort):
    """In-memory calendar keyed by calendar id, speaking Google's event payload shape."""

    def __init__(self, calendars: list[CalendarRef] | None = None) -> None:
        self._calendars: list[CalendarRef] = list(
            calendars or [CalendarRef(id="primary", summary="Primary", access_role="owner", primary=True)]
        )
        self._events: dict[str, dict[str, dict[str, Any]]] = {}
        self.failing_calendars: set[str] = set()
        self.create_calls = 0
        self._logger = logging.getLogger(__name__)

    def add_event(self, calendar_id: str, payload: dict[str, Any]) -> None:
        event_id = str(payload.get("id") or f"mock_event_{self._event_count() + 1}")
        self._events.setdefault(calendar_id, {})[event_id] = {**payload, "id": event_id}

    def list_calendars(self, access_token: str) -> list[CalendarRef]:
        return list(self._calendars)

    def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        if calendar_id in self.failing_calendars:
            raise ProviderError(f"Calendar {calendar_id} unavailable", status_code=503)
        events = [
            CalendarEvent.from_google(payload, calendar_id=calendar_id)
            for payload in self._events.get(calendar_id, {}).values()
        ]
        return [e for e in events if _overlaps(e, time_min, time_max)]

    def create_event(self, access_token: str, calendar_id: str, payload: dict[str, Any]) -> CalendarEvent:
        self.create_calls += 1
        calendar = self._events.setdefault(calendar_id, {})
        event_id = str(payload.get("id") or f"mock_event_{self._event_count() + 1}")
        if event_id in calendar:
            raise EventConflict(f"Event {event_id} already exists", status_code=409)

        stored = {**payload, "id": event_id, "status": "confirmed"}
        if payload.get("conferenceData", {}).get("createRequest"):
            link = f"https://meet.google.com/mock-{event_id[-10:]}"
            stored["hangoutLink"] = link
            stored["conferenceData"] = {"entryPoints": [{"entryPointType": "video", "uri": link}]}
        calendar[event_id] = stored
        self._logger.info("Mock calendar event created", extra={"event_id": event_id, "calendar_id": calendar_id})
        return CalendarEvent.from_google(stored, calendar_id=calendar_id)

    def get_event(self, access_token: str, calendar_id: str, event_id: str) -> CalendarEvent:
        payload = self._events.get(calendar_id, {}).get(event_id)
        if payload is None:
            raise ProviderError(f"Event {event_id} not found", status_code=404)
        return CalendarEvent.from_google(payload, calendar_id=calendar_id)

    def events_in(self, calendar_id: str) -> list[dict[str, Any]]:
        return list(self._events.get(calendar_id, {}).values())

    def _event_count(self) -> int:
        return sum(len(events) for events in self._events.values())


def _overlaps(event: CalendarEvent, time_min: datetime, time_max: datetime) -> bool:
    if event.start is None or event.end is None:
        return False
    if event.start.date_time is None or event.end.date_time is None:
        # All-day entries are passed through; classification drops them.
        return True
    return event.start.date_time < time_max and time_min < event.end.date_time
