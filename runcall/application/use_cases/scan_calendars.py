from __future__ import annotations

import logging
from datetime import datetime

from runcall.application.exceptions import ProviderError
from runcall.application.ports.calendar import CalendarPort
from runcall.domain.entities.calendar_event import CalendarEvent, CalendarRef

READABLE_ROLES = frozenset({"owner", "writer", "reader"})


class CalendarScanner:
    def __init__(self, calendar: CalendarPort) -> None:
        self._calendar = calendar
        self._logger = logging.getLogger(__name__)

    def list_calendars(self, access_token: str) -> list[CalendarRef]:
        """Calendars the owner can read. A failure here propagates as ProviderError."""
        calendars = self._calendar.list_calendars(access_token)
        return [c for c in calendars if (c.access_role or "").lower() in READABLE_ROLES]

    def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        return self._calendar.list_events(access_token, calendar_id, time_min, time_max)

    def scan(self, access_token: str, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        """Events across every readable calendar; a calendar whose events cannot be fetched is skipped."""
        calendars = self.list_calendars(access_token)

        events: list[CalendarEvent] = []
        for ref in calendars:
            try:
                events.extend(self.list_events(access_token, ref.id, time_min, time_max))
            except ProviderError as e:
                self._logger.warning(
                    "Skipping calendar",
                    extra={"calendar_id": ref.id, "status": e.status_code, "error": str(e)},
                )
        self._logger.info(
            "Calendars scanned",
            extra={"calendar_count": len(calendars), "event_count": len(events)},
        )
        return events
