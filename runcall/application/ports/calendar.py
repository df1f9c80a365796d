from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from runcall.domain.entities.calendar_event import CalendarEvent, CalendarRef


class CalendarPort(ABC):
    @abstractmethod
    def list_calendars(self, access_token: str) -> list[CalendarRef]:
        """List calendars visible to the token owner, with their access role."""
        raise NotImplementedError

    @abstractmethod
    def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        """List single (expanded) events overlapping [time_min, time_max)."""
        raise NotImplementedError

    @abstractmethod
    def create_event(self, access_token: str, calendar_id: str, payload: dict[str, Any]) -> CalendarEvent:
        """Create an event. Raises EventConflict if payload["id"] already exists."""
        raise NotImplementedError

    @abstractmethod
    def get_event(self, access_token: str, calendar_id: str, event_id: str) -> CalendarEvent:
        raise NotImplementedError
