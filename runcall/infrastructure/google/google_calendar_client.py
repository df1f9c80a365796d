from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from runcall.application.exceptions import EventConflict, ProviderError
from runcall.application.ports.calendar import CalendarPort
from runcall.core.config import settings
from runcall.domain.entities.calendar_event import CalendarEvent, CalendarRef

MAX_PAGES = 20


class GoogleCalendarClient(CalendarPort):
    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = (base_url or settings.GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def list_calendars(self, access_token: str) -> list[CalendarRef]:
        calendars: list[CalendarRef] = []
        for item in self._paginate(access_token, "/users/me/calendarList", {"minAccessRole": "reader"}):
            if not item.get("id"):
                continue
            calendars.append(
                CalendarRef(
                    id=str(item["id"]),
                    summary=item.get("summary"),
                    access_role=item.get("accessRole"),
                    primary=bool(item.get("primary")),
                )
            )
        return calendars

    def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        params = {
            "timeMin": _rfc3339(time_min),
            "timeMax": _rfc3339(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
            "showDeleted": "false",
            "maxResults": "2500",
        }
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        return [
            CalendarEvent.from_google(item, calendar_id=calendar_id)
            for item in self._paginate(access_token, path, params)
        ]

    def create_event(self, access_token: str, calendar_id: str, payload: dict[str, Any]) -> CalendarEvent:
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        params = {"conferenceDataVersion": "1", "sendUpdates": "all"}
        data = self._request("POST", access_token, path, params=params, json=payload)
        self._logger.info(
            "Calendar event created",
            extra={"event_id": data.get("id"), "calendar_id": calendar_id},
        )
        return CalendarEvent.from_google(data, calendar_id=calendar_id)

    def get_event(self, access_token: str, calendar_id: str, event_id: str) -> CalendarEvent:
        path = f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}"
        data = self._request("GET", access_token, path)
        return CalendarEvent.from_google(data, calendar_id=calendar_id)

    def _paginate(self, access_token: str, path: str, params: dict[str, str]):
        page_token: str | None = None
        for _ in range(MAX_PAGES):
            page_params = dict(params)
            if page_token:
                page_params["pageToken"] = page_token
            data = self._request("GET", access_token, path, params=page_params)
            yield from data.get("items") or []
            page_token = data.get("nextPageToken")
            if not page_token:
                return
        self._logger.warning("Pagination limit reached", extra={"reason": path})

    def _request(
        self,
        method: str,
        access_token: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            resp = self._client.request(method, f"{self._base_url}{path}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("Google Calendar request failed", extra={"reason": path, "error": str(e)})
            raise ProviderError(f"Google Calendar request failed: {e}") from e

        if resp.status_code >= 400:
            try:
                payload = resp.json()
                message = (payload.get("error") or {}).get("message") or resp.text
            except ValueError:
                payload = resp.text
                message = resp.text
            self._logger.error(
                "Google Calendar error",
                extra={"status": resp.status_code, "reason": path, "error": message},
            )
            error_cls = EventConflict if resp.status_code == 409 else ProviderError
            raise error_cls(
                f"Google Calendar {method} {path} failed ({resp.status_code}): {message}",
                status_code=resp.status_code,
                payload=payload,
            )

        if not resp.content:
            return {}
        return resp.json()


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
