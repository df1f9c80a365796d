from __future__ import annotations

import logging
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from runcall.application.ports.notifier import NotifierPort
from runcall.domain.entities.booking import Booking
from runcall.domain.entities.provider_account import ProviderProfile

TIME_FORMAT = "%A %d %B %Y, %H:%M"


class BookingNotifier:
    """Best-effort confirmation emails. Never raises."""

    def __init__(self, notifier: NotifierPort) -> None:
        self._notifier = notifier
        self._logger = logging.getLogger(__name__)

    def notify_confirmed(self, booking: Booking, provider: ProviderProfile | None) -> None:
        provider_name = (provider.name if provider else None) or "your expert"

        if booking.client_email:
            self._send(
                booking,
                to=booking.client_email,
                subject="RunCall: your call is confirmed",
                html=_render(
                    heading="Your call is confirmed",
                    lines=[
                        f"With: <b>{escape(provider_name)}</b>",
                        _when(booking, booking.timezone),
                    ],
                    booking=booking,
                ),
            )

        provider_email = provider.email if provider else None
        if provider_email:
            client_line = f"Client: <b>{escape(booking.client_name)}</b> ({escape(booking.client_email)})"
            lines = [client_line, _when(booking, provider.timezone)]
            if booking.client_note:
                lines.append(f"<b>Client note:</b><br/>{escape(booking.client_note)}")
            self._send(
                booking,
                to=provider_email,
                subject="RunCall: new booking confirmed",
                html=_render(heading="New booking confirmed", lines=lines, booking=booking),
            )

    def _send(self, booking: Booking, to: str, subject: str, html: str) -> None:
        try:
            self._notifier.send_email(to=to, subject=subject, html=html)
            self._logger.info("Confirmation email sent", extra={"booking_id": booking.id})
        except Exception as e:
            self._logger.warning(
                "Confirmation email failed",
                extra={"booking_id": booking.id, "error": str(e)},
            )


def format_in_timezone(value: datetime, tz_name: str | None) -> str:
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    return value.astimezone(tz).strftime(TIME_FORMAT)


def _when(booking: Booking, tz_name: str | None) -> str:
    start = format_in_timezone(booking.slot_start, tz_name)
    end = format_in_timezone(booking.slot_end, tz_name)[-5:]
    return f"When: <b>{escape(start)} - {escape(end)}</b> ({escape(tz_name or 'UTC')})"


def _render(heading: str, lines: list[str], booking: Booking) -> str:
    link = booking.meeting_link or ""
    body = "".join(f'<p style="margin:0 0 10px;color:#334155;">{line}</p>' for line in lines)
    return (
        '<div style="font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Arial;">'
        f'<h2 style="margin:0 0 10px;">{escape(heading)}</h2>'
        f"{body}"
        f'<p style="margin:0 0 12px;">Google Meet:<br/><a href="{escape(link)}">{escape(link)}</a></p>'
        f'<p style="margin-top:18px;color:#64748b;font-size:12px;">Booking ID: {escape(booking.id)}</p>'
        "</div>"
    )
