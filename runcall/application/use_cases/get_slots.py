from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from runcall.application.exceptions import NotFoundError, ValidationError
from runcall.application.ports.account_store import ProviderAccountStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.application.use_cases.ensure_access_token import TokenRefreshManager
from runcall.application.use_cases.scan_calendars import CalendarScanner
from runcall.application.utils.availability import classify
from runcall.application.utils.slots import SLOT_DURATION, slice_slots
from runcall.domain.entities.interval import Interval, Slot

MAX_WINDOW = timedelta(days=62)


class GetSlotsUseCase:
    def __init__(
        self,
        accounts: ProviderAccountStorePort,
        bookings: BookingStorePort,
        tokens: TokenRefreshManager,
        scanner: CalendarScanner,
        pattern: re.Pattern[str] | None = None,
        slot_duration: timedelta = SLOT_DURATION,
        lead_time: timedelta = timedelta(0),
        align_to_boundary: bool = False,
        default_lookahead: timedelta = timedelta(days=14),
    ) -> None:
        self._accounts = accounts
        self._bookings = bookings
        self._tokens = tokens
        self._scanner = scanner
        self._pattern = pattern
        self._slot_duration = slot_duration
        self._lead_time = lead_time
        self._align_to_boundary = align_to_boundary
        self._default_lookahead = default_lookahead
        self._logger = logging.getLogger(__name__)

    def execute(
        self,
        provider_id: str,
        time_from: datetime | None = None,
        time_to: datetime | None = None,
        now: datetime | None = None,
    ) -> list[Slot]:
        now = now or datetime.now(timezone.utc)
        time_from = _as_utc(time_from) if time_from else now
        time_to = _as_utc(time_to) if time_to else time_from + self._default_lookahead

        if time_to <= time_from:
            raise ValidationError("'to' must be after 'from'")
        if time_to - time_from > MAX_WINDOW:
            raise ValidationError(f"Slot window cannot exceed {MAX_WINDOW.days} days")

        account = self._accounts.get_account(provider_id)
        if account is None:
            raise NotFoundError("Expert not connected")

        access_token = self._tokens.ensure_access_token(account, now=now)
        events = self._scanner.scan(access_token, time_from, time_to)
        classified = classify(events, self._pattern)

        busy = classified.busy + self._held_intervals(provider_id, now)
        slots = slice_slots(
            classified.availability,
            busy,
            slot_duration=self._slot_duration,
            now=now,
            lead_time=self._lead_time,
            align_to_boundary=self._align_to_boundary,
        )
        self._logger.info(
            "Slots computed",
            extra={
                "provider_id": provider_id,
                "availability_count": len(classified.availability),
                "busy_count": len(busy),
                "slot_count": len(slots),
            },
        )
        return slots

    def _held_intervals(self, provider_id: str, now: datetime) -> list[Interval]:
        """Local bookings still occupying their slot count as busy time."""
        return [
            Interval(start=b.slot_start, end=b.slot_end)
            for b in self._bookings.list_for_provider(provider_id)
            if b.is_live(now)
        ]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
