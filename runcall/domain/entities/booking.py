from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BookingStatus(str, Enum):
    HOLD = "hold"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.EXPIRED, BookingStatus.CANCELED})


@dataclass(frozen=True)
class ClientInfo:
    name: str
    email: str
    timezone: str
    note: str | None = None


@dataclass(frozen=True)
class Booking:
    id: str
    provider_id: str
    slot_start: datetime
    slot_end: datetime
    timezone: str
    client_name: str
    client_email: str
    client_note: str | None = None
    status: BookingStatus = BookingStatus.HOLD
    hold_expires_at: datetime | None = None
    payment_session_id: str | None = None
    payment_intent_id: str | None = None
    payment_expires_at: datetime | None = None
    calendar_id: str | None = None
    calendar_event_id: str | None = None
    meeting_link: str | None = None
    confirmed_at: datetime | None = None
    amount_cents: int | None = None
    currency: str | None = None
    last_error: str | None = None
    created_at: datetime | None = None

    def is_hold_expired(self, now: datetime) -> bool:
        # A hold whose expiry equals "now" is already expired.
        return self.hold_expires_at is None or now >= self.hold_expires_at

    def is_live(self, now: datetime) -> bool:
        """True while the booking still occupies its slot."""
        if self.status == BookingStatus.CONFIRMED:
            return True
        if self.status == BookingStatus.HOLD:
            return not self.is_hold_expired(now)
        if self.status == BookingStatus.PENDING_PAYMENT:
            return self.payment_expires_at is None or now < self.payment_expires_at
        return False

    @property
    def is_fully_confirmed(self) -> bool:
        return (
            self.status == BookingStatus.CONFIRMED
            and bool(self.meeting_link)
            and bool(self.payment_intent_id or self.payment_session_id)
        )


@dataclass(frozen=True)
class ConfirmationResult:
    booking_id: str
    calendar_event_id: str | None
    meeting_link: str | None
    already_confirmed: bool = False
