from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Any, NoReturn

from runcall.application.exceptions import (
    AuthError,
    EventConflict,
    IdempotentNoop,
    NotFoundError,
    ProviderError,
    ReconciliationError,
    ValidationError,
)
from runcall.application.ports.account_store import ProviderAccountStorePort, ProviderProfileStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.application.ports.calendar import CalendarPort
from runcall.application.ports.payment_gateway import PaymentGatewayPort
from runcall.application.use_cases.ensure_access_token import TokenRefreshManager
from runcall.application.use_cases.notify_booking import BookingNotifier
from runcall.application.utils.availability import scrub_availability_text
from runcall.domain.entities.booking import Booking, BookingStatus, ConfirmationResult
from runcall.domain.entities.calendar_event import (
    BOOKING_ID_KEY,
    BOOKING_MARKER_KEY,
    BOOKING_MARKER_VALUE,
    CalendarEvent,
)
from runcall.domain.entities.provider_account import ProviderProfile

CONFIRMABLE_STATUSES = frozenset({BookingStatus.HOLD, BookingStatus.PENDING_PAYMENT})


class ConfirmBookingUseCase:
    """
    Turns a paid booking into a confirmed one: one calendar event with a Meet
    link on the provider's calendar, one persisted confirmation, then emails.

    Safe to re-run from scratch for the same booking:
    - steps run under the store's per-booking lock;
    - the calendar event id is derived from the booking id, so a second insert
      is rejected by the calendar and the existing event is reused;
    - the final write is conditional on the booking not being confirmed yet.
    """

    def __init__(
        self,
        bookings: BookingStorePort,
        accounts: ProviderAccountStorePort,
        profiles: ProviderProfileStorePort,
        tokens: TokenRefreshManager,
        calendar: CalendarPort,
        payments: PaymentGatewayPort,
        notifier: BookingNotifier,
        pattern: re.Pattern[str] | None = None,
    ) -> None:
        self._bookings = bookings
        self._accounts = accounts
        self._profiles = profiles
        self._tokens = tokens
        self._calendar = calendar
        self._payments = payments
        self._notifier = notifier
        self._pattern = pattern
        self._logger = logging.getLogger(__name__)

    def confirm_from_webhook(self, body: bytes, signature: str | None) -> ConfirmationResult | None:
        """
        Entry point for the payment gateway's asynchronous confirmation.

        Returns None when there is nothing to do (other event type, unpaid
        session, missing or unknown booking). Raises InvalidSignature before
        touching any state.
        """
        confirmation = self._payments.parse_webhook(body, signature)
        if confirmation is None:
            return None

        if not confirmation.booking_id:
            self._logger.warning("Missing booking_id metadata", extra={"reason": confirmation.session_id})
            return None

        if not confirmation.paid:
            # Delayed payment methods complete checkout before the money arrives.
            self._logger.info(
                "Checkout completed without payment, waiting",
                extra={"booking_id": confirmation.booking_id, "reason": confirmation.session_id},
            )
            return None

        try:
            return self.confirm(
                confirmation.booking_id,
                payment_session_id=confirmation.session_id,
                payment_intent_id=confirmation.payment_intent_id,
            )
        except NotFoundError:
            self._logger.warning("Booking not found for payment", extra={"booking_id": confirmation.booking_id})
            return None

    def confirm_manually(self, booking_id: str) -> ConfirmationResult:
        """Fallback when the webhook never landed: checks the checkout session is paid, then confirms."""
        booking = self._bookings.get(booking_id) if booking_id else None
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.is_fully_confirmed:
            return _result(booking, already_confirmed=True)

        if not booking.payment_session_id:
            raise ValidationError(f"Booking not paid (status={booking.status.value})")

        session = self._payments.retrieve_session(booking.payment_session_id)
        if not session.paid:
            raise ValidationError("Checkout session is not paid")
        if session.booking_id and session.booking_id != booking.id:
            raise ValidationError("Checkout session belongs to another booking")

        return self.confirm(
            booking.id,
            payment_session_id=session.session_id,
            payment_intent_id=session.payment_intent_id,
        )

    def confirm(
        self,
        booking_id: str,
        payment_session_id: str | None = None,
        payment_intent_id: str | None = None,
        now: datetime | None = None,
    ) -> ConfirmationResult:
        now = now or datetime.now(timezone.utc)
        if self._bookings.get(booking_id) is None:
            raise NotFoundError("Booking not found")

        with self._bookings.lock(booking_id):
            try:
                booking = self._confirm_locked(booking_id, payment_session_id, payment_intent_id, now)
            except IdempotentNoop as noop:
                self._logger.info("Booking already confirmed", extra={"booking_id": booking_id})
                return noop.result

        self._logger.info(
            "Booking confirmed",
            extra={
                "booking_id": booking.id,
                "event_id": booking.calendar_event_id,
                "status": booking.status.value,
            },
        )
        self._notifier.notify_confirmed(booking, self._profiles.get_profile(booking.provider_id))
        return _result(booking)

    def _confirm_locked(
        self,
        booking_id: str,
        payment_session_id: str | None,
        payment_intent_id: str | None,
        now: datetime,
    ) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.is_fully_confirmed:
            raise IdempotentNoop(_result(booking, already_confirmed=True))

        if booking.status not in CONFIRMABLE_STATUSES and booking.status != BookingStatus.CONFIRMED:
            self._record_orphan_payment(booking, payment_session_id, payment_intent_id)
            raise ValidationError(f"Booking cannot be confirmed (status={booking.status.value})")

        payment_session_id = payment_session_id or booking.payment_session_id
        payment_intent_id = payment_intent_id or booking.payment_intent_id

        account = self._accounts.get_account(booking.provider_id)
        if account is None:
            self._fail(booking, "Expert calendar not connected", payment_session_id, payment_intent_id)

        try:
            access_token = self._tokens.ensure_access_token(account, now=now)
        except (AuthError, ProviderError) as e:
            self._fail(booking, f"Calendar auth failed: {e}", payment_session_id, payment_intent_id, cause=e)

        calendar_id = booking.calendar_id or account.calendar_id or "primary"
        profile = self._profiles.get_profile(booking.provider_id)
        payload = self.build_event_payload(booking, profile, account.email)

        try:
            event = self._create_or_fetch_event(access_token, calendar_id, payload)
        except ProviderError as e:
            self._fail(booking, f"Calendar event creation failed: {e}", payment_session_id, payment_intent_id, cause=e)

        allowed = (
            frozenset({BookingStatus.CONFIRMED})
            if booking.status == BookingStatus.CONFIRMED
            else CONFIRMABLE_STATUSES
        )
        updated = self._bookings.update_if_status(
            booking_id,
            allowed,
            status=BookingStatus.CONFIRMED,
            confirmed_at=booking.confirmed_at or now,
            payment_session_id=payment_session_id,
            payment_intent_id=payment_intent_id,
            calendar_id=calendar_id,
            calendar_event_id=event.id,
            meeting_link=event.video_link,
            last_error=None,
        )
        if updated is None:
            current = self._bookings.get(booking_id)
            raise IdempotentNoop(_result(current, already_confirmed=True))
        return updated

    def _create_or_fetch_event(self, access_token: str, calendar_id: str, payload: dict[str, Any]) -> CalendarEvent:
        try:
            return self._calendar.create_event(access_token, calendar_id, payload)
        except EventConflict:
            self._logger.info(
                "Calendar event already exists, reusing it",
                extra={"event_id": payload["id"], "calendar_id": calendar_id},
            )
            return self._calendar.get_event(access_token, calendar_id, payload["id"])

    def _record_orphan_payment(
        self,
        booking: Booking,
        payment_session_id: str | None,
        payment_intent_id: str | None,
    ) -> None:
        if not (payment_session_id or payment_intent_id):
            return
        reason = f"Payment received for {booking.status.value} booking, refund or rebook manually"
        self._bookings.update(
            booking.id,
            last_error=reason,
            payment_session_id=payment_session_id or booking.payment_session_id,
            payment_intent_id=payment_intent_id or booking.payment_intent_id,
        )
        self._logger.error(
            "Payment received for unconfirmable booking",
            extra={
                "booking_id": booking.id,
                "status": booking.status.value,
                "reason": payment_intent_id or payment_session_id,
            },
        )

    def _fail(
        self,
        booking: Booking,
        reason: str,
        payment_session_id: str | None,
        payment_intent_id: str | None,
        cause: Exception | None = None,
    ) -> NoReturn:
        self._bookings.update(
            booking.id,
            last_error=reason,
            payment_session_id=payment_session_id,
            payment_intent_id=payment_intent_id,
        )
        self._logger.error("Booking confirmation failed", extra={"booking_id": booking.id, "reason": reason})
        raise ReconciliationError(reason) from cause

    def build_event_payload(
        self,
        booking: Booking,
        profile: ProviderProfile | None,
        account_email: str | None = None,
    ) -> dict[str, Any]:
        description_lines = [
            "Booking confirmed.",
            "",
            f"Client: {booking.client_name}",
            f"Email: {booking.client_email}",
        ]
        if booking.client_note:
            description_lines.append(f"Note: {booking.client_note}")
        description_lines += ["", f"Booking ID: {booking.id}"]

        attendees = [{"email": booking.client_email}]
        provider_email = (profile.email if profile else None) or account_email
        if provider_email and provider_email != booking.client_email:
            attendees.append({"email": provider_email})

        return {
            "id": event_id_for(booking.id),
            "summary": scrub_availability_text(f"Booked call with {booking.client_name}", self._pattern),
            "description": scrub_availability_text("\n".join(description_lines), self._pattern),
            "start": {"dateTime": booking.slot_start.isoformat(), "timeZone": booking.timezone or "UTC"},
            "end": {"dateTime": booking.slot_end.isoformat(), "timeZone": booking.timezone or "UTC"},
            "attendees": attendees,
            "transparency": "opaque",
            "extendedProperties": {
                "private": {BOOKING_MARKER_KEY: BOOKING_MARKER_VALUE, BOOKING_ID_KEY: booking.id},
            },
            "conferenceData": {
                "createRequest": {
                    "requestId": f"runcall-{booking.id}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
        }


def event_id_for(booking_id: str) -> str:
    """Deterministic calendar event id (base32hex alphabet: 0-9, a-v)."""
    return "rc" + hashlib.sha1(booking_id.encode("utf-8")).hexdigest()


def _result(booking: Booking, already_confirmed: bool = False) -> ConfirmationResult:
    return ConfirmationResult(
        booking_id=booking.id,
        calendar_event_id=booking.calendar_event_id,
        meeting_link=booking.meeting_link,
        already_confirmed=already_confirmed,
    )
