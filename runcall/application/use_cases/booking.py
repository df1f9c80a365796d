from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from runcall.application.dto.payment_event import CheckoutSession
from runcall.application.exceptions import NotFoundError, ValidationError
from runcall.application.ports.account_store import ProviderProfileStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.application.ports.payment_gateway import PaymentGatewayPort
from runcall.application.utils.slots import SLOT_DURATION
from runcall.domain.entities.booking import Booking, BookingStatus, ClientInfo
from runcall.domain.entities.provider_account import ProviderProfile

# Client-selectable tiers (major units -> cents), used when the provider has no fixed price.
PRICE_TIERS: dict[int, int] = {29: 2900, 49: 4900, 79: 7900}
PRODUCT_LABEL = "RunCall support"
HOLD_TTL = timedelta(minutes=15)
# Stripe refuses checkout sessions that expire in under 30 minutes.
CHECKOUT_TTL = timedelta(minutes=30)

PAYABLE_STATUSES = frozenset({BookingStatus.HOLD, BookingStatus.PENDING_PAYMENT})


@dataclass(frozen=True)
class BookingInfo:
    booking_id: str
    status: BookingStatus
    has_fixed_price: bool
    fixed_price_cents: int | None
    currency: str
    price_tiers: tuple[int, ...]


class BookingUseCase:
    def __init__(
        self,
        bookings: BookingStorePort,
        profiles: ProviderProfileStorePort,
        payments: PaymentGatewayPort,
        slot_duration: timedelta = SLOT_DURATION,
        hold_ttl: timedelta = HOLD_TTL,
    ) -> None:
        self._bookings = bookings
        self._profiles = profiles
        self._payments = payments
        self._slot_duration = slot_duration
        self._hold_ttl = hold_ttl
        self._logger = logging.getLogger(__name__)

    def create_hold(
        self,
        provider_id: str,
        slot_start: datetime,
        slot_end: datetime,
        client: ClientInfo,
        now: datetime | None = None,
    ) -> str:
        now = now or datetime.now(timezone.utc)
        provider_id = (provider_id or "").strip()
        if not provider_id:
            raise ValidationError("Missing expert_id")
        self._validate_client(client)
        slot_start, slot_end = self._validate_slot(slot_start, slot_end, now)

        # Serialises hold creation per provider so two clients cannot hold the same slot.
        with self._bookings.lock(f"provider:{provider_id}"):
            for existing in self._bookings.list_for_provider(provider_id):
                if existing.is_live(now) and existing.slot_start < slot_end and slot_start < existing.slot_end:
                    raise ValidationError("Slot is no longer available")

            booking = Booking(
                id=str(uuid.uuid4()),
                provider_id=provider_id,
                slot_start=slot_start,
                slot_end=slot_end,
                timezone=client.timezone,
                client_name=client.name.strip(),
                client_email=client.email.strip(),
                client_note=(client.note or "").strip() or None,
                status=BookingStatus.HOLD,
                hold_expires_at=now + self._hold_ttl,
                created_at=now,
            )
            self._bookings.create(booking)

        self._logger.info(
            "Hold created",
            extra={"booking_id": booking.id, "provider_id": provider_id, "status": booking.status.value},
        )
        return booking.id

    def create_payment_session(
        self,
        booking_id: str,
        tier: int | None = None,
        now: datetime | None = None,
    ) -> CheckoutSession:
        now = now or datetime.now(timezone.utc)
        with self._bookings.lock(booking_id):
            booking = self._get(booking_id)

            if booking.status not in PAYABLE_STATUSES:
                raise ValidationError(f"Booking is not payable (status={booking.status.value})")

            if booking.is_hold_expired(now):
                if booking.status == BookingStatus.HOLD:
                    self._bookings.update(booking_id, status=BookingStatus.EXPIRED)
                    self._logger.info("Hold expired", extra={"booking_id": booking_id, "status": "expired"})
                raise ValidationError("Hold expired, please pick the slot again")

            profile = self._profiles.get_profile(booking.provider_id) or ProviderProfile(id=booking.provider_id)
            amount_cents = self._resolve_amount(profile, tier)
            # Only one payable session per booking.
            self._expire_open_session(booking, now)

            session = self._payments.create_checkout_session(
                booking_id=booking.id,
                amount_cents=amount_cents,
                currency=profile.currency,
                label=PRODUCT_LABEL,
                customer_email=booking.client_email,
                expires_at=now + CHECKOUT_TTL,
            )

            self._bookings.update(
                booking_id,
                status=BookingStatus.PENDING_PAYMENT,
                payment_session_id=session.session_id,
                payment_expires_at=now + CHECKOUT_TTL,
                amount_cents=amount_cents,
                currency=profile.currency,
            )

        self._logger.info(
            "Checkout session created",
            extra={"booking_id": booking_id, "status": BookingStatus.PENDING_PAYMENT.value},
        )
        return session

    def cancel(self, booking_id: str, now: datetime | None = None) -> Booking:
        now = now or datetime.now(timezone.utc)
        with self._bookings.lock(booking_id):
            booking = self._get(booking_id)
            if booking.status == BookingStatus.CANCELED:
                return booking
            if booking.status not in PAYABLE_STATUSES:
                raise ValidationError(f"Booking cannot be canceled (status={booking.status.value})")
            self._expire_open_session(booking, now)
            updated = self._bookings.update(booking_id, status=BookingStatus.CANCELED)

        self._logger.info("Booking canceled", extra={"booking_id": booking_id, "status": "canceled"})
        return updated

    def get_booking_info(self, booking_id: str) -> BookingInfo:
        booking = self._get(booking_id)
        profile = self._profiles.get_profile(booking.provider_id)
        if profile is None:
            raise NotFoundError("Expert not found")
        return BookingInfo(
            booking_id=booking.id,
            status=booking.status,
            has_fixed_price=profile.has_fixed_price,
            fixed_price_cents=profile.price_cents if profile.has_fixed_price else None,
            currency=profile.currency or "usd",
            price_tiers=tuple(sorted(PRICE_TIERS)),
        )

    def _expire_open_session(self, booking: Booking, now: datetime) -> None:
        if booking.status != BookingStatus.PENDING_PAYMENT or not booking.payment_session_id:
            return
        if booking.payment_expires_at is not None and now >= booking.payment_expires_at:
            return
        self._payments.expire_session(booking.payment_session_id)
        self._logger.info(
            "Checkout session closed",
            extra={"booking_id": booking.id, "reason": booking.payment_session_id},
        )

    def _get(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id) if booking_id else None
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def _resolve_amount(self, profile: ProviderProfile, tier: int | None) -> int:
        if profile.has_fixed_price:
            return int(profile.price_cents)
        if tier is None or tier not in PRICE_TIERS:
            raise ValidationError("Invalid price_tier")
        return PRICE_TIERS[tier]

    def _validate_client(self, client: ClientInfo) -> None:
        if not (client.name or "").strip() or not (client.email or "").strip():
            raise ValidationError("Missing required fields")
        if "@" not in client.email:
            raise ValidationError("Invalid email")
        try:
            ZoneInfo(client.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise ValidationError(f"Unknown timezone: {client.timezone!r}")

    def _validate_slot(self, slot_start: datetime, slot_end: datetime, now: datetime) -> tuple[datetime, datetime]:
        if slot_start.tzinfo is None or slot_end.tzinfo is None:
            raise ValidationError("slot_start/slot_end must carry a UTC offset")
        slot_start = slot_start.astimezone(timezone.utc)
        slot_end = slot_end.astimezone(timezone.utc)
        if slot_end <= slot_start:
            raise ValidationError("Invalid slot_start/slot_end")
        if slot_end - slot_start != self._slot_duration:
            minutes = int(self._slot_duration.total_seconds() // 60)
            raise ValidationError(f"Slot must be {minutes} minutes")
        if slot_start < now:
            raise ValidationError("Slot is in the past")
        return slot_start, slot_end
