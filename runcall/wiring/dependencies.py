from functools import lru_cache
from datetime import timedelta
import logging

from runcall.core.config import settings
from runcall.application.ports.account_store import ProviderAccountStorePort, ProviderProfileStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.application.ports.calendar import CalendarPort
from runcall.application.ports.notifier import NotifierPort
from runcall.application.ports.oauth import OAuthPort
from runcall.application.ports.payment_gateway import PaymentGatewayPort
from runcall.application.use_cases.booking import BookingUseCase
from runcall.application.use_cases.confirm_booking import ConfirmBookingUseCase
from runcall.application.use_cases.connect_calendar import ConnectCalendarUseCase
from runcall.application.use_cases.ensure_access_token import TokenRefreshManager
from runcall.application.use_cases.get_slots import GetSlotsUseCase
from runcall.application.use_cases.notify_booking import BookingNotifier
from runcall.application.use_cases.scan_calendars import CalendarScanner
from runcall.application.utils.availability import availability_pattern
from runcall.infrastructure.calendar.mock_calendar import MockCalendar
from runcall.infrastructure.email.mock_notifier import MockNotifier
from runcall.infrastructure.email.resend_notifier import ResendNotifier
from runcall.infrastructure.google.google_calendar_client import GoogleCalendarClient
from runcall.infrastructure.google.google_oauth_client import GoogleOAuthClient
from runcall.infrastructure.google.mock_oauth import MockOAuth
from runcall.infrastructure.payments.mock_gateway import MockPaymentGateway
from runcall.infrastructure.payments.stripe_gateway import StripePaymentGateway
from runcall.infrastructure.store.json_store import (
    JsonBookingStore,
    JsonProviderAccountStore,
    JsonProviderProfileStore,
)
from runcall.infrastructure.store.memory_store import (
    MemoryBookingStore,
    MemoryProviderAccountStore,
    MemoryProviderProfileStore,
)

logger = logging.getLogger(__name__)


def _is_local() -> bool:
    return settings.ENV.lower() in {"dev", "local"}


def _use_json_store() -> bool:
    return settings.STORE_PROVIDER.lower() == "json"


@lru_cache
def get_booking_store() -> BookingStorePort:
    if _use_json_store():
        return JsonBookingStore(data_dir=settings.DATA_DIR)
    return MemoryBookingStore()


@lru_cache
def get_account_store() -> ProviderAccountStorePort:
    if _use_json_store():
        return JsonProviderAccountStore(data_dir=settings.DATA_DIR)
    return MemoryProviderAccountStore()


@lru_cache
def get_profile_store() -> ProviderProfileStorePort:
    if _use_json_store():
        return JsonProviderProfileStore(data_dir=settings.DATA_DIR)
    return MemoryProviderProfileStore()


@lru_cache
def get_calendar() -> CalendarPort:
    if not settings.GOOGLE_CLIENT_ID and _is_local():
        logger.info("Using MockCalendar (Google credentials missing, ENV=dev/local)")
        return MockCalendar()
    return GoogleCalendarClient()


@lru_cache
def get_oauth() -> OAuthPort:
    if not settings.GOOGLE_CLIENT_ID and _is_local():
        logger.info("Using MockOAuth (Google credentials missing, ENV=dev/local)")
        return MockOAuth()
    return GoogleOAuthClient()


@lru_cache
def get_payment_gateway() -> PaymentGatewayPort:
    if not settings.STRIPE_SECRET_KEY:
        if _is_local():
            logger.info("Using MockPaymentGateway (STRIPE_SECRET_KEY missing, ENV=dev/local)")
            return MockPaymentGateway()
        raise ValueError("STRIPE_SECRET_KEY is required to take payments.")
    return StripePaymentGateway()


@lru_cache
def get_notifier() -> NotifierPort:
    if not settings.RESEND_API_KEY:
        # Email is best-effort; a missing key only disables it.
        logger.warning("RESEND_API_KEY missing, confirmation emails are logged only")
        return MockNotifier()
    return ResendNotifier()


def get_token_manager() -> TokenRefreshManager:
    return TokenRefreshManager(
        accounts=get_account_store(),
        oauth=get_oauth(),
        safety_margin_seconds=settings.TOKEN_SAFETY_MARGIN_SECONDS,
    )


def get_pattern():
    return availability_pattern(settings.AVAILABILITY_KEYWORD_FIRST, settings.AVAILABILITY_KEYWORD_SECOND)


def get_slots_use_case() -> GetSlotsUseCase:
    return GetSlotsUseCase(
        accounts=get_account_store(),
        bookings=get_booking_store(),
        tokens=get_token_manager(),
        scanner=CalendarScanner(calendar=get_calendar()),
        pattern=get_pattern(),
        slot_duration=timedelta(minutes=settings.SLOT_DURATION_MINUTES),
        lead_time=timedelta(minutes=settings.SLOT_LEAD_TIME_MINUTES),
        align_to_boundary=settings.SLOT_ALIGN_TO_BOUNDARY,
        default_lookahead=timedelta(days=settings.DEFAULT_LOOKAHEAD_DAYS),
    )


def get_booking_use_case() -> BookingUseCase:
    return BookingUseCase(
        bookings=get_booking_store(),
        profiles=get_profile_store(),
        payments=get_payment_gateway(),
        slot_duration=timedelta(minutes=settings.SLOT_DURATION_MINUTES),
        hold_ttl=timedelta(minutes=settings.HOLD_TTL_MINUTES),
    )


def get_confirm_booking_use_case() -> ConfirmBookingUseCase:
    return ConfirmBookingUseCase(
        bookings=get_booking_store(),
        accounts=get_account_store(),
        profiles=get_profile_store(),
        tokens=get_token_manager(),
        calendar=get_calendar(),
        payments=get_payment_gateway(),
        notifier=BookingNotifier(notifier=get_notifier()),
        pattern=get_pattern(),
    )


def get_connect_calendar_use_case() -> ConnectCalendarUseCase:
    return ConnectCalendarUseCase(accounts=get_account_store(), oauth=get_oauth())
