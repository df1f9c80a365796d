"""
Tests for the HTTP layer.
"""

from __future__ import annotations

import json

from fastapi.testclient import TestClient

from runcall.application.use_cases.booking import BookingUseCase
from runcall.application.use_cases.confirm_booking import ConfirmBookingUseCase
from runcall.application.use_cases.connect_calendar import ConnectCalendarUseCase
from runcall.application.use_cases.ensure_access_token import TokenRefreshManager
from runcall.application.use_cases.get_slots import GetSlotsUseCase
from runcall.application.use_cases.notify_booking import BookingNotifier
from runcall.application.use_cases.scan_calendars import CalendarScanner
from runcall.domain.entities.provider_account import ProviderAccount, ProviderProfile
from runcall.infrastructure.calendar.mock_calendar import MockCalendar
from runcall.infrastructure.email.mock_notifier import MockNotifier
from runcall.infrastructure.google.mock_oauth import MockOAuth
from runcall.infrastructure.payments.mock_gateway import MockPaymentGateway
from runcall.infrastructure.store.memory_store import (
    MemoryBookingStore,
    MemoryProviderAccountStore,
    MemoryProviderProfileStore,
)
from runcall.main import app
from runcall.wiring import dependencies


def _client():
    bookings = MemoryBookingStore()
    accounts = MemoryProviderAccountStore([ProviderAccount(owner_id="e1", access_token="tok", refresh_token="r")])
    profiles = MemoryProviderProfileStore([ProviderProfile(id="e1", name="Coach", email="coach@example.com")])
    oauth = MockOAuth()
    calendar = MockCalendar()
    calendar.add_event(
        "primary",
        {"summary": "RunCall", "start": {"dateTime": "2030-05-06T09:00:00Z"}, "end": {"dateTime": "2030-05-06T10:00:00Z"}},
    )
    payments = MockPaymentGateway()
    tokens = TokenRefreshManager(accounts=accounts, oauth=oauth)

    app.dependency_overrides = {
        dependencies.get_slots_use_case: lambda: GetSlotsUseCase(
            accounts=accounts, bookings=bookings, tokens=tokens, scanner=CalendarScanner(calendar)
        ),
        dependencies.get_booking_use_case: lambda: BookingUseCase(
            bookings=bookings, profiles=profiles, payments=payments
        ),
        dependencies.get_confirm_booking_use_case: lambda: ConfirmBookingUseCase(
            bookings=bookings,
            accounts=accounts,
            profiles=profiles,
            tokens=tokens,
            calendar=calendar,
            payments=payments,
            notifier=BookingNotifier(MockNotifier()),
        ),
        dependencies.get_connect_calendar_use_case: lambda: ConnectCalendarUseCase(accounts=accounts, oauth=oauth),
    }
    return TestClient(app), payments, bookings


def _hold(client: TestClient, start: str = "2030-05-06T09:00:00Z", end: str = "2030-05-06T09:30:00Z"):
    return client.post(
        "/api/bookings/hold",
        json={
            "expert_id": "e1",
            "slot_start": start,
            "slot_end": end,
            "timezone": "Europe/Paris",
            "user_name": "Ada",
            "user_email": "ada@example.com",
        },
    )


def _webhook_body(booking_id: str, session_id: str, payment_status: str = "paid") -> bytes:
    session = {
        "id": session_id,
        "metadata": {"booking_id": booking_id},
        "payment_intent": "pi_9",
        "payment_status": payment_status,
    }
    return json.dumps({"type": "checkout.session.completed", "data": {"object": session}}).encode("utf-8")


def test_health():
    client, _, _ = _client()
    assert client.get("/health").json() == {"status": "ok"}


def test_slots_endpoint_returns_utc_slots():
    client, _, _ = _client()
    resp = client.get(
        "/api/experts/slots",
        params={"expert_id": "e1", "from": "2030-05-06T00:00:00Z", "to": "2030-05-07T00:00:00Z"},
    )
    assert resp.status_code == 200
    assert resp.json() == [
        {"start": "2030-05-06T09:00:00Z", "end": "2030-05-06T09:30:00Z"},
        {"start": "2030-05-06T09:30:00Z", "end": "2030-05-06T10:00:00Z"},
    ]


def test_slots_for_unknown_expert_is_404_and_bad_window_is_400():
    client, _, _ = _client()
    assert client.get("/api/experts/slots", params={"expert_id": "nobody"}).status_code == 404
    resp = client.get(
        "/api/experts/slots",
        params={"expert_id": "e1", "from": "2030-05-07T00:00:00Z", "to": "2030-05-06T00:00:00Z"},
    )
    assert resp.status_code == 400


def test_held_slot_disappears_from_listing():
    client, _, _ = _client()
    assert _hold(client).status_code == 200

    resp = client.get(
        "/api/experts/slots",
        params={"expert_id": "e1", "from": "2030-05-06T00:00:00Z", "to": "2030-05-07T00:00:00Z"},
    )
    assert [s["start"] for s in resp.json()] == ["2030-05-06T09:30:00Z"]
    assert _hold(client).status_code == 400


def test_full_booking_flow():
    client, payments, bookings = _client()
    booking_id = _hold(client).json()["booking_id"]

    info = client.get("/api/bookings/info", params={"booking_id": booking_id}).json()
    assert info["hasFixedPrice"] is False
    assert info["priceTiers"] == [29, 49, 79]

    checkout = client.post("/api/stripe/checkout-session", json={"booking_id": booking_id, "price_tier": 29})
    assert checkout.status_code == 200
    session_id = checkout.json()["session_id"]

    resp = client.post("/webhooks/stripe", content=_webhook_body(booking_id, session_id))
    assert resp.status_code == 200
    assert bookings.get(booking_id).status.value == "confirmed"

    confirm = client.post("/api/bookings/confirm", json={"booking_id": booking_id})
    assert confirm.status_code == 200
    assert confirm.json()["already_confirmed"] is True
    assert confirm.json()["meeting_link"]


def test_manual_confirm_before_payment_is_rejected():
    client, _, _ = _client()
    booking_id = _hold(client).json()["booking_id"]
    checkout = client.post("/api/stripe/checkout-session", json={"booking_id": booking_id, "price_tier": 49})
    assert checkout.status_code == 200

    resp = client.post("/api/bookings/confirm", json={"booking_id": booking_id})
    assert resp.status_code == 400


def test_webhook_for_unknown_booking_is_acknowledged():
    client, _, _ = _client()
    resp = client.post("/webhooks/stripe", content=_webhook_body("missing", "cs_x"))
    assert resp.status_code == 200


def test_webhook_with_unreadable_body_is_rejected():
    client, _, _ = _client()
    resp = client.post("/webhooks/stripe", content=b"\xff\xfe")
    assert resp.status_code == 400


def test_cancel_and_unknown_booking():
    client, _, _ = _client()
    booking_id = _hold(client).json()["booking_id"]

    resp = client.post("/api/bookings/cancel", json={"booking_id": booking_id})
    assert resp.json() == {"booking_id": booking_id, "status": "canceled"}
    assert client.post("/api/bookings/cancel", json={"booking_id": "missing"}).status_code == 404


def test_google_connect_and_callback_redirect():
    client, _, _ = _client()

    connect = client.get("/api/google/connect", params={"expert_id": "e2"}, follow_redirects=False)
    assert connect.status_code == 302
    assert "mock-oauth" in connect.headers["location"]

    callback = client.get(
        "/api/google/callback",
        params={"code": "abc", "state": json.dumps({"expert_id": "e2"})},
        follow_redirects=False,
    )
    assert callback.status_code == 302
    assert callback.headers["location"] == "/dashboard.html?expert_id=e2&connected=1"

    assert client.get("/api/google/callback", params={"code": "abc", "state": "oops"}, follow_redirects=False).status_code == 400


def test_unpaid_checkout_webhook_is_acknowledged_without_confirming():
    client, _, bookings = _client()
    booking_id = _hold(client).json()["booking_id"]
    session_id = client.post(
        "/api/stripe/checkout-session", json={"booking_id": booking_id, "price_tier": 29}
    ).json()["session_id"]

    resp = client.post("/webhooks/stripe", content=_webhook_body(booking_id, session_id, payment_status="unpaid"))

    assert resp.status_code == 200
    assert bookings.get(booking_id).status.value == "pending_payment"


def test_payment_landing_after_cancel_is_kept_on_the_booking():
    client, payments, bookings = _client()
    booking_id = _hold(client).json()["booking_id"]
    session_id = client.post(
        "/api/stripe/checkout-session", json={"booking_id": booking_id, "price_tier": 29}
    ).json()["session_id"]

    assert client.post("/api/bookings/cancel", json={"booking_id": booking_id}).status_code == 200
    assert payments.sessions[session_id]["status"] == "expired"

    resp = client.post("/webhooks/stripe", content=_webhook_body(booking_id, session_id))

    assert resp.status_code == 200
    booking = bookings.get(booking_id)
    assert booking.status.value == "canceled"
    assert booking.payment_intent_id == "pi_9"
    assert booking.last_error
