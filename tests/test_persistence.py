"""
Tests for durable booking and account persistence.
"""

from __future__ import annotations

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from runcall.domain.entities.booking import Booking, BookingStatus
from runcall.domain.entities.provider_account import ProviderAccount
from runcall.infrastructure.store.json_store import (
    JsonBookingStore,
    JsonProviderAccountStore,
    JsonProviderProfileStore,
)
from runcall.infrastructure.store.memory_store import KeyedLocks

NOW = datetime(2030, 5, 6, 8, 0, tzinfo=timezone.utc)


def _booking(booking_id: str = "b1", provider_id: str = "e1") -> Booking:
    return Booking(
        id=booking_id,
        provider_id=provider_id,
        slot_start=datetime(2030, 5, 6, 9, 0, tzinfo=timezone.utc),
        slot_end=datetime(2030, 5, 6, 9, 30, tzinfo=timezone.utc),
        timezone="Europe/Paris",
        client_name="Ada",
        client_email="ada@example.com",
        hold_expires_at=NOW + timedelta(minutes=15),
        created_at=NOW,
    )


def test_booking_round_trips_through_disk():
    """A booking written by one store instance is readable by another."""
    with tempfile.TemporaryDirectory() as tmpdir:
        JsonBookingStore(data_dir=tmpdir).create(_booking())

        loaded = JsonBookingStore(data_dir=tmpdir).get("b1")

        assert loaded == _booking()
        assert loaded.status == BookingStatus.HOLD
        assert loaded.slot_start.tzinfo is not None


def test_update_if_status_only_applies_on_matching_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonBookingStore(data_dir=tmpdir)
        store.create(_booking())

        skipped = store.update_if_status("b1", frozenset({BookingStatus.PENDING_PAYMENT}), status=BookingStatus.CONFIRMED)
        assert skipped is None
        assert store.get("b1").status == BookingStatus.HOLD

        applied = store.update_if_status(
            "b1",
            frozenset({BookingStatus.HOLD}),
            status=BookingStatus.CONFIRMED,
            meeting_link="https://meet.google.com/abc",
            confirmed_at=NOW,
        )
        assert applied.status == BookingStatus.CONFIRMED
        assert store.get("b1").confirmed_at == NOW


def test_list_for_provider_filters_and_skips_unreadable_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonBookingStore(data_dir=tmpdir)
        store.create(_booking("b1", "e1"))
        store.create(_booking("b2", "e2"))
        (Path(tmpdir) / "bookings" / "broken.json").write_text("{not json", encoding="utf-8")

        assert [b.id for b in store.list_for_provider("e1")] == ["b1"]


def test_ids_cannot_escape_the_data_directory():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonBookingStore(data_dir=tmpdir)
        store.create(_booking("../../etc/passwd"))

        files = list((Path(tmpdir) / "bookings").glob("*.json"))
        assert len(files) == 1
        assert store.get("../../etc/passwd").id == "../../etc/passwd"


def test_account_refresh_token_survives_updates():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonProviderAccountStore(data_dir=tmpdir)
        store.upsert_account(ProviderAccount(owner_id="e1", access_token="a1", refresh_token="r1", expiry_ms=1))

        store.update_tokens("e1", access_token="a2", expiry_ms=2)
        store.upsert_account(ProviderAccount(owner_id="e1", access_token="a3", refresh_token=None, expiry_ms=3))

        account = JsonProviderAccountStore(data_dir=tmpdir).get_account("e1")
        assert account.access_token == "a3"
        assert account.expiry_ms == 3
        assert account.refresh_token == "r1"


def test_profiles_are_read_from_disk():
    with tempfile.TemporaryDirectory() as tmpdir:
        providers = Path(tmpdir) / "providers"
        providers.mkdir()
        (providers / "e1.json").write_text(
            json.dumps({"id": "e1", "name": "Coach", "price_cents": 4000, "unknown_field": True}),
            encoding="utf-8",
        )

        profile = JsonProviderProfileStore(data_dir=tmpdir).get_profile("e1")

        assert profile.name == "Coach"
        assert profile.has_fixed_price
        assert JsonProviderProfileStore(data_dir=tmpdir).get_profile("missing") is None


def test_keyed_locks_are_shared_while_held_and_dropped_after():
    locks = KeyedLocks()

    lock = locks.get("b1")
    with lock:
        assert locks.get("b1") is lock
        assert len(locks) == 1
    del lock

    assert len(locks) == 0
