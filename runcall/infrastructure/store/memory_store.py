from __future__ import annotations

import threading
import weakref
from dataclasses import replace
from typing import Any

from runcall.application.exceptions import NotFoundError
from runcall.application.ports.account_store import ProviderAccountStorePort, ProviderProfileStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.domain.entities.booking import Booking, BookingStatus
from runcall.domain.entities.provider_account import ProviderAccount, ProviderProfile


class KeyedLocks:
    """One lock per key, created on demand and dropped once nobody holds a reference."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._lock_lock = threading.Lock()

    def get(self, key: str) -> threading.Lock:
        with self._lock_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class MemoryBookingStore(BookingStorePort):
    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._data_lock = threading.Lock()
        self._locks = KeyedLocks()

    def create(self, booking: Booking) -> Booking:
        with self._data_lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            self._bookings[booking.id] = booking
        return booking

    def get(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def list_for_provider(self, provider_id: str) -> list[Booking]:
        return [b for b in list(self._bookings.values()) if b.provider_id == provider_id]

    def update(self, booking_id: str, **fields: Any) -> Booking:
        with self._data_lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            updated = replace(current, **fields)
            self._bookings[booking_id] = updated
            return updated

    def update_if_status(
        self,
        booking_id: str,
        allowed: frozenset[BookingStatus],
        **fields: Any,
    ) -> Booking | None:
        with self._data_lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            if current.status not in allowed:
                return None
            updated = replace(current, **fields)
            self._bookings[booking_id] = updated
            return updated

    def lock(self, booking_id: str) -> threading.Lock:
        return self._locks.get(booking_id)


class MemoryProviderAccountStore(ProviderAccountStorePort):
    def __init__(self, accounts: list[ProviderAccount] | None = None) -> None:
        self._accounts: dict[str, ProviderAccount] = {a.owner_id: a for a in accounts or []}
        self._data_lock = threading.Lock()

    def get_account(self, owner_id: str) -> ProviderAccount | None:
        return self._accounts.get(owner_id)

    def update_tokens(
        self,
        owner_id: str,
        access_token: str,
        expiry_ms: int,
        refresh_token: str | None = None,
    ) -> ProviderAccount:
        with self._data_lock:
            current = self._accounts.get(owner_id)
            if current is None:
                raise NotFoundError(f"Account {owner_id} not found")
            updated = replace(
                current,
                access_token=access_token,
                expiry_ms=expiry_ms,
                refresh_token=refresh_token or current.refresh_token,
            )
            self._accounts[owner_id] = updated
            return updated

    def upsert_account(self, account: ProviderAccount) -> ProviderAccount:
        with self._data_lock:
            current = self._accounts.get(account.owner_id)
            if current is not None and not account.refresh_token:
                account = replace(account, refresh_token=current.refresh_token)
            self._accounts[account.owner_id] = account
            return account


class MemoryProviderProfileStore(ProviderProfileStorePort):
    def __init__(self, profiles: list[ProviderProfile] | None = None) -> None:
        self._profiles: dict[str, ProviderProfile] = {p.id: p for p in profiles or []}

    def get_profile(self, provider_id: str) -> ProviderProfile | None:
        return self._profiles.get(provider_id)

    def put_profile(self, profile: ProviderProfile) -> None:
        self._profiles[profile.id] = profile
