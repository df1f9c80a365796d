from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import asdict, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from runcall.application.exceptions import NotFoundError
from runcall.application.ports.account_store import ProviderAccountStorePort, ProviderProfileStorePort
from runcall.application.ports.booking_store import BookingStorePort
from runcall.domain.entities.booking import Booking, BookingStatus
from runcall.domain.entities.provider_account import ProviderAccount, ProviderProfile
from runcall.infrastructure.store.memory_store import KeyedLocks

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = frozenset(
    {"slot_start", "slot_end", "hold_expires_at", "payment_expires_at", "confirmed_at", "created_at"}
)
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


class _JsonDirectory:
    """One JSON document per key, written atomically through a temp file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.mkdir(parents=True, exist_ok=True)

    def file_for(self, key: str) -> Path:
        return self._path / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def load(self, key: str) -> dict[str, Any] | None:
        file_path = self.file_for(key)
        if not file_path.exists():
            return None
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key: str, data: dict[str, Any]) -> None:
        file_path = self.file_for(key)
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(file_path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def load_all(self) -> list[dict[str, Any]]:
        documents: list[dict[str, Any]] = []
        for file_path in sorted(self._path.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    documents.append(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Skipping unreadable record", extra={"reason": file_path.name, "error": str(e)})
        return documents


class JsonBookingStore(BookingStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._dir = _JsonDirectory(Path(data_dir) / "bookings")
        self._write_locks = KeyedLocks()
        self._booking_locks = KeyedLocks()

    def create(self, booking: Booking) -> Booking:
        with self._write_locks.get(booking.id):
            if self._dir.load(booking.id) is not None:
                raise ValueError(f"Booking {booking.id} already exists")
            self._dir.save(booking.id, _serialize_booking(booking))
        return booking

    def get(self, booking_id: str) -> Booking | None:
        data = self._dir.load(booking_id)
        return _deserialize_booking(data) if data else None

    def list_for_provider(self, provider_id: str) -> list[Booking]:
        return [
            _deserialize_booking(data)
            for data in self._dir.load_all()
            if data.get("provider_id") == provider_id
        ]

    def update(self, booking_id: str, **fields: Any) -> Booking:
        with self._write_locks.get(booking_id):
            current = self.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            updated = replace(current, **fields)
            self._dir.save(booking_id, _serialize_booking(updated))
            return updated

    def update_if_status(
        self,
        booking_id: str,
        allowed: frozenset[BookingStatus],
        **fields: Any,
    ) -> Booking | None:
        with self._write_locks.get(booking_id):
            current = self.get(booking_id)
            if current is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            if current.status not in allowed:
                return None
            updated = replace(current, **fields)
            self._dir.save(booking_id, _serialize_booking(updated))
            return updated

    def lock(self, booking_id: str) -> threading.Lock:
        # Process-local; multi-process deployments rely on the conditional update and the calendar's event id check.
        return self._booking_locks.get(booking_id)


class JsonProviderAccountStore(ProviderAccountStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._dir = _JsonDirectory(Path(data_dir) / "accounts")
        self._locks = KeyedLocks()

    def get_account(self, owner_id: str) -> ProviderAccount | None:
        data = self._dir.load(owner_id)
        return _from_dict(ProviderAccount, data) if data else None

    def update_tokens(
        self,
        owner_id: str,
        access_token: str,
        expiry_ms: int,
        refresh_token: str | None = None,
    ) -> ProviderAccount:
        with self._locks.get(owner_id):
            current = self.get_account(owner_id)
            if current is None:
                raise NotFoundError(f"Account {owner_id} not found")
            updated = replace(
                current,
                access_token=access_token,
                expiry_ms=expiry_ms,
                refresh_token=refresh_token or current.refresh_token,
            )
            self._dir.save(owner_id, asdict(updated))
            return updated

    def upsert_account(self, account: ProviderAccount) -> ProviderAccount:
        with self._locks.get(account.owner_id):
            current = self.get_account(account.owner_id)
            if current is not None and not account.refresh_token:
                account = replace(account, refresh_token=current.refresh_token)
            self._dir.save(account.owner_id, asdict(account))
            return account


class JsonProviderProfileStore(ProviderProfileStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._dir = _JsonDirectory(Path(data_dir) / "providers")

    def get_profile(self, provider_id: str) -> ProviderProfile | None:
        data = self._dir.load(provider_id)
        return _from_dict(ProviderProfile, data) if data else None


def _serialize_booking(booking: Booking) -> dict[str, Any]:
    data = asdict(booking)
    data["status"] = booking.status.value
    for name in _DATETIME_FIELDS:
        value = data.get(name)
        data[name] = value.isoformat() if value else None
    return data


def _deserialize_booking(data: dict[str, Any]) -> Booking:
    values = dict(data)
    values["status"] = BookingStatus(values.get("status") or BookingStatus.HOLD.value)
    for name in _DATETIME_FIELDS:
        raw = values.get(name)
        values[name] = datetime.fromisoformat(raw) if raw else None
    return _from_dict(Booking, values)


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})
