from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

from runcall.domain.entities.booking import Booking, BookingStatus


class BookingStorePort(ABC):
    @abstractmethod
    def create(self, booking: Booking) -> Booking:
        raise NotImplementedError

    @abstractmethod
    def get(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def list_for_provider(self, provider_id: str) -> list[Booking]:
        raise NotImplementedError

    @abstractmethod
    def update(self, booking_id: str, **fields: Any) -> Booking:
        """Apply a partial update. Raises NotFoundError for an unknown id."""
        raise NotImplementedError

    @abstractmethod
    def update_if_status(
        self,
        booking_id: str,
        allowed: frozenset[BookingStatus],
        **fields: Any,
    ) -> Booking | None:
        """
        Conditional update: applies ``fields`` only if the current status is in ``allowed``.
        Returns the updated booking, or None when the status did not match.
        """
        raise NotImplementedError

    @abstractmethod
    def lock(self, booking_id: str) -> AbstractContextManager[None]:
        """Mutual exclusion scope for one booking id."""
        raise NotImplementedError
