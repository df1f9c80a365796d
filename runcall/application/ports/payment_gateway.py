from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from runcall.application.dto.payment_event import CheckoutSession, PaymentConfirmation


class PaymentGatewayPort(ABC):
    @abstractmethod
    def create_checkout_session(
        self,
        booking_id: str,
        amount_cents: int,
        currency: str,
        label: str,
        customer_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> CheckoutSession:
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, body: bytes, signature: str | None) -> PaymentConfirmation | None:
        """
        Verify and parse a webhook delivery.
        Raises InvalidSignature; returns None for event types that do not confirm a payment.
        """
        raise NotImplementedError

    @abstractmethod
    def expire_session(self, session_id: str) -> None:
        """
        Close an open checkout session so it can no longer be paid.
        Raises PaymentError when the session cannot be expired (already paid, for instance).
        """
        raise NotImplementedError

    @abstractmethod
    def retrieve_session(self, session_id: str) -> PaymentConfirmation:
        """Look up a checkout session, used by the manual confirmation fallback."""
        raise NotImplementedError
