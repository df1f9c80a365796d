from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime

from runcall.application.dto.payment_event import (
    CheckoutSession,
    PaymentConfirmation,
    StripeEventDTO,
    session_to_confirmation,
)
from runcall.application.exceptions import InvalidSignature, PaymentError
from runcall.application.ports.payment_gateway import PaymentGatewayPort
from runcall.core.config import settings


class MockPaymentGateway(PaymentGatewayPort):
    """
    Local stand-in for Stripe. Sessions are kept in memory; webhook bodies are
    accepted unsigned, which only the dev/local wiring allows.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, dict] = {}
        self._logger = logging.getLogger(__name__)

    def create_checkout_session(
        self,
        booking_id: str,
        amount_cents: int,
        currency: str,
        label: str,
        customer_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> CheckoutSession:
        session_id = f"cs_mock_{uuid.uuid4().hex[:16]}"
        self.sessions[session_id] = {
            "id": session_id,
            "metadata": {"booking_id": booking_id},
            "client_reference_id": booking_id,
            "status": "open",
            "payment_status": "unpaid",
            "amount_total": amount_cents,
            "currency": currency,
            "customer_email": customer_email,
            "expires_at": int(expires_at.timestamp()) if expires_at else None,
        }
        url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/success.html?session_id={session_id}"
        self._logger.info("Mock checkout session created", extra={"booking_id": booking_id, "reason": session_id})
        return CheckoutSession(session_id=session_id, url=url)

    def mark_paid(self, session_id: str, payment_intent_id: str | None = None) -> None:
        session = self.sessions[session_id]
        if session["status"] != "open":
            raise PaymentError(f"Checkout session {session_id} is {session['status']}")
        session["payment_status"] = "paid"
        session["status"] = "complete"
        session["payment_intent"] = payment_intent_id or f"pi_mock_{uuid.uuid4().hex[:16]}"

    def expire_session(self, session_id: str) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentError(f"No such checkout session: {session_id}")
        if session["payment_status"] == "paid":
            raise PaymentError(f"Checkout session {session_id} is already complete")
        session["status"] = "expired"

    def parse_webhook(self, body: bytes, signature: str | None) -> PaymentConfirmation | None:
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise InvalidSignature(f"Unreadable webhook body: {e}") from e
        return StripeEventDTO.model_validate(payload).extract_confirmation()

    def retrieve_session(self, session_id: str) -> PaymentConfirmation:
        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentError(f"No such checkout session: {session_id}")
        return session_to_confirmation(session)
