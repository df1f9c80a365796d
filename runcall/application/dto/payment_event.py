from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
CONFIRMING_EVENTS = frozenset({CHECKOUT_COMPLETED, ASYNC_PAYMENT_SUCCEEDED})


class CheckoutSession(BaseModel):
    session_id: str
    url: str | None = None


class PaymentConfirmation(BaseModel):
    session_id: str
    booking_id: str | None = None
    payment_intent_id: str | None = None
    paid: bool = True


class StripeEventDTO(BaseModel):
    id: str | None = None
    type: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    def extract_confirmation(self) -> PaymentConfirmation | None:
        if self.type not in CONFIRMING_EVENTS:
            return None
        session = self.data.get("object") or {}
        return session_to_confirmation(session)


def session_to_confirmation(session: dict[str, Any]) -> PaymentConfirmation | None:
    session_id = session.get("id")
    if not session_id:
        return None
    metadata = session.get("metadata") or {}
    booking_id = metadata.get("booking_id") or session.get("client_reference_id")
    payment_intent = session.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")
    return PaymentConfirmation(
        session_id=str(session_id),
        booking_id=str(booking_id) if booking_id else None,
        payment_intent_id=str(payment_intent) if payment_intent else None,
        paid=session.get("payment_status", "paid") in ("paid", "no_payment_required"),
    )
