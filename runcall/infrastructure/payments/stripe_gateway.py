from __future__ import annotations

import json
import logging
from datetime import datetime
from urllib.parse import quote

import stripe

from runcall.application.dto.payment_event import (
    CheckoutSession,
    PaymentConfirmation,
    StripeEventDTO,
    session_to_confirmation,
)
from runcall.application.exceptions import InvalidSignature, PaymentError
from runcall.application.ports.payment_gateway import PaymentGatewayPort
from runcall.core.config import settings

SIGNATURE_TOLERANCE_SECONDS = 300


class StripePaymentGateway(PaymentGatewayPort):
    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self._secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self._public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self._logger = logging.getLogger(__name__)

        if not self._secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for Stripe payments")

    def create_checkout_session(
        self,
        booking_id: str,
        amount_cents: int,
        currency: str,
        label: str,
        customer_email: str | None = None,
        expires_at: datetime | None = None,
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": label},
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": {"booking_id": booking_id},
            "client_reference_id": booking_id,
            "success_url": f"{self._public_base_url}/success.html?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self._public_base_url}/support.html?booking_id={quote(booking_id)}&canceled=1",
        }
        if customer_email:
            params["customer_email"] = customer_email
        if expires_at is not None:
            params["expires_at"] = int(expires_at.timestamp())

        try:
            session = stripe.checkout.Session.create(api_key=self._secret_key, **params)
        except stripe.StripeError as e:
            self._logger.error("Stripe checkout creation failed", extra={"booking_id": booking_id, "error": str(e)})
            raise PaymentError(f"Stripe error: {e.user_message or e}") from e

        self._logger.info("Checkout session created", extra={"booking_id": booking_id, "reason": session.id})
        return CheckoutSession(session_id=session.id, url=session.url)

    def parse_webhook(self, body: bytes, signature: str | None) -> PaymentConfirmation | None:
        if not self._webhook_secret:
            raise InvalidSignature("Missing STRIPE_WEBHOOK_SECRET")
        if not signature:
            raise InvalidSignature("Missing stripe-signature header")

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignature(f"Unreadable webhook body: {e}") from e

        # Signed over the raw text; verify before parsing.
        try:
            stripe.WebhookSignature.verify_header(
                text,
                signature,
                self._webhook_secret,
                SIGNATURE_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(str(e)) from e

        try:
            payload = json.loads(text)
        except ValueError as e:
            raise InvalidSignature(f"Unreadable webhook body: {e}") from e

        event = StripeEventDTO.model_validate(payload)
        self._logger.info("Stripe event received", extra={"reason": event.type})
        return event.extract_confirmation()

    def expire_session(self, session_id: str) -> None:
        try:
            stripe.checkout.Session.expire(session_id, api_key=self._secret_key)
        except stripe.StripeError as e:
            self._logger.error("Stripe session expiry failed", extra={"reason": session_id, "error": str(e)})
            raise PaymentError(f"Stripe error: {e.user_message or e}") from e

        self._logger.info("Checkout session expired", extra={"reason": session_id})

    def retrieve_session(self, session_id: str) -> PaymentConfirmation:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)
        except stripe.StripeError as e:
            self._logger.error("Stripe session lookup failed", extra={"reason": session_id, "error": str(e)})
            raise PaymentError(f"Stripe error: {e.user_message or e}") from e

        confirmation = session_to_confirmation(session.to_dict())
        if confirmation is None:
            raise PaymentError(f"Checkout session {session_id} has no id")
        return confirmation
