from __future__ import annotations

from typing import Any


class AuthError(RuntimeError):
    """Calendar credentials are unusable; the account owner has to act (not retried)."""
    pass


class ReconnectRequired(AuthError):
    """No refresh token is stored; the provider must go through OAuth consent again."""

    def __init__(self, owner_id: str) -> None:
        super().__init__(f"Calendar reconnect required for {owner_id}")
        self.owner_id = owner_id


class RefreshFailed(AuthError):
    """Token endpoint rejected the refresh token. Carries the provider payload for diagnostics."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class ProviderError(RuntimeError):
    """Calendar API call failed (network error or non-2xx answer)."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class EventConflict(ProviderError):
    """An event with the requested id already exists on the calendar."""
    pass


class ValidationError(ValueError):
    """Request is malformed or not allowed in the booking's current state. No side effects."""
    pass


class NotFoundError(LookupError):
    """Booking, provider or account does not exist."""
    pass


class IdempotentNoop(Exception):
    """Confirmation re-delivered for an already confirmed booking. Treated as success."""

    def __init__(self, result: Any) -> None:
        super().__init__("Booking already confirmed")
        self.result = result


class ReconciliationError(RuntimeError):
    """Paid booking could not be confirmed (token refresh or event creation failed).

    The booking stays ``pending_payment`` and confirmation is safe to retry.
    """
    pass


class PaymentError(RuntimeError):
    """Payment gateway call failed."""
    pass


class InvalidSignature(ValueError):
    """Webhook payload failed authenticity verification."""
    pass
