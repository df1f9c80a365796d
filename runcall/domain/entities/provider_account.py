from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderAccount:
    owner_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    expiry_ms: int | None = None  # epoch milliseconds
    calendar_id: str = "primary"
    email: str | None = None
    scope: str | None = None
    token_type: str | None = None
    updated_at: float | None = None


@dataclass(frozen=True)
class ProviderProfile:
    id: str
    name: str | None = None
    email: str | None = None
    price_cents: int | None = None  # fixed price; overrides the client-chosen tier
    currency: str = "usd"
    timezone: str = "UTC"

    @property
    def has_fixed_price(self) -> bool:
        return self.price_cents is not None and self.price_cents > 0


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_in: int = 3600
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str | None = None
