from __future__ import annotations

import json
import logging
import time

from runcall.application.exceptions import ValidationError
from runcall.application.ports.account_store import ProviderAccountStorePort
from runcall.application.ports.oauth import OAuthPort
from runcall.domain.entities.provider_account import ProviderAccount


class ConnectCalendarUseCase:
    def __init__(self, accounts: ProviderAccountStorePort, oauth: OAuthPort) -> None:
        self._accounts = accounts
        self._oauth = oauth
        self._logger = logging.getLogger(__name__)

    def authorization_url(self, provider_id: str) -> str:
        provider_id = (provider_id or "").strip()
        if not provider_id:
            raise ValidationError("Missing expert_id")
        return self._oauth.authorization_url(json.dumps({"expert_id": provider_id}))

    def complete(self, code: str, state: str, now_ts: float | None = None) -> ProviderAccount:
        """OAuth callback: exchange the code and upsert the account, keeping any stored refresh token."""
        if not code or not state:
            raise ValidationError("Missing code/state")
        provider_id = parse_state(state)

        grant = self._oauth.exchange_code(code)
        email = self._oauth.fetch_email(grant.access_token)
        now_ts = now_ts if now_ts is not None else time.time()

        existing = self._accounts.get_account(provider_id)
        account = ProviderAccount(
            owner_id=provider_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expiry_ms=int((now_ts + grant.expires_in) * 1000),
            calendar_id=existing.calendar_id if existing else "primary",
            email=email or (existing.email if existing else None),
            scope=grant.scope,
            token_type=grant.token_type,
            updated_at=now_ts,
        )
        saved = self._accounts.upsert_account(account)
        self._logger.info(
            "Calendar connected",
            extra={"provider_id": provider_id, "reason": "new" if existing is None else "reconnect"},
        )
        return saved


def parse_state(state: str) -> str:
    try:
        payload = json.loads(state)
    except (TypeError, ValueError):
        raise ValidationError("Invalid state")
    provider_id = str((payload or {}).get("expert_id") or "").strip() if isinstance(payload, dict) else ""
    if not provider_id:
        raise ValidationError("Missing expert_id in state")
    return provider_id
