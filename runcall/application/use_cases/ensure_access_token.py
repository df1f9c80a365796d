from __future__ import annotations

import logging
from datetime import datetime, timezone

from runcall.application.exceptions import ReconnectRequired, RefreshFailed
from runcall.application.ports.account_store import ProviderAccountStorePort
from runcall.application.ports.oauth import OAuthPort
from runcall.domain.entities.provider_account import ProviderAccount

MIN_SAFETY_MARGIN_SECONDS = 60


class TokenRefreshManager:
    def __init__(
        self,
        accounts: ProviderAccountStorePort,
        oauth: OAuthPort,
        safety_margin_seconds: int = MIN_SAFETY_MARGIN_SECONDS,
    ) -> None:
        self._accounts = accounts
        self._oauth = oauth
        self._safety_margin_ms = max(safety_margin_seconds, MIN_SAFETY_MARGIN_SECONDS) * 1000
        self._logger = logging.getLogger(__name__)

    def ensure_access_token(self, account: ProviderAccount, now: datetime | None = None) -> str:
        """
        Return a usable access token for ``account``, refreshing it when it is
        missing or within the safety margin of its expiry.

        Raises:
            ReconnectRequired: no refresh token stored.
            RefreshFailed: the token endpoint rejected the refresh.
        """
        now_ms = _epoch_ms(now or datetime.now(timezone.utc))

        if account.access_token and not self._is_expiring(account, now_ms):
            return account.access_token

        if not account.refresh_token:
            self._logger.warning("Refresh token missing", extra={"provider_id": account.owner_id})
            raise ReconnectRequired(account.owner_id)

        try:
            grant = self._oauth.refresh(account.refresh_token)
        except RefreshFailed as e:
            self._logger.error(
                "Token refresh failed",
                extra={"provider_id": account.owner_id, "error": str(e)},
            )
            raise

        updated = self._accounts.update_tokens(
            account.owner_id,
            access_token=grant.access_token,
            expiry_ms=now_ms + grant.expires_in * 1000,
            refresh_token=grant.refresh_token,
        )
        self._logger.info("Access token refreshed", extra={"provider_id": account.owner_id})
        return updated.access_token or grant.access_token

    def _is_expiring(self, account: ProviderAccount, now_ms: int) -> bool:
        if account.expiry_ms is None:
            return False
        return now_ms >= int(account.expiry_ms) - self._safety_margin_ms


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)
