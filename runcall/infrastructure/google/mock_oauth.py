from __future__ import annotations

import logging
import uuid
from urllib.parse import urlencode

from runcall.application.exceptions import RefreshFailed
from runcall.application.ports.oauth import OAuthPort
from runcall.domain.entities.provider_account import TokenGrant


class MockOAuth(OAuthPort):
    def __init__(self, email: str | None = "expert@example.com") -> None:
        self._email = email
        self.revoked: set[str] = set()
        self.refresh_calls = 0
        self._logger = logging.getLogger(__name__)

    def authorization_url(self, state: str) -> str:
        return f"http://localhost/mock-oauth?{urlencode({'state': state})}"

    def exchange_code(self, code: str) -> TokenGrant:
        return TokenGrant(
            access_token=f"mock_access_{uuid.uuid4().hex[:8]}",
            refresh_token=f"mock_refresh_{code}",
        )

    def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls += 1
        if refresh_token in self.revoked:
            raise RefreshFailed("Token has been expired or revoked.", payload={"error": "invalid_grant"})
        self._logger.info("Mock token refreshed")
        return TokenGrant(access_token=f"mock_access_{uuid.uuid4().hex[:8]}")

    def fetch_email(self, access_token: str) -> str | None:
        return self._email
