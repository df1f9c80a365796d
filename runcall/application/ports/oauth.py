from __future__ import annotations

from abc import ABC, abstractmethod

from runcall.domain.entities.provider_account import TokenGrant


class OAuthPort(ABC):
    @abstractmethod
    def authorization_url(self, state: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code. Raises RefreshFailed on rejection."""
        raise NotImplementedError

    @abstractmethod
    def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token. Raises RefreshFailed on rejection."""
        raise NotImplementedError

    @abstractmethod
    def fetch_email(self, access_token: str) -> str | None:
        raise NotImplementedError
