from __future__ import annotations

from abc import ABC, abstractmethod

from runcall.domain.entities.provider_account import ProviderAccount, ProviderProfile


class ProviderAccountStorePort(ABC):
    @abstractmethod
    def get_account(self, owner_id: str) -> ProviderAccount | None:
        raise NotImplementedError

    @abstractmethod
    def update_tokens(
        self,
        owner_id: str,
        access_token: str,
        expiry_ms: int,
        refresh_token: str | None = None,
    ) -> ProviderAccount:
        """
        Single write path for refreshed credentials.
        The stored refresh token is only replaced when a new one is passed.
        """
        raise NotImplementedError

    @abstractmethod
    def upsert_account(self, account: ProviderAccount) -> ProviderAccount:
        """Create or replace an account (OAuth consent). Keeps the stored refresh token if the new one is None."""
        raise NotImplementedError


class ProviderProfileStorePort(ABC):
    @abstractmethod
    def get_profile(self, provider_id: str) -> ProviderProfile | None:
        raise NotImplementedError
