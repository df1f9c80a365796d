from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from runcall.application.exceptions import ProviderError, RefreshFailed
from runcall.application.ports.oauth import OAuthPort
from runcall.core.config import settings
from runcall.domain.entities.provider_account import TokenGrant

SCOPES = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
)


class GoogleOAuthClient(OAuthPort):
    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._client_id = client_id or settings.GOOGLE_CLIENT_ID
        self._client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self._redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

        if not self._client_id or not self._client_secret:
            raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required for Google OAuth")

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri or "",
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{settings.GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenGrant:
        return self._token_request(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self._redirect_uri or "",
            }
        )

    def refresh(self, refresh_token: str) -> TokenGrant:
        return self._token_request({"refresh_token": refresh_token, "grant_type": "refresh_token"})

    def fetch_email(self, access_token: str) -> str | None:
        try:
            resp = self._client.get(
                settings.GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            self._logger.warning("Userinfo request failed", extra={"error": str(e)})
            return None
        if resp.status_code >= 400:
            self._logger.warning("Userinfo request rejected", extra={"status": resp.status_code})
            return None
        return resp.json().get("email")

    def _token_request(self, form: dict[str, str]) -> TokenGrant:
        data = {"client_id": self._client_id, "client_secret": self._client_secret, **form}
        try:
            resp = self._client.post(settings.GOOGLE_TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise ProviderError(f"Token endpoint unreachable: {e}") from e

        payload = _json_or_text(resp)
        if resp.status_code >= 400 or not isinstance(payload, dict) or not payload.get("access_token"):
            self._logger.error(
                "Token request rejected",
                extra={"status": resp.status_code, "reason": form["grant_type"], "error": str(payload)},
            )
            raise RefreshFailed(f"Token request failed ({resp.status_code})", payload=payload)

        return TokenGrant(
            access_token=str(payload["access_token"]),
            expires_in=int(payload.get("expires_in") or 3600),
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
        )


def _json_or_text(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text
