"""
Tests for the Google OAuth connect flow.
"""

from __future__ import annotations

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from runcall.application.exceptions import RefreshFailed, ValidationError
from runcall.application.use_cases.connect_calendar import ConnectCalendarUseCase, parse_state
from runcall.domain.entities.provider_account import ProviderAccount, TokenGrant
from runcall.infrastructure.google.google_oauth_client import GoogleOAuthClient
from runcall.infrastructure.google.mock_oauth import MockOAuth
from runcall.infrastructure.store.memory_store import MemoryProviderAccountStore


def test_callback_creates_account():
    store = MemoryProviderAccountStore()
    uc = ConnectCalendarUseCase(accounts=store, oauth=MockOAuth(email="coach@example.com"))

    account = uc.complete("code1", json.dumps({"expert_id": "e1"}), now_ts=1_000)

    assert account.owner_id == "e1"
    assert account.refresh_token == "mock_refresh_code1"
    assert account.expiry_ms == (1_000 + 3600) * 1000
    assert store.get_account("e1").email == "coach@example.com"


def test_reconnect_without_refresh_token_keeps_stored_one():
    store = MemoryProviderAccountStore(
        [ProviderAccount(owner_id="e1", access_token="a", refresh_token="keep-me", calendar_id="work@x.com")]
    )
    oauth = MockOAuth()
    oauth.exchange_code = lambda code: TokenGrant(access_token="fresh")
    uc = ConnectCalendarUseCase(accounts=store, oauth=oauth)

    uc.complete("code2", json.dumps({"expert_id": "e1"}), now_ts=1_000)

    account = store.get_account("e1")
    assert account.access_token == "fresh"
    assert account.refresh_token == "keep-me"
    assert account.calendar_id == "work@x.com"


@pytest.mark.parametrize("state", ["not json", json.dumps({"other": 1}), json.dumps(["e1"])])
def test_bad_state_is_rejected(state):
    with pytest.raises(ValidationError):
        parse_state(state)


def test_callback_requires_code_and_state():
    uc = ConnectCalendarUseCase(MemoryProviderAccountStore(), MockOAuth())
    with pytest.raises(ValidationError):
        uc.complete("", json.dumps({"expert_id": "e1"}))
    with pytest.raises(ValidationError):
        uc.complete("code", "")


def test_authorization_url_requests_offline_access():
    oauth = GoogleOAuthClient(client_id="cid", client_secret="secret", redirect_uri="https://x.test/cb")
    uc = ConnectCalendarUseCase(accounts=MemoryProviderAccountStore(), oauth=oauth)

    query = parse_qs(urlparse(uc.authorization_url("e1")).query)

    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert json.loads(query["state"][0]) == {"expert_id": "e1"}
    assert "https://www.googleapis.com/auth/calendar.events" in query["scope"][0].split()


def test_token_endpoint_rejection_raises_refresh_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Bad Request"})

    oauth = GoogleOAuthClient(
        client_id="cid",
        client_secret="secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(RefreshFailed) as excinfo:
        oauth.refresh("r1")
    assert excinfo.value.payload["error"] == "invalid_grant"


def test_token_endpoint_success_parses_grant():
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode("utf-8"))
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["r1"]
        return httpx.Response(200, json={"access_token": "a1", "expires_in": 1800, "token_type": "Bearer"})

    oauth = GoogleOAuthClient(
        client_id="cid",
        client_secret="secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    grant = oauth.refresh("r1")
    assert grant.access_token == "a1"
    assert grant.expires_in == 1800
    assert grant.refresh_token is None
