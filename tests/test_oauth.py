"""Tests for eBay OAuth handling"""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from unittest.mock import AsyncMock, patch

from stockforge.api.oauth import EbayOAuth, PendingAuthRegistry
from stockforge.errors import AccountNotAuthenticated
from stockforge.inventory import TokenSet, utcnow


@pytest.fixture
def oauth(store):
    return EbayOAuth(store, client_id="client", client_secret="secret", ru_name="Shop-RuName")


def test_pending_registry_is_keyed_by_state():
    registry = PendingAuthRegistry()
    first = registry.register("Main store")
    second = registry.register("Outlet", account_id="acc_existing")

    assert len(registry) == 2
    assert registry.pop(second.state).account_id == "acc_existing"
    assert registry.pop(first.state).account_name == "Main store"
    with pytest.raises(ValueError):
        registry.pop(first.state)


def test_pending_registry_expires():
    registry = PendingAuthRegistry(ttl_seconds=60)
    pending = registry.register("Main store")
    pending.started_at = utcnow() - timedelta(minutes=5)

    with pytest.raises(ValueError):
        registry.pop(pending.state)


def test_authorization_url(oauth):
    url, state = oauth.authorization_url("Main store")
    query = parse_qs(urlparse(url).query)

    assert url.startswith("https://auth.sandbox.ebay.com/oauth2/authorize?")
    assert query["client_id"] == ["client"]
    assert query["redirect_uri"] == ["Shop-RuName"]
    assert query["state"] == [state]
    assert "sell.inventory" in query["scope"][0]


def test_configured():
    assert not EbayOAuth(None, client_id="", client_secret="", ru_name="").configured


@pytest.mark.asyncio
async def test_exchange_code_stores_tokens(oauth, store):
    _, state = oauth.authorization_url("Main store", account_id="acc_1")
    token_response = {"access_token": "at", "refresh_token": "rt", "expires_in": 7200, "token_type": "Bearer"}

    with patch.object(oauth, "_token_request", AsyncMock(return_value=token_response)):
        account = await oauth.exchange_code("code-1", state)

    assert account.account_id == "acc_1"
    assert account.name == "Main store"
    stored = await store.get_account("acc_1")
    assert stored.tokens.refresh_token == "rt"
    assert await oauth.is_authenticated("acc_1")


@pytest.mark.asyncio
async def test_get_token_returns_valid_token(oauth, store):
    await store.save_account("acc_1", {"tokens": TokenSet(access_token="at", refresh_token="rt",
                                                           expires_at=utcnow() + timedelta(hours=1))})
    assert await oauth.get_token("acc_1") == "at"


@pytest.mark.asyncio
async def test_get_token_refreshes_expired_token(oauth, store):
    await store.save_account("acc_1", {"tokens": TokenSet(access_token="old", refresh_token="rt",
                                                           expires_at=utcnow() - timedelta(minutes=1))})

    with patch.object(oauth, "_token_request", AsyncMock(return_value={"access_token": "new", "expires_in": 7200})):
        token = await oauth.get_token("acc_1")

    assert token == "new"
    stored = await store.get_account("acc_1")
    assert stored.tokens.access_token == "new"
    assert stored.tokens.refresh_token == "rt"


@pytest.mark.asyncio
async def test_get_token_unknown_account(oauth):
    with pytest.raises(AccountNotAuthenticated):
        await oauth.get_token("missing")


@pytest.mark.asyncio
async def test_failed_refresh_is_not_authenticated(oauth, store):
    await store.save_account("acc_1", {"tokens": TokenSet(access_token="old", refresh_token="rt",
                                                           expires_at=utcnow() - timedelta(minutes=1))})

    with patch.object(oauth, "_token_request", AsyncMock(return_value={"error": "invalid_grant", "status": 400})):
        with pytest.raises(AccountNotAuthenticated):
            await oauth.get_token("acc_1")
