"""eBay OAuth: consent URLs, code exchange and transparent token refresh"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import aiohttp

from ..errors import AccountNotAuthenticated, RemoteTransportError
from ..inventory import EbayAccount, TokenSet, utcnow

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "sandbox": {
        "auth": "https://auth.sandbox.ebay.com",
        "api": "https://api.sandbox.ebay.com",
    },
    "production": {
        "auth": "https://auth.ebay.com",
        "api": "https://api.ebay.com",
    },
}

DEFAULT_SCOPES = [
    "https://api.ebay.com/oauth/api_scope",
    "https://api.ebay.com/oauth/api_scope/sell.inventory",
    "https://api.ebay.com/oauth/api_scope/sell.account",
]


def new_account_id() -> str:
    return f"acc_{int(time.time()):x}{secrets.token_hex(3)}"


@dataclass
class PendingAuth:
    """A consent request waiting for its OAuth callback"""
    state: str
    account_id: str
    account_name: str
    started_at: datetime = field(default_factory=utcnow)


class PendingAuthRegistry:
    """Pending consent requests keyed by their OAuth state token"""

    def __init__(self, ttl_seconds: int = 900):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._pending: Dict[str, PendingAuth] = {}

    def register(self, account_name: str, account_id: Optional[str] = None) -> PendingAuth:
        self._purge()
        pending = PendingAuth(
            state=secrets.token_urlsafe(24),
            account_id=account_id or new_account_id(),
            account_name=account_name,
        )
        self._pending[pending.state] = pending
        return pending

    def pop(self, state: str) -> PendingAuth:
        self._purge()
        pending = self._pending.pop(state, None)
        if pending is None:
            raise ValueError("Invalid or expired auth state")
        return pending

    def __len__(self) -> int:
        return len(self._pending)

    def _purge(self):
        cutoff = utcnow() - self.ttl
        for state in [s for s, p in self._pending.items() if p.started_at < cutoff]:
            del self._pending[state]


class EbayOAuth:
    """Issues consent URLs and keeps account tokens valid"""

    def __init__(
        self,
        account_store,
        client_id: str,
        client_secret: str,
        ru_name: str,
        environment: str = "sandbox",
        scopes: Optional[List[str]] = None,
        timeout: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize OAuth helper

        Args:
            account_store: AccountStore holding tokens
            client_id: eBay application client id
            client_secret: eBay application client secret
            ru_name: Redirect URL name registered with eBay
            environment: 'sandbox' or 'production'
            scopes: OAuth scopes to request
            timeout: Request timeout in seconds
            session: Optional shared aiohttp session
        """
        if environment not in ENDPOINTS:
            raise ValueError(f"Unknown eBay environment: {environment}")

        self.account_store = account_store
        self.client_id = client_id
        self.client_secret = client_secret
        self.ru_name = ru_name
        self.environment = environment
        self.endpoints = ENDPOINTS[environment]
        self.scopes = scopes or DEFAULT_SCOPES
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.pending = PendingAuthRegistry()
        self._session = session

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.ru_name)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def authorization_url(self, account_name: str, account_id: Optional[str] = None) -> Tuple[str, str]:
        """
        Build the consent URL for connecting (or reconnecting) an account

        Args:
            account_name: Friendly account name
            account_id: Existing account id when reconnecting

        Returns:
            Tuple of (consent URL, state token)
        """
        pending = self.pending.register(account_name, account_id)
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.ru_name,
                "response_type": "code",
                "scope": " ".join(self.scopes),
                "state": pending.state,
            },
            quote_via=quote,
        )
        return f"{self.endpoints['auth']}/oauth2/authorize?{query}", pending.state

    async def _token_request(self, form: Dict[str, str]) -> Dict:
        url = f"{self.endpoints['api']}/identity/v1/oauth2/token"
        session = self._get_session()
        try:
            async with session.post(
                url,
                data=form,
                auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ) as response:
                body = await response.text()
                if response.status != 200:
                    logger.error(f"Token request failed ({response.status}): {body}")
                    return {"error": body or f"HTTP {response.status}", "status": response.status}
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Token request failed: {str(e)}")
            raise RemoteTransportError(f"Token request failed: {e}") from e

    async def exchange_code(self, code: str, state: str) -> EbayAccount:
        """Complete a consent flow and store the new tokens"""
        pending = self.pending.pop(state)
        data = await self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": self.ru_name}
        )
        if "error" in data:
            raise AccountNotAuthenticated(pending.account_id, f"Token exchange failed: {data['error']}")

        tokens = TokenSet(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            expires_at=utcnow() + timedelta(seconds=int(data.get("expires_in", 0))),
            token_type=data.get("token_type"),
        )
        account = await self.account_store.save_account(
            pending.account_id,
            {"name": pending.account_name, "tokens": tokens, "added_at": utcnow()},
        )
        logger.info(f"Connected eBay account {account.name} ({account.account_id})")
        return account

    async def refresh(self, account: EbayAccount) -> TokenSet:
        """Refresh the access token of an account that has a refresh token"""
        if not account.tokens or not account.tokens.refresh_token:
            raise AccountNotAuthenticated(account.account_id, "No refresh token available")

        data = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": account.tokens.refresh_token,
                "scope": " ".join(self.scopes),
            }
        )
        if "error" in data:
            raise AccountNotAuthenticated(account.account_id, f"Token refresh failed: {data['error']}")

        tokens = account.tokens.model_copy(
            update={
                "access_token": data.get("access_token"),
                "expires_at": utcnow() + timedelta(seconds=int(data.get("expires_in", 0))),
            }
        )
        await self.account_store.save_account(account.account_id, {"tokens": tokens})
        logger.info(f"Refreshed access token for {account.account_id}")
        return tokens

    async def is_authenticated(self, account_id: str) -> bool:
        account = await self.account_store.get_account(account_id)
        return bool(account and account.has_valid_token)

    async def get_token(self, account_id: str) -> str:
        """
        Return a valid bearer token for an account, refreshing it if expired

        Raises:
            AccountNotAuthenticated: account unknown or token cannot be refreshed
        """
        account = await self.account_store.get_account(account_id)
        if account is None:
            raise AccountNotAuthenticated(account_id, "Account not found")
        if account.has_valid_token:
            return account.tokens.access_token
        tokens = await self.refresh(account)
        return tokens.access_token
