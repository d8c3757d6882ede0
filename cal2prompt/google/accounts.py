"""
Tool: Accounts
Purpose: Named Google accounts and their credential lifecycle

Each configured account owns a credential file. TokenManager is the only
place that mutates an account's in-memory token:

    no credential -> authorizing -> valid -> (expiry) refreshing -> valid

Authorizing and refreshing fall back to "no credential" on failure.

Usage:
    store = AccountStore.from_config(config)
    manager = TokenManager(store, OAuth2Client.from_config(config.oauth2))
    token = await manager.ensure_valid("work")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from cal2prompt.config_models import Config
from cal2prompt.errors import AccountNotFoundError
from cal2prompt.google.models import Token
from cal2prompt.google.oauth_manager import OAuth2Client, load_token, save_token
from cal2prompt.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Account:
    name: str
    authorize_account: str
    credential_path: Path
    calendar_ids: list[str] = field(default_factory=list)
    token: Token | None = None

    @property
    def insert_calendar_id(self) -> str | None:
        """Calendar that receives new events: the first configured one."""
        return self.calendar_ids[0] if self.calendar_ids else None


class AccountStore:
    """Accounts keyed by name, in configuration order."""

    def __init__(self, accounts: list[Account], default_account: str | None = None):
        self._accounts: dict[str, Account] = {}
        for account in accounts:
            self._accounts[account.name] = account
        if default_account is not None and default_account not in self._accounts:
            raise AccountNotFoundError(default_account)
        self._default_name = default_account

    @classmethod
    def from_config(cls, config: Config) -> AccountStore:
        accounts = [
            Account(
                name=a.name,
                authorize_account=a.authorize_account,
                credential_path=config.credential_path_for(a),
                calendar_ids=list(a.calendar_ids),
            )
            for a in config.accounts
        ]
        return cls(accounts, default_account=config.settings.default_account)

    def get(self, name: str) -> Account:
        try:
            return self._accounts[name]
        except KeyError:
            raise AccountNotFoundError(name) from None

    def default(self) -> Account:
        if self._default_name is not None:
            return self._accounts[self._default_name]
        if not self._accounts:
            raise AccountNotFoundError("<default>")
        return next(iter(self._accounts.values()))

    def resolve(self, name: str | None) -> Account:
        return self.get(name) if name else self.default()

    def names(self) -> list[str]:
        return list(self._accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)


class TokenManager:
    """Hands out valid tokens, authorizing or refreshing on demand."""

    def __init__(self, store: AccountStore, oauth: OAuth2Client):
        self.store = store
        self.oauth = oauth
        self._account_locks: dict[str, asyncio.Lock] = {}

    def _get_account_lock(self, name: str) -> asyncio.Lock:
        if name not in self._account_locks:
            self._account_locks[name] = asyncio.Lock()
        return self._account_locks[name]

    async def ensure_valid(self, account_name: str, now: float | None = None) -> Token:
        """
        Return a non-expired token for the account.

        Loads the persisted credential on first use, refreshes it when
        expired, and falls back to the browser flow when there is nothing
        to refresh. Calls for one account never overlap.

        Raises:
            AccountNotFoundError: Unknown account name
            AuthorizationError: Any failure to obtain a token
        """
        account = self.store.get(account_name)
        async with self._get_account_lock(account.name):
            try:
                token = await self._acquire(account, now)
            except Exception:
                account.token = None
                raise
            account.token = token
            return token

    async def _acquire(self, account: Account, now: float | None) -> Token:
        log = logger.bind(account=account.name)
        token = account.token
        loaded = False

        if token is None:
            token = load_token(account.credential_path)
            loaded = token is not None
            if token is None:
                log.info("no stored credential, starting authorization")
                token = await self.oauth.run_authorization_flow(account.authorize_account)
                save_token(token, account.credential_path)
                return token

        if not token.is_expired(time.time() if now is None else now):
            if loaded:
                log.debug("loaded credential", path=str(account.credential_path))
            return token

        if token.refresh_token:
            log.info("credential expired, refreshing")
            token = await self.oauth.refresh(token.refresh_token)
        else:
            log.info("credential expired without refresh token, re-authorizing")
            token = await self.oauth.run_authorization_flow(account.authorize_account)

        save_token(token, account.credential_path)
        return token
