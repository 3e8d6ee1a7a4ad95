"""
Multi-account OAuth credential store for Microsoft Graph.

Owns the account registry persisted in the token file, hands out valid bearer
tokens (refreshing them shortly before expiry) and completes the
authorization-code exchange.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from outlook_bridge.clients.microsoft_auth import MicrosoftOAuthClient
from outlook_bridge.clients.token_file import TokenFileStore
from outlook_bridge.core.errors import (
    AuthenticationRequired,
    OutlookBridgeError,
    RefreshFailed,
    StorageReadFailed,
    StorageWriteFailed,
)
from outlook_bridge.models.tokens import AccountRegistry, AccountStatus, TokenSet
from outlook_bridge.utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_BUFFER = timedelta(minutes=5)
TEST_ACCOUNT_ID = "test"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """Single source of truth for "the current valid bearer token"."""

    def __init__(
        self,
        token_file: TokenFileStore,
        oauth_client: MicrosoftOAuthClient,
        *,
        refresh_buffer: timedelta = DEFAULT_REFRESH_BUFFER,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._file = token_file
        self._oauth = oauth_client
        self._refresh_buffer = refresh_buffer
        self._clock = clock
        self._registry: Optional[AccountRegistry] = None
        self._load_flight: SingleFlight[AccountRegistry] = SingleFlight("Token load")
        self._refresh_flight: SingleFlight[TokenSet] = SingleFlight("Token refresh")

    async def _get_registry(self) -> AccountRegistry:
        if self._registry is not None:
            return self._registry
        return await self._load_flight.run(self._load_registry)

    async def _load_registry(self) -> AccountRegistry:
        try:
            document = await self._file.load()
        except StorageReadFailed as exc:
            logger.error("Treating token store as empty: %s", exc)
            document = None
        if document is None:
            logger.info("No token file at %s; no tokens loaded.", self._file.path)

        try:
            registry = AccountRegistry.from_document(document)
        except (ValidationError, ValueError, TypeError, OverflowError, OSError) as exc:
            logger.error(
                "Token file %s has invalid values; treating token store as empty: %s",
                self._file.path,
                exc,
            )
            registry = AccountRegistry()
        if self._registry is None:
            self._registry = registry
        return self._registry

    async def _persist(self) -> None:
        registry = await self._get_registry()
        await self._file.save(registry.to_document())

    async def get_valid_access_token(self) -> Optional[str]:
        """Return the active account's access token, refreshing it if needed.

        ``None`` means the caller must re-run the authorization flow: no
        account is registered, the active reference is dangling, or the
        refresh attempt failed.
        """
        registry = await self._get_registry()
        if not registry.accounts:
            logger.info("No tokens available.")
            return None

        account = registry.active_account
        token_set = registry.active_token_set()
        if account is None or token_set is None:
            logger.info(
                "No valid active account. Available accounts: %s",
                ", ".join(registry.accounts),
            )
            return None

        if not token_set.is_expiring(self._refresh_buffer, self._clock()):
            return token_set.access_token

        logger.info("Access token for %s expired or nearing expiration. Attempting refresh.", account)
        try:
            refreshed = await self.refresh_access_token(account=account)
        except StorageWriteFailed as exc:
            if exc.token_set is None:
                return None
            return exc.token_set.access_token
        except (RefreshFailed, AuthenticationRequired) as exc:
            logger.warning("Failed to refresh access token for %s: %s", account, exc)
            return None
        return refreshed.access_token

    async def refresh_access_token(
        self, refresh_token: Optional[str] = None, *, account: Optional[str] = None
    ) -> TokenSet:
        """Refresh one account's token set in place and persist it.

        The account is ``account`` when given, otherwise the one holding
        ``refresh_token``, otherwise the active account. Concurrent callers
        share a single in-flight token endpoint request.
        """
        registry = await self._get_registry()
        if account is None and refresh_token is not None:
            account = next(
                (
                    identifier
                    for identifier, candidate in registry.accounts.items()
                    if candidate.refresh_token == refresh_token
                ),
                None,
            )
            if account is None:
                raise AuthenticationRequired(
                    "Refresh token does not belong to a stored account. Please re-authenticate."
                )
        if account is None:
            account = registry.active_account

        token_set = registry.accounts.get(account) if account else None
        if token_set is None:
            raise AuthenticationRequired()
        if not token_set.refresh_token:
            logger.warning("No refresh token available for %s.", account)
            raise AuthenticationRequired()

        if self._refresh_flight.in_flight:
            logger.info("Token refresh already in progress; %s waits for it.", account)
        return await self._refresh_flight.run(
            lambda: self._refresh(account, token_set), key=account
        )

    async def _refresh(self, account: str, token_set: TokenSet) -> TokenSet:
        issued_at = self._clock()
        response = await self._oauth.refresh_token(token_set.refresh_token or "")
        token_set.apply_refresh(response, issued_at=issued_at)
        try:
            await self._persist()
        except StorageWriteFailed as exc:
            logger.critical(
                "Access token for %s refreshed but not persisted; "
                "the in-memory token stays in use until restart: %s",
                account,
                exc,
            )
            raise StorageWriteFailed(str(exc), token_set=token_set) from exc
        logger.info("Access token for %s refreshed and saved.", account)
        return token_set

    async def exchange_code_for_tokens(self, authorization_code: str) -> TokenSet:
        """Redeem an authorization code and register the account it belongs to."""
        issued_at = self._clock()
        response = await self._oauth.exchange_authorization_code(authorization_code)
        token_set = TokenSet.issue(response, issued_at=issued_at)

        try:
            account = await self._oauth.fetch_account_identifier(token_set.access_token)
        except OutlookBridgeError as exc:
            account = f"account_{int(self._clock().timestamp() * 1000)}"
            logger.warning(
                "Could not determine user email (%s); using key %s", exc, account
            )

        registry = await self._get_registry()
        registry.add_account(account, token_set)
        await self._persist()
        logger.info("Tokens exchanged and saved for account: %s", account)
        return token_set

    async def set_active_account(self, identifier: str) -> None:
        registry = await self._get_registry()
        registry.set_active(identifier)
        await self._persist()
        logger.info("Active account switched to: %s", identifier)

    async def get_active_account(self) -> Optional[str]:
        registry = await self._get_registry()
        return registry.active_account

    async def get_all_accounts(self) -> List[str]:
        registry = await self._get_registry()
        return list(registry.accounts)

    async def get_token_status(self) -> List[AccountStatus]:
        """Describe every stored account's expiry and validity."""
        registry = await self._get_registry()
        now = self._clock()
        return [
            AccountStatus(
                account=identifier,
                active=identifier == registry.active_account,
                expires_at=token_set.expires_at,
                is_valid=now < token_set.expires_at,
                has_refresh_token=bool(token_set.refresh_token),
            )
            for identifier, token_set in registry.accounts.items()
        ]

    async def clear_tokens(self) -> None:
        """Forget every account and delete the token file."""
        self._registry = AccountRegistry()
        if await self._file.delete():
            logger.info("Token file %s deleted.", self._file.path)
        else:
            logger.info("Token file %s not found, nothing to delete.", self._file.path)

    async def create_test_tokens(self) -> TokenSet:
        """Register a synthetic account whose token the Graph client simulates."""
        now = self._clock()
        stamp = int(now.timestamp() * 1000)
        token_set = TokenSet(
            access_token=f"test_access_token_{stamp}",
            refresh_token=f"test_refresh_token_{stamp}",
            expires_at=now + timedelta(hours=1),
            expires_in=3600,
        )
        registry = await self._get_registry()
        registry.add_account(TEST_ACCOUNT_ID, token_set)
        await self._persist()
        return token_set


async def ensure_authenticated(store: CredentialStore) -> str:
    """Return a usable access token or raise :class:`AuthenticationRequired`."""
    access_token = await store.get_valid_access_token()
    if not access_token:
        raise AuthenticationRequired()
    return access_token


__all__ = ["CredentialStore", "DEFAULT_REFRESH_BUFFER", "ensure_authenticated"]
