"""
Domain models for OAuth token persistence.

The token file holds either the multi-account document::

    {"accounts": {"<email>": {<token set>}, ...}, "activeAccount": "<email>"}

or the legacy single-account document (a bare token set). Both are resolved
into an :class:`AccountRegistry` once, at load time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from outlook_bridge.core.errors import AccountNotFound

logger = logging.getLogger(__name__)

LEGACY_ACCOUNT_ID = "default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_epoch_millis(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return _from_epoch_millis(float(value))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    # Missing expiry is treated as already expired.
    return datetime.fromtimestamp(0, tz=timezone.utc)


def _to_epoch_millis(value: datetime) -> int:
    return round(value.timestamp() * 1000)


class TokenResponse(BaseModel):
    """Successful payload returned by the token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = Field(..., ge=0)
    scope: Optional[str] = None
    token_type: Optional[str] = None


class TokenSet(BaseModel):
    """One account's credential bundle."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    scopes: frozenset[str] = Field(default_factory=frozenset)
    token_type: Optional[str] = "Bearer"
    expires_in: Optional[int] = None

    @classmethod
    def issue(
        cls, response: TokenResponse, *, issued_at: Optional[datetime] = None
    ) -> "TokenSet":
        """Build a token set, computing ``expires_at`` from the issue time."""
        issued_at = issued_at or _utcnow()
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=issued_at + timedelta(seconds=response.expires_in),
            scopes=frozenset((response.scope or "").split()),
            token_type=response.token_type or "Bearer",
            expires_in=response.expires_in,
        )

    def apply_refresh(
        self, response: TokenResponse, *, issued_at: Optional[datetime] = None
    ) -> None:
        """Update this token set in place from a refresh-token grant."""
        issued_at = issued_at or _utcnow()
        self.access_token = response.access_token
        # The provider may omit a new refresh token; the old one stays valid.
        if response.refresh_token:
            self.refresh_token = response.refresh_token
        self.expires_in = response.expires_in
        self.expires_at = issued_at + timedelta(seconds=response.expires_in)
        if response.scope:
            self.scopes = frozenset(response.scope.split())
        if response.token_type:
            self.token_type = response.token_type

    def is_expiring(self, buffer: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or _utcnow()
        return now >= self.expires_at - buffer

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "TokenSet":
        scope = data.get("scope")
        if isinstance(scope, list):
            scopes = frozenset(scope)
        elif isinstance(scope, str):
            scopes = frozenset(scope.split())
        else:
            scopes = frozenset()
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_from_epoch_millis(data.get("expires_at")),
            scopes=scopes,
            token_type=data.get("token_type") or "Bearer",
            expires_in=data.get("expires_in"),
        )

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "expires_at": _to_epoch_millis(self.expires_at),
            "scope": " ".join(sorted(self.scopes)),
            "token_type": self.token_type,
        }
        return {key: value for key, value in document.items() if value is not None}


class AccountRegistry(BaseModel):
    """All persisted token sets plus the active account pointer."""

    accounts: Dict[str, TokenSet] = Field(default_factory=dict)
    active_account: Optional[str] = None

    @classmethod
    def from_document(cls, document: Any) -> "AccountRegistry":
        """Normalize a multi-account or legacy single-account document."""
        if not isinstance(document, dict):
            return cls()

        raw_accounts = document.get("accounts")
        if isinstance(raw_accounts, dict):
            accounts: Dict[str, TokenSet] = {}
            for identifier, payload in raw_accounts.items():
                if not isinstance(payload, dict) or not payload.get("access_token"):
                    logger.warning("Skipping account %s without an access token", identifier)
                    continue
                accounts[identifier] = TokenSet.from_document(payload)
            active = document.get("activeAccount") if accounts else None
            return cls(accounts=accounts, active_account=active)

        if document.get("access_token"):
            return cls(
                accounts={LEGACY_ACCOUNT_ID: TokenSet.from_document(document)},
                active_account=LEGACY_ACCOUNT_ID,
            )

        return cls()

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "accounts": {
                identifier: token_set.to_document()
                for identifier, token_set in self.accounts.items()
            }
        }
        if self.active_account is not None:
            document["activeAccount"] = self.active_account
        return document

    def add_account(self, identifier: str, token_set: TokenSet, *, activate: bool = True) -> None:
        self.accounts[identifier] = token_set
        if activate or self.active_account is None:
            self.active_account = identifier

    def set_active(self, identifier: str) -> None:
        if identifier not in self.accounts:
            raise AccountNotFound(identifier)
        self.active_account = identifier

    def active_token_set(self) -> Optional[TokenSet]:
        if self.active_account is None:
            return None
        return self.accounts.get(self.active_account)


class AccountStatus(BaseModel):
    """Summary of one stored account, used by status listings."""

    account: str
    active: bool
    expires_at: datetime
    is_valid: bool
    has_refresh_token: bool


__all__ = [
    "AccountRegistry",
    "AccountStatus",
    "LEGACY_ACCOUNT_ID",
    "TokenResponse",
    "TokenSet",
]
