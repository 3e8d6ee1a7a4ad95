"""Schemas related to OAuth flows and stored accounts."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from outlook_bridge.models.tokens import AccountStatus


class AuthorizationStartResponse(BaseModel):
    """Consent URL and the signed state that must come back on the callback."""

    authorization_url: str = Field(..., description="Microsoft consent screen URL.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class OAuthCallbackResult(BaseModel):
    """Outcome of a completed authorization-code exchange."""

    status: str = Field("connected", description="Always 'connected' on success.")
    account: Optional[str] = Field(
        None, description="Identifier the new token set was stored under."
    )


class ActiveAccountRequest(BaseModel):
    """Payload used to switch the active account."""

    account: str = Field(..., min_length=1, description="Registered account identifier.")


class AccountListResponse(BaseModel):
    """Registered accounts in insertion order plus the active one."""

    accounts: List[str] = Field(default_factory=list)
    active_account: Optional[str] = None


class TokenStatusResponse(BaseModel):
    """Token expiry overview across stored accounts."""

    has_token: bool
    accounts: List[AccountStatus] = Field(default_factory=list)


__all__ = [
    "AccountListResponse",
    "ActiveAccountRequest",
    "AuthorizationStartResponse",
    "OAuthCallbackResult",
    "TokenStatusResponse",
]
