"""
Microsoft identity platform OAuth utilities.

These helpers manage the authorization-code flow, the refresh lifecycle and
the "who am I" lookup used to key stored accounts.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Dict, Optional, Type
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, status
from pydantic import ValidationError

from outlook_bridge.core.config import GraphSettings, MicrosoftSettings
from outlook_bridge.core.errors import (
    ExchangeFailed,
    RefreshFailed,
    RemoteCallFailed,
    TokenEndpointError,
    Unauthorized,
)
from outlook_bridge.models.tokens import TokenResponse

logger = logging.getLogger(__name__)


def _bad_state(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class OAuthStateEncoder:
    """Sign the OAuth ``state`` round-trip value and check it on the way back.

    A state is ``base64(hmac_sha256(payload) + payload)`` where the payload is
    compact JSON carrying a nonce and the UTC issue time.
    """

    _SIGNATURE_SIZE = 32

    def __init__(self, secret_key: str) -> None:
        self._key = secret_key.encode("utf-8")

    def _sign(self, serialized: bytes) -> bytes:
        return hmac.new(self._key, serialized, sha256).digest()

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(self._sign(serialized) + serialized).decode("ascii")

    def issue(self, *, now: Optional[datetime] = None) -> str:
        """Return a fresh signed state for one authorization attempt."""
        issued_at = now or datetime.now(timezone.utc)
        return self.encode({"nonce": uuid.uuid4().hex, "issued_at": issued_at.isoformat()})

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
        except (binascii.Error, ValueError) as exc:
            raise _bad_state("Malformed OAuth state.") from exc
        signature, serialized = raw[: self._SIGNATURE_SIZE], raw[self._SIGNATURE_SIZE :]
        if not hmac.compare_digest(signature, self._sign(serialized)):
            raise _bad_state("Invalid OAuth state signature.")
        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise _bad_state("Malformed OAuth state.") from exc
        if not isinstance(payload, dict):
            raise _bad_state("Malformed OAuth state.")
        return payload

    def verify(
        self, token: str, *, max_age: timedelta, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Decode ``token`` and reject it once it is older than ``max_age``."""
        payload = self.decode(token)
        issued_at_raw = payload.get("issued_at")
        if not issued_at_raw:
            raise _bad_state("Missing issued_at in state token.")
        try:
            issued_at = datetime.fromisoformat(issued_at_raw)
        except (TypeError, ValueError) as exc:
            raise _bad_state("Invalid issued_at in state token.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)

        now = now or datetime.now(timezone.utc)
        if now - issued_at > max_age:
            raise _bad_state("OAuth state token has expired.")
        return payload


class MicrosoftOAuthClient:
    """Build Microsoft authorization URLs and talk to the token endpoint."""

    def __init__(
        self,
        microsoft_settings: MicrosoftSettings,
        graph_settings: GraphSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._settings = microsoft_settings
        self._graph = graph_settings
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    @property
    def scope(self) -> str:
        return " ".join(self._settings.scopes)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def build_authorization_url(self, state: str) -> str:
        """Construct the Microsoft consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "redirect_uri": self._settings.redirect_uri,
            "scope": self.scope,
            "response_mode": "query",
            "state": state,
        }
        query = urlencode(params)
        return f"{self._settings.authorize_endpoint}?{query}"

    async def _request_token(
        self, payload: Dict[str, str], error_cls: Type[TokenEndpointError]
    ) -> TokenResponse:
        if not self.is_configured:
            raise error_cls(
                "Client ID or Client Secret is not configured. Cannot contact the token endpoint."
            )

        form = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "scope": self.scope,
            **payload,
        }

        try:
            async with self._client() as client:
                response = await client.post(self._settings.token_endpoint, data=form)
        except httpx.HTTPError as exc:
            raise error_cls(f"Token endpoint request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            logger.warning(
                "Token endpoint returned %s (%s)", response.status_code, body.get("error")
            )
            raise error_cls(
                body.get("error_description")
                or f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
                error_code=body.get("error"),
            )

        try:
            return TokenResponse.model_validate(body)
        except ValidationError as exc:
            raise error_cls(
                "Incomplete token payload returned from Microsoft.",
                status_code=response.status_code,
            ) from exc

    async def exchange_authorization_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for an access/refresh token pair."""
        return await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._settings.redirect_uri,
            },
            ExchangeFailed,
        )

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Refresh the access token using a stored refresh token."""
        return await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            RefreshFailed,
        )

    async def fetch_account_identifier(self, access_token: str) -> str:
        """Return the signed-in user's email, used as the account key."""
        url = f"{self._graph.base_url}me"
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteCallFailed(None, f"Identity lookup failed: {exc}") from exc

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            raise Unauthorized(response.text)
        if not response.is_success:
            raise RemoteCallFailed(response.status_code, response.text)

        try:
            profile = response.json()
        except ValueError as exc:
            raise RemoteCallFailed(response.status_code, "Identity lookup returned invalid JSON") from exc

        email = None
        if isinstance(profile, dict):
            email = profile.get("mail") or profile.get("userPrincipalName")
        if not email:
            raise RemoteCallFailed(response.status_code, "No email found in user info")
        return email


__all__ = ["MicrosoftOAuthClient", "OAuthStateEncoder"]
