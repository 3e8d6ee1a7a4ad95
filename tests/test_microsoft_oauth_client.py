try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi import HTTPException

from outlook_bridge.clients.microsoft_auth import MicrosoftOAuthClient, OAuthStateEncoder
from outlook_bridge.core.config import GraphSettings, MicrosoftSettings
from outlook_bridge.core.errors import (
    ExchangeFailed,
    RefreshFailed,
    RemoteCallFailed,
    Unauthorized,
)

TOKEN_URL = "https://login.test/tenant/oauth2/v2.0/token"


def _microsoft(**overrides) -> MicrosoftSettings:
    values = {
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": "http://localhost:3333/auth/callback",
        "tenant_id": "tenant",
        "token_endpoint_override": TOKEN_URL,
        "scopes": ("offline_access", "Mail.Read"),
    }
    values.update(overrides)
    return MicrosoftSettings(**values)


def _client(handler, **overrides) -> MicrosoftOAuthClient:
    return MicrosoftOAuthClient(
        _microsoft(**overrides),
        GraphSettings(base_url="https://graph.test/v1.0/"),
        transport=httpx.MockTransport(handler),
    )


def test_authorization_url_contains_oauth_parameters() -> None:
    client = _client(lambda request: httpx.Response(500))

    url = client.build_authorization_url(state="state-123")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.netloc == "login.microsoftonline.com"
    assert parsed.path == "/tenant/oauth2/v2.0/authorize"
    assert query["client_id"] == ["client-id"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["offline_access Mail.Read"]
    assert query["state"] == ["state-123"]


@pytest.mark.asyncio
async def test_refresh_posts_form_encoded_grant() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_in": 3600,
                "scope": "Mail.Read",
                "token_type": "Bearer",
            },
        )

    response = await _client(handler).refresh_token("old-refresh")

    assert response.access_token == "new-access"
    assert response.refresh_token == "new-refresh"
    (request,) = seen
    assert str(request.url) == TOKEN_URL
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["old-refresh"]
    assert form["client_id"] == ["client-id"]
    assert form["client_secret"] == ["client-secret"]
    assert form["scope"] == ["offline_access Mail.Read"]


@pytest.mark.asyncio
async def test_refresh_error_surfaces_provider_description() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"error": "invalid_grant", "error_description": "AADSTS70008: expired"},
        )

    with pytest.raises(RefreshFailed) as exc_info:
        await _client(handler).refresh_token("stale")

    assert "AADSTS70008" in str(exc_info.value)
    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == "invalid_grant"


@pytest.mark.asyncio
async def test_unconfigured_client_never_contacts_the_token_endpoint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        raise AssertionError("no request expected")

    client = _client(handler, client_secret="")

    assert client.is_configured is False
    with pytest.raises(RefreshFailed):
        await client.refresh_token("refresh")


@pytest.mark.asyncio
async def test_exchange_rejects_payload_without_access_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth-code"]
        assert form["redirect_uri"] == ["http://localhost:3333/auth/callback"]
        return httpx.Response(200, json={"expires_in": 3600})

    with pytest.raises(ExchangeFailed):
        await _client(handler).exchange_authorization_code("auth-code")


@pytest.mark.asyncio
async def test_network_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(ExchangeFailed):
        await _client(handler).exchange_authorization_code("auth-code")


@pytest.mark.asyncio
async def test_account_identifier_falls_back_to_principal_name() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1.0/me"
        assert request.headers["Authorization"] == "Bearer access"
        return httpx.Response(200, json={"mail": None, "userPrincipalName": "upn@x.com"})

    assert await _client(handler).fetch_account_identifier("access") == "upn@x.com"


@pytest.mark.asyncio
async def test_account_identifier_errors() -> None:
    responses = iter(
        [httpx.Response(401, text="expired"), httpx.Response(200, json={"id": "no-mail"})]
    )
    client = _client(lambda request: next(responses))

    with pytest.raises(Unauthorized):
        await client.fetch_account_identifier("access")
    with pytest.raises(RemoteCallFailed):
        await client.fetch_account_identifier("access")


def test_state_encoder_round_trip_and_tamper_detection() -> None:
    encoder = OAuthStateEncoder("secret")
    token = encoder.encode({"nonce": "abc", "issued_at": "2024-01-01T00:00:00+00:00"})

    assert encoder.decode(token)["nonce"] == "abc"
    with pytest.raises(HTTPException) as exc_info:
        OAuthStateEncoder("other-secret").decode(token)
    assert exc_info.value.status_code == 400


def test_state_verify_enforces_max_age() -> None:
    encoder = OAuthStateEncoder("secret")
    issued_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    token = encoder.issue(now=issued_at)

    payload = encoder.verify(
        token, max_age=timedelta(minutes=15), now=issued_at + timedelta(minutes=10)
    )
    assert payload["issued_at"] == issued_at.isoformat()

    with pytest.raises(HTTPException) as exc_info:
        encoder.verify(token, max_age=timedelta(minutes=15), now=issued_at + timedelta(hours=1))
    assert exc_info.value.detail == "OAuth state token has expired."


def test_state_verify_rejects_garbage() -> None:
    with pytest.raises(HTTPException) as exc_info:
        OAuthStateEncoder("secret").verify("not base64 at all!", max_age=timedelta(minutes=5))
    assert exc_info.value.status_code == 400
