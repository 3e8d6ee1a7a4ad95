try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from outlook_bridge.clients.graph import GraphClient, build_query_string, encode_filter
from outlook_bridge.core.config import GraphSettings
from outlook_bridge.core.errors import RemoteCallFailed, Unauthorized, UnsupportedMethod

BASE_URL = "https://graph.test/v1.0/"


def _settings(**overrides) -> GraphSettings:
    values = {"base_url": BASE_URL, "max_pages": 100}
    values.update(overrides)
    return GraphSettings(**values)


def _paged_handler(total: int, page_size: int, requests: list[httpx.Request]):
    """Serve ``total`` items ``page_size`` at a time, linking pages with $skip."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        skip = int(request.url.params.get("$skip", "0"))
        end = min(skip + page_size, total)
        payload = {"value": [{"id": f"item-{index}"} for index in range(skip, end)]}
        if end < total:
            payload["@odata.nextLink"] = f"{BASE_URL}me/messages?$skip={end}"
        return httpx.Response(200, json=payload)

    return handler


@pytest.mark.asyncio
async def test_fetch_paginated_collects_every_page() -> None:
    requests: list[httpx.Request] = []
    client = GraphClient(
        _settings(), transport=httpx.MockTransport(_paged_handler(25, 10, requests))
    )

    result = await client.fetch_paginated("token", "GET", "me/messages")

    assert result.count == 25
    assert result.pages_fetched == 3
    assert len(requests) == 3
    assert [item["id"] for item in result.items] == [f"item-{index}" for index in range(25)]
    assert result.to_graph_payload()["@odata.count"] == 25


@pytest.mark.asyncio
async def test_fetch_paginated_stops_once_max_items_is_met() -> None:
    requests: list[httpx.Request] = []
    client = GraphClient(
        _settings(), transport=httpx.MockTransport(_paged_handler(25, 10, requests))
    )

    result = await client.fetch_paginated("token", "GET", "me/messages", max_items=15)

    assert result.count == 15
    assert len(requests) == 2
    assert result.items[-1]["id"] == "item-14"


@pytest.mark.asyncio
@pytest.mark.parametrize("max_items", [0, 1000])
async def test_page_ceiling_bounds_a_cursor_that_never_ends(max_items: int) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(
            200,
            json={
                "value": [{"id": "a"}, {"id": "b"}],
                "@odata.nextLink": f"{BASE_URL}me/messages?$skiptoken=loop",
            },
        )

    client = GraphClient(_settings(max_pages=4), transport=httpx.MockTransport(handler))

    result = await client.fetch_paginated("token", "GET", "me/messages", max_items=max_items)

    assert calls == 4
    assert result.pages_fetched == 4
    assert result.count == 8


@pytest.mark.asyncio
async def test_next_link_is_followed_verbatim_without_original_params() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            return httpx.Response(
                200,
                json={
                    "value": [{"id": "1"}],
                    "@odata.nextLink": "https://graph.test/v1.0/me/messages?$skiptoken=abc",
                },
            )
        return httpx.Response(200, json={"value": [{"id": "2"}]})

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    result = await client.fetch_paginated(
        "token", "GET", "me/messages", {"$select": "id,subject", "$top": 1}
    )

    assert result.count == 2
    first, second = requests
    assert first.url.params["$select"] == "id,subject"
    assert first.url.params["$top"] == "1"
    assert second.url.host == "graph.test"
    assert second.url.params["$skiptoken"] == "abc"
    assert "$select" not in second.url.params


@pytest.mark.asyncio
async def test_filter_with_reserved_characters_reaches_server_intact() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"value": []})

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))
    query_params = {"$filter": "displayName eq 'Q&A ''Team'''", "$top": 5}

    await client.fetch_paginated("token", "GET", "me/mailFolders", query_params)

    (request,) = seen
    assert request.url.params.get_list("$filter") == ["displayName eq 'Q&A ''Team'''"]
    assert request.url.params["$top"] == "5"
    assert query_params == {"$filter": "displayName eq 'Q&A ''Team'''", "$top": 5}


@pytest.mark.asyncio
async def test_pre_encoded_filter_is_not_encoded_twice() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"value": []})

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    await client.call(
        "token",
        "GET",
        "me/mailFolders",
        query_params={"$filter": "displayName%20eq%20%27Inbox%27"},
    )

    assert seen[0].url.params["$filter"] == "displayName eq 'Inbox'"


def test_build_query_string_keeps_dollar_names_and_appends_filter_last() -> None:
    query = build_query_string(
        {"$filter": "isRead eq false", "$top": 10, "$select": ["id", "subject"], "$count": True}
    )

    assert query == "$top=10&$select=id,subject&$count=true&$filter=isRead%20eq%20false"


def test_encode_filter_escapes_quotes_and_ampersands() -> None:
    assert encode_filter("name eq 'a&b'") == "name%20eq%20%27a%26b%27"


@pytest.mark.asyncio
async def test_pagination_rejects_non_get_methods() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        raise AssertionError("no request expected")

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(UnsupportedMethod):
        await client.fetch_paginated("token", "POST", "me/messages")


@pytest.mark.asyncio
async def test_unauthorized_response_is_distinguished() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"code": "InvalidAuthenticationToken"}})

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(Unauthorized) as exc_info:
        await client.fetch_paginated("token", "GET", "me/messages")
    assert "InvalidAuthenticationToken" in exc_info.value.body


@pytest.mark.asyncio
async def test_server_error_carries_status_and_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="service unavailable")

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteCallFailed) as exc_info:
        await client.call("token", "GET", "me")
    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "service unavailable"


@pytest.mark.asyncio
async def test_call_sends_bearer_token_and_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    client = GraphClient(_settings(), transport=httpx.MockTransport(handler))

    result = await client.call("secret", "POST", "me/sendMail", json={"message": {"subject": "hi"}})

    assert result == {}
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert seen[0].url.path == "/v1.0/me/sendMail"
    assert b'"subject"' in seen[0].content


@pytest.mark.asyncio
async def test_test_mode_simulates_responses_for_synthetic_tokens() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        raise AssertionError("test mode must not touch the network")

    client = GraphClient(
        _settings(), use_test_mode=True, transport=httpx.MockTransport(handler)
    )

    profile = await client.call("test_access_token_123", "GET", "me")
    messages = await client.fetch_paginated(
        "test_access_token_123", "GET", "me/mailFolders/inbox/messages", {"$top": 3}
    )

    assert profile["mail"] == "test.user@example.com"
    assert messages.count == 3


def test_encode_filter_decodes_literal_percent_escapes() -> None:
    assert encode_filter("subject eq '%41'") == "subject%20eq%20%27A%27"
    assert encode_filter("subject%20eq%20%27%2541%27") == "subject%20eq%20%27%2541%27"
    assert encode_filter("discount eq '50%'") == "discount%20eq%20%2750%25%27"
