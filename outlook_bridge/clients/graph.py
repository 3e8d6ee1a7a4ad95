"""
Microsoft Graph REST client.

Wraps a single authenticated call and adds cursor-following with bounded
accumulation. Paging follows ``@odata.nextLink`` verbatim until the data ends,
the caller's item cap is met, or the page ceiling is hit.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, unquote, urlencode

import httpx
from fastapi import status

from outlook_bridge.clients.mock_graph import simulate_graph_response
from outlook_bridge.core.config import GraphSettings
from outlook_bridge.core.errors import RemoteCallFailed, Unauthorized, UnsupportedMethod
from outlook_bridge.models.graph import AggregatedResult, PageResult

logger = logging.getLogger(__name__)

FILTER_PARAM = "$filter"
TEST_TOKEN_PREFIX = "test_access_token_"

_BODY_METHODS = {"POST", "PATCH", "PUT"}
_PERCENT_ESCAPE = re.compile(r"%[0-9A-Fa-f]{2}")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def encode_filter(expression: str) -> str:
    """Percent-encode an OData filter exactly once.

    A caller may hand over an expression it already encoded; decode it first
    so the escapes are not encoded a second time.

    The two cases are told apart only by the presence of a valid ``%XX``
    escape, so a literal percent sequence inside a filter value is decoded
    too: ``subject eq '%41'`` is sent as ``subject eq 'A'``. To match such
    a value literally, pass the whole expression already encoded (``%2541``).
    """
    if _PERCENT_ESCAPE.search(expression) and unquote(expression) != expression:
        expression = unquote(expression)
    return quote(expression, safe="")


def build_query_string(query_params: Optional[Mapping[str, Any]]) -> str:
    """Serialize query parameters, appending ``$filter`` on its own."""
    if not query_params:
        return ""

    params = {key: value for key, value in query_params.items() if value is not None}
    raw_filter = params.pop(FILTER_PARAM, None)

    query = urlencode(
        {key: _stringify(value) for key, value in params.items()},
        safe="$,",
        quote_via=quote,
    )
    if raw_filter:
        filter_part = f"{FILTER_PARAM}={encode_filter(_stringify(raw_filter))}"
        query = f"{query}&{filter_part}" if query else filter_part
    return query


def _encode_path(path: str) -> str:
    return "/".join(quote(segment, safe="!'()*") for segment in path.lstrip("/").split("/"))


class GraphClient:
    """Authenticated access to the Graph REST API, with pagination."""

    def __init__(
        self,
        settings: GraphSettings,
        *,
        use_test_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._use_test_mode = use_test_mode
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.timeout_seconds, transport=self._transport)

    def build_url(self, path: str, query_params: Optional[Mapping[str, Any]] = None) -> str:
        """Resolve a resource path (or a cursor URL, used verbatim) to a full URL."""
        if path.startswith(("http://", "https://")):
            return path
        url = f"{self._settings.base_url}{_encode_path(path)}"
        query = build_query_string(query_params)
        return f"{url}?{query}" if query else url

    async def _send(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        method = method.upper()
        if self._use_test_mode and access_token.startswith(TEST_TOKEN_PREFIX):
            logger.info("TEST MODE: simulating %s %s", method, path)
            return simulate_graph_response(method, path, json, dict(query_params or {}))

        url = self.build_url(path, query_params)
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        body = json if method in _BODY_METHODS else None
        logger.debug("Graph request: %s %s", method, url)

        try:
            response = await client.request(method, url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise RemoteCallFailed(None, f"Network error during API call: {exc}") from exc

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            raise Unauthorized(response.text)
        if not response.is_success:
            logger.warning("Graph %s %s failed with status %s", method, path, response.status_code)
            raise RemoteCallFailed(response.status_code, response.text)

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteCallFailed(
                response.status_code, f"Error parsing API response: {exc}"
            ) from exc
        return payload if isinstance(payload, dict) else {"value": payload}

    async def call(
        self,
        access_token: str,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Issue one Graph request and return the parsed JSON body."""
        async with self._client() as client:
            return await self._send(
                client, access_token, method, path, json=json, query_params=query_params
            )

    async def fetch_paginated(
        self,
        access_token: str,
        method: str,
        path: str,
        query_params: Optional[Mapping[str, Any]] = None,
        max_items: int = 0,
    ) -> AggregatedResult:
        """Fetch pages until exhausted, ``max_items`` is met or the page ceiling hits.

        ``max_items <= 0`` means no cap. The ceiling is checked first, so it
        bounds the loop even when the remote cursor never ends.
        """
        if method.upper() != "GET":
            raise UnsupportedMethod(method)

        items: list[Dict[str, Any]] = []
        pages_fetched = 0
        current_path = path
        current_params = query_params

        async with self._client() as client:
            while True:
                payload = await self._send(
                    client, access_token, "GET", current_path, query_params=current_params
                )
                page = PageResult.from_payload(payload)
                pages_fetched += 1
                items.extend(page.items)
                logger.debug(
                    "Pagination: retrieved %d items, total so far: %d",
                    len(page.items),
                    len(items),
                )

                if pages_fetched >= self._settings.max_pages:
                    logger.warning(
                        "Pagination: reached page ceiling of %d for %s; returning %d items",
                        self._settings.max_pages,
                        path,
                        len(items),
                    )
                    break
                if max_items > 0 and len(items) >= max_items:
                    logger.debug("Pagination: reached max count of %d, stopping", max_items)
                    break
                if not page.next_link:
                    break

                # The cursor already encodes the original query parameters.
                current_path = page.next_link
                current_params = None

        if max_items > 0:
            items = items[:max_items]

        logger.info("Pagination complete: %d items over %d pages", len(items), pages_fetched)
        return AggregatedResult(items=items, pages_fetched=pages_fetched)


__all__ = [
    "FILTER_PARAM",
    "GraphClient",
    "TEST_TOKEN_PREFIX",
    "build_query_string",
    "encode_filter",
]
