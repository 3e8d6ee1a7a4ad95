"""Mailbox queries built on the paginated Graph client."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from outlook_bridge.clients.graph import GraphClient
from outlook_bridge.core.config import GraphSettings
from outlook_bridge.core.errors import OutlookBridgeError
from outlook_bridge.models.graph import AggregatedResult
from outlook_bridge.services.credential_store import CredentialStore, ensure_authenticated

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_COUNT = 10
EMAIL_SELECT_FIELDS = (
    "id,subject,from,toRecipients,ccRecipients,receivedDateTime,"
    "bodyPreview,hasAttachments,importance,isRead"
)
WELL_KNOWN_FOLDERS = {
    "inbox",
    "drafts",
    "sentitems",
    "deleteditems",
    "junkemail",
    "archive",
    "outbox",
}


class FolderNotFound(OutlookBridgeError):
    """No mail folder matches the requested display name."""

    def __init__(self, folder: str) -> None:
        super().__init__(f"Mail folder {folder!r} not found")
        self.folder = folder


class MailService:
    """List messages for the active account."""

    def __init__(
        self,
        credential_store: CredentialStore,
        graph_client: GraphClient,
        graph_settings: GraphSettings,
    ) -> None:
        self._store = credential_store
        self._graph = graph_client
        self._settings = graph_settings

    def _effective_count(self, count: Optional[int]) -> int:
        if count is None or count <= 0:
            count = DEFAULT_MESSAGE_COUNT
        return min(count, self._settings.max_total_results)

    async def _resolve_folder_path(self, access_token: str, folder: str) -> str:
        normalized = folder.strip().lower().replace(" ", "")
        if normalized in WELL_KNOWN_FOLDERS:
            return f"me/mailFolders/{normalized}/messages"

        escaped = folder.replace("'", "''")
        response = await self._graph.call(
            access_token,
            "GET",
            "me/mailFolders",
            query_params={"$filter": f"displayName eq '{escaped}'", "$select": "id,displayName"},
        )
        matches = response.get("value") or []
        if not matches:
            raise FolderNotFound(folder)
        return f"me/mailFolders/{matches[0]['id']}/messages"

    async def list_messages(
        self, *, folder: str = "inbox", count: Optional[int] = None
    ) -> AggregatedResult:
        """Return up to ``count`` of the newest messages in ``folder``."""
        requested = self._effective_count(count)
        access_token = await ensure_authenticated(self._store)
        path = await self._resolve_folder_path(access_token, folder)

        query_params: Dict[str, Any] = {
            "$top": max(1, min(self._settings.page_size, requested)),
            "$orderby": "receivedDateTime desc",
            "$select": EMAIL_SELECT_FIELDS,
        }
        result = await self._graph.fetch_paginated(
            access_token, "GET", path, query_params, requested
        )
        logger.info("Listed %d messages from %s", result.count, folder)
        return result


def summarize_message(message: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Graph message into the fields the HTTP surface returns."""
    sender = (message.get("from") or {}).get("emailAddress") or {}
    return {
        "id": message.get("id"),
        "subject": message.get("subject") or "",
        "from": {
            "name": sender.get("name") or "Unknown",
            "address": sender.get("address") or "unknown",
        },
        "received_at": message.get("receivedDateTime"),
        "is_read": bool(message.get("isRead")),
        "has_attachments": bool(message.get("hasAttachments")),
        "body_preview": message.get("bodyPreview") or "",
    }


__all__ = ["FolderNotFound", "MailService", "summarize_message"]
