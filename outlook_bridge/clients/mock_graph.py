"""Canned Graph responses served in test mode for synthetic access tokens."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

_TEST_USER = {
    "id": "test-user-id",
    "displayName": "Test User",
    "mail": "test.user@example.com",
    "userPrincipalName": "test.user@example.com",
}

_FOLDERS = [
    {"id": "inbox", "displayName": "Inbox", "totalItemCount": 5, "unreadItemCount": 2},
    {"id": "sentitems", "displayName": "Sent Items", "totalItemCount": 3, "unreadItemCount": 0},
    {"id": "drafts", "displayName": "Drafts", "totalItemCount": 1, "unreadItemCount": 0},
    {"id": "archive", "displayName": "Archive", "totalItemCount": 0, "unreadItemCount": 0},
]

_DISPLAY_NAME_FILTER = re.compile(r"displayName eq '((?:[^']|'')*)'")

_BASE_TIME = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def _messages(count: int) -> List[Dict[str, Any]]:
    messages = []
    for index in range(count):
        received = _BASE_TIME - timedelta(hours=index)
        messages.append(
            {
                "id": f"test-message-{index + 1}",
                "subject": f"Test message {index + 1}",
                "from": {
                    "emailAddress": {
                        "name": f"Sender {index + 1}",
                        "address": f"sender{index + 1}@example.com",
                    }
                },
                "receivedDateTime": received.isoformat().replace("+00:00", "Z"),
                "bodyPreview": "This is a simulated message body.",
                "hasAttachments": index % 3 == 0,
                "importance": "normal",
                "isRead": index % 2 == 0,
            }
        )
    return messages


def _events(count: int) -> List[Dict[str, Any]]:
    events = []
    for index in range(count):
        start = _BASE_TIME + timedelta(days=index)
        events.append(
            {
                "id": f"test-event-{index + 1}",
                "subject": f"Test event {index + 1}",
                "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
                "end": {"dateTime": (start + timedelta(hours=1)).isoformat(), "timeZone": "UTC"},
                "isAllDay": False,
            }
        )
    return events


def _top(query_params: Dict[str, Any], default: int) -> int:
    try:
        return max(0, min(int(query_params.get("$top", default)), default))
    except (TypeError, ValueError):
        return default


def simulate_graph_response(
    method: str,
    path: str,
    data: Optional[Dict[str, Any]],
    query_params: Dict[str, Any],
) -> Dict[str, Any]:
    """Return a plausible Graph payload for ``method`` and ``path``."""
    resource = path.split("?", 1)[0].rstrip("/").lower()

    if method != "GET":
        if method == "DELETE":
            return {}
        return {"id": f"test-{resource.rsplit('/', 1)[-1]}-id", **(data or {})}

    if resource in {"me", "users/me"}:
        return dict(_TEST_USER)
    if resource.endswith("mailfolders"):
        folders = [dict(folder) for folder in _FOLDERS]
        match = _DISPLAY_NAME_FILTER.fullmatch(str(query_params.get("$filter", "")))
        if match:
            wanted = match.group(1).replace("''", "'").lower()
            folders = [folder for folder in folders if folder["displayName"].lower() == wanted]
        return {"value": folders}
    if resource.endswith("messages"):
        return {"value": _messages(_top(query_params, 5))}
    if resource.endswith(("events", "calendarview")):
        return {"value": _events(_top(query_params, 3))}
    return {"value": []}


__all__ = ["simulate_graph_response"]
