"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def token_doc():
    """Build an on-disk token set expiring ``minutes`` from now."""

    def _build(access: str, refresh: str | None = "refresh", minutes: float = 60) -> dict:
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        document = {
            "access_token": access,
            "expires_at": int(expires_at.timestamp() * 1000),
            "expires_in": 3600,
            "scope": "Mail.Read User.Read",
            "token_type": "Bearer",
        }
        if refresh is not None:
            document["refresh_token"] = refresh
        return document

    return _build


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    return tmp_path / "tokens.json"


@pytest.fixture
def write_tokens(token_path: Path):
    """Write a raw token document to the temporary token file."""

    def _write(document: dict) -> Path:
        token_path.write_text(json.dumps(document), encoding="utf-8")
        return token_path

    return _write
