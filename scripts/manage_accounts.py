"""Operator utility for inspecting and switching stored Outlook accounts.

Example usages::

    # Show every authenticated account, its expiry and which one is active.
    python -m scripts.manage_accounts list

    # Make another stored account the default for Graph calls.
    python -m scripts.manage_accounts switch someone@example.com

    # Delete the token file to force re-authentication.
    python -m scripts.manage_accounts clear

    # With USE_TEST_MODE=true, register a synthetic "test" account.
    python -m scripts.manage_accounts test-account

``--token-file`` overrides the configured token store location.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path
from typing import Awaitable, Callable

from outlook_bridge.clients import MicrosoftOAuthClient, TokenFileStore
from outlook_bridge.core.config import AppSettings, get_settings
from outlook_bridge.core.errors import AccountNotFound, StorageError
from outlook_bridge.services import CredentialStore

EXIT_OK = 0
EXIT_TEST_MODE_DISABLED = 3
EXIT_ACCOUNT_NOT_FOUND = 4
EXIT_RUNTIME_ERROR = 5


def _build_store(settings: AppSettings, token_file: Path | None) -> CredentialStore:
    path = token_file or settings.token_store.path
    return CredentialStore(
        token_file=TokenFileStore(path),
        oauth_client=MicrosoftOAuthClient(settings.microsoft, settings.graph),
        refresh_buffer=timedelta(seconds=settings.token_store.refresh_buffer_seconds),
    )


async def _list_accounts(store: CredentialStore) -> int:
    statuses = await store.get_token_status()
    if not statuses:
        print("No authenticated accounts found.")
        return EXIT_OK

    print("Authenticated accounts:")
    for index, status in enumerate(statuses, start=1):
        marker = " (ACTIVE)" if status.active else ""
        validity = "valid" if status.is_valid else "expired"
        print(f"{index}. {status.account}{marker}")
        print(f"   Status: {validity}")
        print(f"   Expires: {status.expires_at.isoformat()}")
    return EXIT_OK


async def _switch_account(store: CredentialStore, account: str) -> int:
    try:
        await store.set_active_account(account)
    except AccountNotFound as exc:
        print(f"Error: {exc}.", file=sys.stderr)
        available = await store.get_all_accounts()
        if available:
            print(f"Available accounts: {', '.join(available)}", file=sys.stderr)
        return EXIT_ACCOUNT_NOT_FOUND
    print(f"Switched active account to: {account}")
    return EXIT_OK


async def _clear_accounts(store: CredentialStore) -> int:
    await store.clear_tokens()
    print("All stored accounts removed. Re-authenticate to continue.")
    return EXIT_OK


async def _create_test_account(store: CredentialStore, settings: AppSettings) -> int:
    if not settings.use_test_mode:
        print("Test mode is disabled; set USE_TEST_MODE=true first.", file=sys.stderr)
        return EXIT_TEST_MODE_DISABLED
    token_set = await store.create_test_tokens()
    print(f"Test account active until {token_set.expires_at.isoformat()}.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="List, switch or clear stored Outlook accounts."
    )
    parser.add_argument(
        "--token-file",
        type=Path,
        default=None,
        help="Path to the token file (default: configured token store path).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="Show stored accounts and token expiry.")

    switch_parser = subparsers.add_parser("switch", help="Set the active account.")
    switch_parser.add_argument("account", help="Account identifier (usually an email).")

    subparsers.add_parser("clear", help="Delete all stored tokens.")
    subparsers.add_parser(
        "test-account",
        help="Register a synthetic account served by simulated Graph responses (test mode only).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    store = _build_store(settings, args.token_file)
    command: str = args.command
    handlers: dict[str, Callable[[], Awaitable[int]]] = {
        "list": lambda: _list_accounts(store),
        "switch": lambda: _switch_account(store, args.account),
        "clear": lambda: _clear_accounts(store),
        "test-account": lambda: _create_test_account(store, settings),
    }

    try:
        return asyncio.run(handlers[command]())
    except StorageError as exc:
        print(f"Token store error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
