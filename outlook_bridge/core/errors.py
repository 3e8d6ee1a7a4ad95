"""
Exception hierarchy shared by the credential store, the Graph client and the
HTTP surface.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from outlook_bridge.models.tokens import TokenSet

REAUTHENTICATE_MESSAGE = (
    "Authentication required. Please authorize an account via /api/auth/authorize."
)


class OutlookBridgeError(Exception):
    """Base class for all bridge errors."""


class AuthenticationRequired(OutlookBridgeError):
    """Raised when no usable token exists or a refresh attempt failed."""

    def __init__(self, message: str = REAUTHENTICATE_MESSAGE) -> None:
        super().__init__(message)


class Unauthorized(OutlookBridgeError):
    """Raised when Graph rejects a bearer token with HTTP 401."""

    def __init__(self, body: str = "") -> None:
        super().__init__("Graph rejected the access token (401 Unauthorized).")
        self.body = body


class TokenEndpointError(OutlookBridgeError):
    """Raised when the identity provider's token endpoint rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class RefreshFailed(TokenEndpointError):
    """The refresh-token grant was rejected or could not be performed."""


class ExchangeFailed(TokenEndpointError):
    """The authorization-code grant was rejected or could not be performed."""


class RemoteCallFailed(OutlookBridgeError):
    """Any non-2xx, non-401 response (or transport failure) from Graph."""

    def __init__(self, status_code: Optional[int], body: str) -> None:
        if status_code is None:
            message = f"Graph request failed: {body}"
        else:
            message = f"Graph request failed with status {status_code}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnsupportedMethod(OutlookBridgeError):
    """Pagination was requested for a non-GET method."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Pagination only supports GET requests, got {method!r}.")
        self.method = method


class StorageError(OutlookBridgeError):
    """Base class for token file I/O failures."""


class StorageReadFailed(StorageError):
    """The token file exists but could not be read or parsed."""


class StorageWriteFailed(StorageError):
    """The token file could not be written.

    ``token_set`` carries a freshly refreshed token that is still usable in
    memory even though it was not persisted.
    """

    def __init__(self, message: str, *, token_set: "Optional[TokenSet]" = None) -> None:
        super().__init__(message)
        self.token_set = token_set


class AccountNotFound(OutlookBridgeError):
    """The requested account identifier is not registered."""

    def __init__(self, account: str) -> None:
        super().__init__(f"Account {account} not found")
        self.account = account


__all__ = [
    "AccountNotFound",
    "AuthenticationRequired",
    "ExchangeFailed",
    "OutlookBridgeError",
    "REAUTHENTICATE_MESSAGE",
    "RefreshFailed",
    "RemoteCallFailed",
    "StorageError",
    "StorageReadFailed",
    "StorageWriteFailed",
    "TokenEndpointError",
    "Unauthorized",
    "UnsupportedMethod",
]
