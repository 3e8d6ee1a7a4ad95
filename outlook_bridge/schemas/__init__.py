"""Public schema exports."""

from .auth import (
    AccountListResponse,
    ActiveAccountRequest,
    AuthorizationStartResponse,
    OAuthCallbackResult,
    TokenStatusResponse,
)
from .mail import MessageListResponse, MessageSender, MessageSummary

__all__ = [
    "AccountListResponse",
    "ActiveAccountRequest",
    "AuthorizationStartResponse",
    "MessageListResponse",
    "MessageSender",
    "MessageSummary",
    "OAuthCallbackResult",
    "TokenStatusResponse",
]
