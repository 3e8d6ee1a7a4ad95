"""Expose constructed client wrappers."""

from .graph import GraphClient
from .microsoft_auth import MicrosoftOAuthClient, OAuthStateEncoder
from .token_file import TokenFileStore

__all__ = [
    "GraphClient",
    "MicrosoftOAuthClient",
    "OAuthStateEncoder",
    "TokenFileStore",
]
