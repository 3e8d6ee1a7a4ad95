"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory is cached so one credential store (and its in-memory registry)
lives for the whole process and is passed by reference to every consumer.
"""

from datetime import timedelta
from functools import lru_cache

from outlook_bridge.clients import (
    GraphClient,
    MicrosoftOAuthClient,
    OAuthStateEncoder,
    TokenFileStore,
)
from outlook_bridge.core.config import AppSettings, get_settings
from outlook_bridge.services import CredentialStore, MailService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the configured secret."""
    settings = _settings()
    secret = settings.oauth.state_secret or settings.microsoft.client_secret or "outlook-bridge"
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_microsoft_oauth_client() -> MicrosoftOAuthClient:
    """Create a singleton Microsoft OAuth client."""
    settings = _settings()
    return MicrosoftOAuthClient(settings.microsoft, settings.graph)


@lru_cache()
def get_token_file_store() -> TokenFileStore:
    """Provide the JSON token file."""
    return TokenFileStore(_settings().token_store.path)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the process-wide credential store."""
    settings = _settings()
    return CredentialStore(
        token_file=get_token_file_store(),
        oauth_client=get_microsoft_oauth_client(),
        refresh_buffer=timedelta(seconds=settings.token_store.refresh_buffer_seconds),
    )


@lru_cache()
def get_graph_client() -> GraphClient:
    """Provide the Graph REST client."""
    settings = _settings()
    return GraphClient(settings.graph, use_test_mode=settings.use_test_mode)


def get_mail_service() -> MailService:
    """Build a mail service over the shared store and Graph client."""
    return MailService(
        credential_store=get_credential_store(),
        graph_client=get_graph_client(),
        graph_settings=_settings().graph,
    )


__all__ = [
    "get_app_settings",
    "get_credential_store",
    "get_graph_client",
    "get_mail_service",
    "get_microsoft_oauth_client",
    "get_oauth_state_encoder",
    "get_token_file_store",
]
