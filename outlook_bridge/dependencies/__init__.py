"""Expose dependency helpers for FastAPI routers and operator scripts."""

from .clients import (
    get_app_settings,
    get_credential_store,
    get_graph_client,
    get_mail_service,
    get_microsoft_oauth_client,
    get_oauth_state_encoder,
    get_token_file_store,
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
